"""ORDER BY criteria."""

from __future__ import annotations

import enum


class Direction(enum.StrEnum):
    ASC = "ASC"
    DESC = "DESC"


class OrderByOperator:
    """Ordered list of ``column DIRECTION`` criteria.

    Built with :func:`asc` / :func:`desc` and extended by chaining, e.g.
    ``asc("name").desc("created_at")``.
    """

    def __init__(self, direction: Direction, columns: tuple[str, ...]) -> None:
        self._sections: list[tuple[Direction, tuple[str, ...]]] = []
        self._add(direction, columns)

    def _add(self, direction: Direction, columns: tuple[str, ...]) -> OrderByOperator:
        if columns:
            self._sections.append((direction, columns))
        return self

    @property
    def sections(self) -> list[tuple[Direction, tuple[str, ...]]]:
        return list(self._sections)

    def asc(self, *columns: str) -> OrderByOperator:
        return self._add(Direction.ASC, columns)

    def desc(self, *columns: str) -> OrderByOperator:
        return self._add(Direction.DESC, columns)

    def __str__(self) -> str:
        return ", ".join(
            f"{column} {direction}"
            for direction, columns in self._sections
            for column in columns
        )

    def __repr__(self) -> str:
        return f"OrderByOperator({str(self)!r})"


def asc(*columns: str) -> OrderByOperator:
    """Order by ``columns`` ascending, least to greatest."""
    return OrderByOperator(Direction.ASC, columns)


def desc(*columns: str) -> OrderByOperator:
    """Order by ``columns`` descending, greatest to least."""
    return OrderByOperator(Direction.DESC, columns)
