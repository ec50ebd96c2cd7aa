"""Clause fragments: the atoms an expression chain is made of."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from io import StringIO
from typing import Any

from pgchain.selectparse import field_names


class SQLBool(enum.StrEnum):
    """Boolean combinator placed before a WHERE/HAVING atom."""

    NOTHING = ""
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    AND_NOT = "AND NOT"
    OR_NOT = "OR NOT"


NEGATING_BOOLS = frozenset({SQLBool.NOT, SQLBool.AND_NOT, SQLBool.OR_NOT})


class Segment(enum.StrEnum):
    """Kind of clause an atom belongs to, valued by its SQL keyword."""

    WHERE = "WHERE"
    HAVING = "HAVING"
    LIMIT = "LIMIT"
    OFFSET = "OFFSET"
    JOIN = "JOIN"
    LEFT_JOIN = "LEFT JOIN"
    RIGHT_JOIN = "RIGHT JOIN"
    INNER_JOIN = "INNER JOIN"
    FULL_JOIN = "FULL JOIN"
    SELECT = "SELECT"
    DELETE = "DELETE"
    INSERT = "INSERT"
    INSERT_MULTI = "INSERTM"
    UPDATE = "UPDATE"
    FROM_UPDATE = "FROMUPDATE"
    GROUP = "GROUP BY"
    ORDER = "ORDER BY"
    RETURNING = "RETURNING"
    UNION = "UNION"
    SUFFIX = "SUFFIX"


JOIN_SEGMENTS = frozenset(
    {
        Segment.JOIN,
        Segment.LEFT_JOIN,
        Segment.RIGHT_JOIN,
        Segment.INNER_JOIN,
        Segment.FULL_JOIN,
    }
)

PREDICATE_SEGMENTS = frozenset({Segment.WHERE, Segment.HAVING})


class Modifier(enum.StrEnum):
    """Optional decoration of an atom."""

    NONE = ""
    ALL = "ALL"
    FOR_UPDATE = "FOR UPDATE"


@dataclass(frozen=True)
class QuerySegmentAtom:
    """One clause fragment, immutable once attached to a chain.

    ``arguments`` pairs 1:1 with the ``?`` markers left in ``expression``
    after argument expansion. ``sql_bool`` only matters for WHERE/HAVING.
    """

    segment: Segment
    expression: str = ""
    arguments: tuple[Any, ...] = field(default_factory=tuple)
    sql_bool: SQLBool = SQLBool.NOTHING
    modifier: Modifier = Modifier.NONE

    def clone(self) -> QuerySegmentAtom:
        # Argument values are shared, only the container is new.
        return replace(self, arguments=tuple(self.arguments))

    def with_bool(self, sql_bool: SQLBool) -> QuerySegmentAtom:
        return replace(self, sql_bool=sql_bool)

    def fields(self) -> list[str]:
        """Names of the columns a SELECT atom projects, empty for other kinds.

        Raises:
            FieldNameExtractionError: If a projected column has no usable name.
        """
        if self.segment != Segment.SELECT:
            return []
        return field_names(self.expression)

    def render(self, first: bool, dst: StringIO) -> list[Any]:
        """Write this predicate atom into ``dst`` and return its arguments.

        The combinator is omitted for the first atom of a clause; a negation
        is still kept as ``NOT``.
        """
        if not first:
            if self.sql_bool:
                dst.write(f" {self.sql_bool} ")
            else:
                dst.write(" ")
        elif self.sql_bool in NEGATING_BOOLS:
            dst.write(f"{SQLBool.NOT} ")
        dst.write(self.expression)
        return list(self.arguments)
