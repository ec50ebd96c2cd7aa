"""Shorthands for common fragments.

Predicate helpers return ``(expression, args)`` so they unpack straight into
the chain methods::

    chain.and_where(*equals("name", "bob")).and_where(*in_("id", [1, 2]))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pgchain._constants import CURRENT_TIMESTAMP_PG_FN
from pgchain._placeholders import is_expandable
from pgchain._segment import SQLBool

if TYPE_CHECKING:
    from pgchain._chain import ExpressionChain


def _comparison(field: str, operator: str, values: tuple[Any, ...]) -> tuple[Any, ...]:
    return (f"{field} {operator} ?", *values)


def equals(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, "=", values)


def not_equals(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, "!=", values)


def greater_than(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, ">", values)


def greater_or_equal_than(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, ">=", values)


def lesser_than(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, "<", values)


def lesser_or_equal_than(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, "<=", values)


def like(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, "LIKE", values)


def not_like(field: str, *values: Any) -> tuple[Any, ...]:
    return _comparison(field, "NOT LIKE", values)


def in_(field: str, *values: Any) -> tuple[Any, ...]:
    """``field IN (?, ?, ...)`` from either one list or several values."""
    if len(values) == 1 and is_expandable(values[0]):
        return (f"{field} IN (?)", values[0])
    return (f"{field} IN (?)", list(values))


def null(field: str) -> str:
    return f"{field} IS NULL"


def not_null(field: str) -> str:
    return f"{field} IS NOT NULL"


def as_(field: str, alias: str) -> str:
    """``field AS alias`` for projections."""
    return f"{field} AS {alias}"


def distinct(*fields: str) -> str:
    return f"DISTINCT {', '.join(fields)}"


def constraint(name: str) -> str:
    """Conflict target referencing a named constraint."""
    return f"ON CONSTRAINT {name}"


def join_on(table: str, expression: str, *args: Any) -> tuple[Any, ...]:
    """``(table, expression, *args)`` ready to unpack into ``chain.join``."""
    return (table, expression, *args)


def set_to_current_timestamp(field: str) -> str:
    """Assignment of ``field`` to the current timestamp with time zone."""
    return f"{field} = {CURRENT_TIMESTAMP_PG_FN}"


def or_(chain: ExpressionChain) -> ExpressionChain:
    """Turn the combinator of the last WHERE/HAVING atom into OR (or OR NOT).

    ``or_(chain.and_where("a = ?", 1))`` is equivalent to ``chain.or_where``.
    """
    chain.mutate_last_bool(SQLBool.OR)
    return chain


def not_(chain: ExpressionChain) -> ExpressionChain:
    """Negate the last WHERE/HAVING atom, AND becomes AND NOT and OR becomes OR NOT."""
    chain.mutate_last_bool(SQLBool.NOT)
    return chain
