"""Linearization of an expression chain into SQL text and arguments.

Each main operation has its own render function; they share the clause
helpers below and write into one ``StringIO`` buffer. Everything here works
with ``?`` markers; conversion to ``$n`` happens once, at the very end.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from io import StringIO
from typing import TYPE_CHECKING, Any

from pgchain._constants import INPUT_MARKER, MAX_POSTGRES_PARAMETERS, NULL_VALUE
from pgchain._errors import (
    ERR_MSG_CTE_UNION,
    ERR_MSG_MISSING_MAIN_OPERATION,
    ChainError,
    CTEUnionError,
    InvalidStatementError,
    MissingMainOperationError,
    MissingTableError,
    PlaceholderMismatchError,
    wrap_error,
)
from pgchain._placeholders import placeholders_to_positional
from pgchain._segment import JOIN_SEGMENTS, Modifier, QuerySegmentAtom, Segment, SQLBool

if TYPE_CHECKING:
    from pgchain._chain import ExpressionChain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Result:
    """A rendered statement and the arguments aligned with its parameters."""

    sql: str
    args: list[Any] = field(default_factory=list)


def _extract(segments: Iterable[QuerySegmentAtom], *kinds: Segment) -> list[QuerySegmentAtom]:
    return [atom for atom in segments if atom.segment in kinds]


def render_predicates(
    segments: Iterable[QuerySegmentAtom], kind: Segment, dst: StringIO
) -> list[Any]:
    """Render WHERE or HAVING atoms without the leading keyword.

    AND atoms are written first, then every other combinator, each family
    keeping its insertion order. Only the first atom written to the clause
    loses its combinator.
    """
    atoms = _extract(segments, kind)
    args: list[Any] = []
    others: list[QuerySegmentAtom] = []
    written = 0
    for atom in atoms:
        if atom.sql_bool != SQLBool.AND:
            others.append(atom)
            continue
        args.extend(atom.render(written == 0, dst))
        written += 1
    for i, atom in enumerate(others):
        args.extend(atom.render(written + i == 0, dst))
    return args


def _require_table(chain: ExpressionChain, statement: str) -> str:
    if not chain.table_name:
        raise MissingTableError(
            f"no table specified for this {statement}",
            f"{statement} rendered without a table: {chain.main_operation!r}",
        )
    return chain.table_name


def _render_joins(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    # Declaration order, flavors interleaved.
    args: list[Any] = []
    for atom in _extract(chain.segments, *JOIN_SEGMENTS):
        dst.write(f" {atom.segment} {atom.expression}")
        args.extend(atom.arguments)
    return args


def _render_where(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    if not _extract(chain.segments, Segment.WHERE):
        return []
    dst.write(" WHERE ")
    return render_predicates(chain.segments, Segment.WHERE, dst)


def _render_list(
    chain: ExpressionChain, kind: Segment, dst: StringIO, keyword: str
) -> list[Any]:
    atoms = _extract(chain.segments, kind)
    if not atoms:
        return []
    dst.write(f" {keyword} ")
    dst.write(", ".join(atom.expression for atom in atoms))
    return [arg for atom in atoms for arg in atom.arguments]


def _render_having(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    if not _extract(chain.segments, Segment.HAVING):
        return []
    dst.write(" HAVING ")
    return render_predicates(chain.segments, Segment.HAVING, dst)


def _render_returning(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    return _render_list(chain, Segment.RETURNING, dst, "RETURNING")


def _render_pagination(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    args: list[Any] = []
    if chain.limit_atom is not None:
        dst.write(f" LIMIT {chain.limit_atom.expression}")
        args.extend(chain.limit_atom.arguments)
    if chain.offset_atom is not None:
        dst.write(f" OFFSET {chain.offset_atom.expression}")
        args.extend(chain.offset_atom.arguments)
    return args


def _render_unions(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    args: list[Any] = []
    for atom in _extract(chain.segments, Segment.UNION):
        dst.write(" UNION ")
        if atom.modifier:
            dst.write(f"{atom.modifier} ")
        dst.write(atom.expression)
        args.extend(atom.arguments)
    return args


def _render_suffixes(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    for atom in _extract(chain.segments, Segment.SUFFIX):
        if atom.modifier == Modifier.FOR_UPDATE:
            dst.write(f" {atom.modifier}")
    return []


def _render_select(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    operation = chain.main_operation
    dst.write(f"SELECT {operation.expression or '*'}")
    args = list(operation.arguments)
    if chain.table_name:
        dst.write(f" FROM {chain.table_name}")
    args.extend(_render_joins(chain, dst))
    args.extend(_render_where(chain, dst))
    args.extend(_render_list(chain, Segment.GROUP, dst, "GROUP BY"))
    args.extend(_render_having(chain, dst))
    args.extend(_render_list(chain, Segment.ORDER, dst, "ORDER BY"))
    args.extend(_render_returning(chain, dst))
    args.extend(_render_pagination(chain, dst))
    args.extend(_render_unions(chain, dst))
    args.extend(_render_suffixes(chain, dst))
    return args


def _render_delete(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    table = _require_table(chain, "delete")
    dst.write(f"DELETE FROM {table}")
    args = list(chain.main_operation.arguments)
    args.extend(_render_joins(chain, dst))
    args.extend(_render_where(chain, dst))
    args.extend(_render_list(chain, Segment.GROUP, dst, "GROUP BY"))
    args.extend(_render_having(chain, dst))
    args.extend(_render_list(chain, Segment.ORDER, dst, "ORDER BY"))
    args.extend(_render_returning(chain, dst))
    args.extend(_render_unions(chain, dst))
    args.extend(_render_suffixes(chain, dst))
    return args


def _render_update(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    table = _require_table(chain, "update")
    operation = chain.main_operation
    if not operation.expression:
        raise InvalidStatementError(
            "empty update expression", f"update of {table} has nothing to set"
        )
    dst.write(f"UPDATE {table} SET {operation.expression}")
    args = list(operation.arguments)
    # Postgres joins in UPDATE through FROM, JOIN atoms do not apply.
    args.extend(_render_list(chain, Segment.FROM_UPDATE, dst, "FROM"))
    args.extend(_render_where(chain, dst))
    args.extend(_render_returning(chain, dst))
    return args


def _render_value(value: Any, dst: StringIO, args: list[Any]) -> None:
    from pgchain._chain import ExpressionChain

    if value is None:
        dst.write(NULL_VALUE)
    elif isinstance(value, ExpressionChain):
        try:
            sub = value.render_raw()
        except ChainError as err:
            raise wrap_error(err, "rendering a SQL insert") from err
        dst.write(f"({sub.sql})")
        args.extend(sub.args)
    else:
        dst.write(INPUT_MARKER)
        args.append(value)


def _render_values_row(values: Iterable[Any], dst: StringIO, args: list[Any]) -> None:
    dst.write("(")
    for i, value in enumerate(values):
        if i:
            dst.write(", ")
        _render_value(value, dst, args)
    dst.write(")")


def _render_insert_head(chain: ExpressionChain, dst: StringIO) -> list[str]:
    table = _require_table(chain, "insert")
    columns = chain.main_operation.expression
    if not columns:
        raise InvalidStatementError(
            "no columns to insert", f"insert into {table} has an empty column map"
        )
    dst.write(f"INSERT INTO {table} ({columns}) VALUES ")
    return columns.split(", ")


def _render_insert_tail(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    args: list[Any] = []
    if chain.conflict is not None:
        conflict, conflict_args = chain.conflict.render()
        if conflict:
            dst.write(f" {conflict}")
            args.extend(conflict_args)
    args.extend(_render_returning(chain, dst))
    return args


def _render_insert(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    # Insert values never go through argument expansion, a list value is
    # one argument for an array column.
    _render_insert_head(chain, dst)
    args: list[Any] = []
    _render_values_row(chain.main_operation.arguments, dst, args)
    args.extend(_render_insert_tail(chain, dst))
    return args


def _render_insert_multi(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    width = len(_render_insert_head(chain, dst))
    values = chain.main_operation.arguments
    if not values:
        raise InvalidStatementError(
            "no rows to insert", f"multi insert into {chain.table_name} has no rows"
        )
    args: list[Any] = []
    for start in range(0, len(values), width):
        if start:
            dst.write(", ")
        _render_values_row(values[start : start + width], dst, args)
    args.extend(_render_insert_tail(chain, dst))
    return args


_MAIN_RENDERERS: dict[Segment, Callable[[ExpressionChain, StringIO], list[Any]]] = {
    Segment.SELECT: _render_select,
    Segment.DELETE: _render_delete,
    Segment.UPDATE: _render_update,
    Segment.INSERT: _render_insert,
    Segment.INSERT_MULTI: _render_insert_multi,
}


def render_ctes(chain: ExpressionChain, dst: StringIO) -> list[Any]:
    """Write ``WITH name AS (...), ... `` for the chain's CTEs in declaration order.

    Sub-chains are rendered raw and their arguments returned so they lead
    the statement's own arguments.

    Raises:
        CTEUnionError: If a CTE sub-chain carries unions.
    """
    if not chain.ctes:
        return []
    args: list[Any] = []
    queries: list[str] = []
    for name, sub_chain in chain.ctes.items():
        if _extract(sub_chain.segments, Segment.UNION):
            raise CTEUnionError(ERR_MSG_CTE_UNION, f"cte {name} contains a union")
        try:
            sub = sub_chain.render_raw()
        except ChainError as err:
            raise wrap_error(err, f"rendering cte {name}") from err
        queries.append(f"{name} AS ({sub.sql})")
        args.extend(sub.args)
    dst.write(f"WITH {', '.join(queries)} ")
    return args


def _to_positional(sql: str, args: list[Any]) -> Result:
    query, count = placeholders_to_positional(sql)
    if count != len(args):
        raise PlaceholderMismatchError(
            f"the query has {count} args but {len(args)} were passed",
            f"the query has {count} args but {len(args)} were passed: {query}",
        )
    if count > MAX_POSTGRES_PARAMETERS:
        logger.warning(
            "statement has %d parameters, postgres accepts at most %d",
            count,
            MAX_POSTGRES_PARAMETERS,
        )
    return Result(sql=query, args=args)


def render_chain(chain: ExpressionChain, *, raw: bool = False) -> Result:
    """Render ``chain`` into a statement.

    Args:
        chain: The chain to render. It is not modified.
        raw: Leave ``?`` markers in place instead of numbering them.

    Returns:
        The rendered statement and its arguments.

    Raises:
        MissingMainOperationError: If no statement kind was chosen.
        MissingTableError: If the statement needs a table and has none.
        InvalidStatementError: If the statement has nothing to insert or set.
        CTEUnionError: If a CTE sub-chain carries unions.
        PlaceholderMismatchError: If markers and arguments do not pair up.
    """
    operation = chain.main_operation
    if operation is None:
        raise MissingMainOperationError(ERR_MSG_MISSING_MAIN_OPERATION)

    dst = StringIO()
    try:
        args = render_ctes(chain, dst)
    except ChainError as err:
        raise wrap_error(err, "rendering CTEs before main render") from err
    args.extend(_MAIN_RENDERERS[operation.segment](chain, dst))

    if raw:
        return Result(sql=dst.getvalue(), args=args)
    try:
        result = _to_positional(dst.getvalue(), args)
    except ChainError as err:
        raise wrap_error(err, "rendering query") from err
    logger.debug("rendered %s with %d args", result.sql, len(result.args))
    return result
