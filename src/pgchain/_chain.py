"""The fluent expression chain."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from io import StringIO
from typing import Any

from pgchain._conflict import OnConflict
from pgchain._errors import (
    ERR_MSG_CTE_UNION,
    ERR_MSG_INVALID_RETURNING,
    ERR_MSG_NO_DB,
    ERR_MSG_NOT_QUERYABLE,
    ERR_MSG_ONLY_ONE_CONFLICT,
    ChainError,
    ConflictClauseError,
    CTEUnionError,
    InsertColumnsMismatchError,
    InvalidStatementError,
    NoDBError,
    NotQueryableError,
    ReturningError,
    TablePrefixError,
    TransactionError,
    wrap_error,
)
from pgchain._formatter import Formatter
from pgchain._helpers import as_
from pgchain._orderby import OrderByOperator
from pgchain._placeholders import expand_args
from pgchain._rendering import Result, render_chain, render_predicates
from pgchain._segment import PREDICATE_SEGMENTS, Modifier, QuerySegmentAtom, Segment, SQLBool
from pgchain.connection import DB, ResultFetch, ResultFetchIter

logger = logging.getLogger(__name__)

# (current combinator, requested operation) -> new combinator
_BOOL_MUTATIONS: dict[tuple[SQLBool, SQLBool], SQLBool] = {
    (SQLBool.AND, SQLBool.NOT): SQLBool.AND_NOT,
    (SQLBool.AND, SQLBool.OR): SQLBool.OR,
    (SQLBool.OR, SQLBool.NOT): SQLBool.OR_NOT,
    (SQLBool.AND_NOT, SQLBool.OR): SQLBool.OR_NOT,
    (SQLBool.NOT, SQLBool.AND): SQLBool.AND_NOT,
    (SQLBool.NOT, SQLBool.OR): SQLBool.OR_NOT,
}

_RETURNING_OPERATIONS = frozenset({Segment.INSERT, Segment.INSERT_MULTI, Segment.UPDATE})


class SelectArgument:
    """A projected expression with its own ``?`` arguments.

    Example::

        chain.select_with_args(SelectArgument("coalesce(a, ?)", 0).as_("a"))
    """

    def __init__(self, field: str, *args: Any) -> None:
        self.field = field
        self.args = args
        self.alias = ""

    def as_(self, alias: str) -> SelectArgument:
        """Return a copy aliased to ``alias``."""
        aliased = SelectArgument(self.field, *self.args)
        aliased.alias = alias
        return aliased

    def __repr__(self) -> str:
        return f"SelectArgument({self.field!r}, args={self.args!r}, alias={self.alias!r})"


class ExpressionChain:
    """Accumulates clause fragments and renders them into one statement.

    Every mutating method changes the chain in place and returns it so calls
    can be chained. A chain is a plain value owned by one caller; use
    :meth:`clone` to hand a copy to someone else.

    Example::

        chain = (
            ExpressionChain(db)
            .select("id", "name")
            .table("users")
            .and_where("age > ?", 18)
            .order_by(asc("name"))
            .limit(10)
        )
        result = chain.render()
        # SELECT id, name FROM users WHERE age > $1 ORDER BY name ASC LIMIT 10
    """

    def __init__(self, db: DB | None = None) -> None:
        self.db = db
        self.segments: list[QuerySegmentAtom] = []
        self.table_name = ""
        self.main_operation: QuerySegmentAtom | None = None
        self.limit_atom: QuerySegmentAtom | None = None
        self.offset_atom: QuerySegmentAtom | None = None
        self.conflict: OnConflict | None = None
        self.ctes: dict[str, ExpressionChain] = {}
        self.formatter: Formatter | None = None
        self.errors: list[ChainError] = []
        self.set_local_statement = ""

    # -- internals --------------------------------------------------------

    def _record(self, err: ChainError) -> None:
        logger.debug("deferring chain error: %s", err.internal())
        self.errors.append(err)

    def _format(self, text: str) -> str:
        if self.formatter is None:
            return text
        try:
            return self.formatter.format(text)
        except TablePrefixError as err:
            self._record(err)
            return text

    def _expanded_atom(
        self,
        expression: str,
        segment: Segment,
        sql_bool: SQLBool,
        args: Sequence[Any],
    ) -> QuerySegmentAtom:
        expression, expanded = expand_args(expression, args)
        return QuerySegmentAtom(
            segment=segment,
            expression=self._format(expression),
            arguments=tuple(expanded),
            sql_bool=sql_bool,
        )

    def _append_expanded(
        self,
        expression: str,
        segment: Segment,
        sql_bool: SQLBool = SQLBool.NOTHING,
        args: Sequence[Any] = (),
    ) -> ExpressionChain:
        self.segments.append(self._expanded_atom(expression, segment, sql_bool, args))
        return self

    def _set_main_expanded(
        self, expression: str, segment: Segment, args: Sequence[Any] = ()
    ) -> ExpressionChain:
        self.main_operation = self._expanded_atom(expression, segment, SQLBool.NOTHING, args)
        return self

    def _raise_deferred(self) -> None:
        if not self.errors:
            return
        first = self.errors[0]
        if len(self.errors) == 1:
            raise first
        others = "; ".join(err.internal() for err in self.errors[1:])
        raise type(first)(
            first.user_message,
            f"{first.internal()} (and {len(self.errors) - 1} more: {others})",
            wrapped=first,
        )

    # -- main operations --------------------------------------------------

    def select(self, *fields: str) -> ExpressionChain:
        """Make this a SELECT of ``fields``; no fields selects ``*``."""
        self.main_operation = QuerySegmentAtom(
            segment=Segment.SELECT, expression=self._format(", ".join(fields))
        )
        return self

    def select_with_args(self, *fields: SelectArgument) -> ExpressionChain:
        """Make this a SELECT of expressions carrying their own arguments."""
        statements: list[str] = []
        args: list[Any] = []
        for argument in fields:
            statement = argument.field
            if argument.alias:
                statement = as_(statement, argument.alias)
            statements.append(statement)
            args.extend(argument.args)
        return self._set_main_expanded(", ".join(statements), Segment.SELECT, args)

    def insert(self, values: Mapping[str, Any]) -> ExpressionChain:
        """Make this an INSERT of one row.

        Columns are sorted so equal mappings always render identically.
        ``None`` values are written as ``NULL`` and ExpressionChain values
        as a parenthesized sub-select.
        """
        columns = sorted(values)
        self.main_operation = QuerySegmentAtom(
            segment=Segment.INSERT,
            expression=", ".join(columns),
            arguments=tuple(values[column] for column in columns),
        )
        return self

    def insert_multi(self, values: Mapping[str, Sequence[Any]]) -> ExpressionChain:
        """Make this an INSERT of several rows given column by column.

        Raises:
            InsertColumnsMismatchError: If the columns differ in length.
        """
        columns = sorted(values)
        lengths = {len(values[column]) for column in columns}
        if len(lengths) > 1:
            raise InsertColumnsMismatchError(
                "length of insert columns mismatch",
                "insert columns lengths: "
                + ", ".join(f"{column}={len(values[column])}" for column in columns),
            )
        rows = lengths.pop() if lengths else 0
        self.main_operation = QuerySegmentAtom(
            segment=Segment.INSERT_MULTI,
            expression=", ".join(columns),
            arguments=tuple(values[column][row] for row in range(rows) for column in columns),
        )
        return self

    def update(self, expression: str, *args: Any) -> ExpressionChain:
        """Make this an UPDATE setting ``expression``; ``None`` args become ``NULL``."""
        return self._set_main_expanded(expression, Segment.UPDATE, args)

    def update_map(self, values: Mapping[str, Any]) -> ExpressionChain:
        """Make this an UPDATE of ``column = value`` pairs, sorted by column."""
        columns = sorted(values)
        expression = ", ".join(f"{column} = ?" for column in columns)
        return self._set_main_expanded(
            expression, Segment.UPDATE, [values[column] for column in columns]
        )

    def delete(self) -> ExpressionChain:
        self.main_operation = QuerySegmentAtom(segment=Segment.DELETE)
        return self

    # -- predicates -------------------------------------------------------

    def and_where(self, expression: str, *args: Any) -> ExpressionChain:
        return self._append_expanded(expression, Segment.WHERE, SQLBool.AND, args)

    def or_where(self, expression: str, *args: Any) -> ExpressionChain:
        return self._append_expanded(expression, Segment.WHERE, SQLBool.OR, args)

    def and_having(self, expression: str, *args: Any) -> ExpressionChain:
        return self._append_expanded(expression, Segment.HAVING, SQLBool.AND, args)

    def or_having(self, expression: str, *args: Any) -> ExpressionChain:
        return self._append_expanded(expression, Segment.HAVING, SQLBool.OR, args)

    def _where_group(self, chain: ExpressionChain, sql_bool: SQLBool) -> ExpressionChain:
        for err in chain.errors:
            self._record(wrap_error(err, "building where group"))
        if not any(atom.segment == Segment.WHERE for atom in chain.segments):
            return self
        condition, args = chain.render_where_raw()
        # Already expanded by the inner chain.
        self.segments.append(
            QuerySegmentAtom(
                segment=Segment.WHERE,
                expression=f"({condition})",
                arguments=tuple(args),
                sql_bool=sql_bool,
            )
        )
        return self

    def and_where_group(self, chain: ExpressionChain) -> ExpressionChain:
        """Add the WHERE atoms of ``chain`` as one parenthesized AND condition."""
        return self._where_group(chain, SQLBool.AND)

    def or_where_group(self, chain: ExpressionChain) -> ExpressionChain:
        """Add the WHERE atoms of ``chain`` as one parenthesized OR condition."""
        return self._where_group(chain, SQLBool.OR)

    def mutate_last_bool(self, operation: SQLBool) -> ExpressionChain:
        """Combine ``operation`` into the combinator of the last WHERE/HAVING atom.

        Does nothing when the last atom is not a predicate or the combination
        is not meaningful.
        """
        if not self.segments:
            return self
        last = self.segments[-1]
        if last.segment not in PREDICATE_SEGMENTS:
            return self
        mutated = _BOOL_MUTATIONS.get((last.sql_bool, operation))
        if mutated is not None:
            self.segments[-1] = last.with_bool(mutated)
        return self

    def render_where_raw(self) -> tuple[str, list[Any]]:
        """The WHERE conditions alone, markers left as ``?``."""
        dst = StringIO()
        args = render_predicates(self.segments, Segment.WHERE, dst)
        return dst.getvalue(), args

    def render_having_raw(self) -> tuple[str, list[Any]]:
        """The HAVING conditions alone, markers left as ``?``."""
        dst = StringIO()
        args = render_predicates(self.segments, Segment.HAVING, dst)
        return dst.getvalue(), args

    # -- other clauses ----------------------------------------------------

    def table(self, name: str) -> ExpressionChain:
        self.table_name = name
        return self

    def from_(self, name: str) -> ExpressionChain:
        """Same as :meth:`table`, reads better in some statements."""
        return self.table(name)

    def from_update(self, expression: str, *args: Any) -> ExpressionChain:
        """Add a ``FROM`` source to an UPDATE, the Postgres way to join there."""
        return self._append_expanded(expression, Segment.FROM_UPDATE, args=args)

    def _join(
        self, segment: Segment, expression: str, on: str, args: Sequence[Any]
    ) -> ExpressionChain:
        return self._append_expanded(f"{expression} ON {on}", segment, args=args)

    def join(self, expression: str, on: str, *args: Any) -> ExpressionChain:
        return self._join(Segment.JOIN, expression, on, args)

    def left_join(self, expression: str, on: str, *args: Any) -> ExpressionChain:
        return self._join(Segment.LEFT_JOIN, expression, on, args)

    def right_join(self, expression: str, on: str, *args: Any) -> ExpressionChain:
        return self._join(Segment.RIGHT_JOIN, expression, on, args)

    def inner_join(self, expression: str, on: str, *args: Any) -> ExpressionChain:
        return self._join(Segment.INNER_JOIN, expression, on, args)

    def full_join(self, expression: str, on: str, *args: Any) -> ExpressionChain:
        return self._join(Segment.FULL_JOIN, expression, on, args)

    def group_by(self, expression: str, *args: Any) -> ExpressionChain:
        return self._append_expanded(expression, Segment.GROUP, args=args)

    def group_by_replace(self, expression: str, *args: Any) -> ExpressionChain:
        """Like :meth:`group_by` but drops every previous GROUP BY first."""
        self.segments = [atom for atom in self.segments if atom.segment != Segment.GROUP]
        return self.group_by(expression, *args)

    def order_by(self, order: OrderByOperator) -> ExpressionChain:
        return self._append_expanded(str(order), Segment.ORDER)

    def limit(self, limit: int) -> ExpressionChain:
        self.limit_atom = QuerySegmentAtom(segment=Segment.LIMIT, expression=str(int(limit)))
        return self

    def offset(self, offset: int) -> ExpressionChain:
        self.offset_atom = QuerySegmentAtom(segment=Segment.OFFSET, expression=str(int(offset)))
        return self

    def returning(self, *columns: str) -> ExpressionChain:
        """Add ``RETURNING columns``, valid on INSERT and UPDATE only.

        The check runs against the current main operation; misuse is raised
        when the chain is rendered.
        """
        operation = self.main_operation
        if operation is None or operation.segment not in _RETURNING_OPERATIONS:
            self._record(
                ReturningError(
                    ERR_MSG_INVALID_RETURNING,
                    f"returning used with main operation {operation and operation.segment}",
                )
            )
        self.segments.append(
            QuerySegmentAtom(segment=Segment.RETURNING, expression=self._format(", ".join(columns)))
        )
        return self

    def for_update(self) -> ExpressionChain:
        """Lock the selected rows with ``FOR UPDATE``."""
        self.segments.append(QuerySegmentAtom(segment=Segment.SUFFIX, modifier=Modifier.FOR_UPDATE))
        return self

    def union(self, expression: str, *args: Any, all_: bool = False) -> ExpressionChain:
        """Append ``UNION [ALL] expression``; no validity check is made."""
        expression, expanded = expand_args(expression, args)
        self.segments.append(
            QuerySegmentAtom(
                segment=Segment.UNION,
                expression=self._format(expression),
                arguments=tuple(expanded),
                modifier=Modifier.ALL if all_ else Modifier.NONE,
            )
        )
        return self

    def add_union_from_chain(self, chain: ExpressionChain, all_: bool = False) -> ExpressionChain:
        """Render ``chain`` now and append it as a UNION.

        A chain with CTEs cannot be used; that and any render failure are
        raised when this chain is rendered.
        """
        if chain.ctes:
            self._record(
                CTEUnionError(ERR_MSG_CTE_UNION, f"union chain has ctes {list(chain.ctes)}")
            )
            return self
        try:
            sub = chain.render_raw()
        except ChainError as err:
            self._record(wrap_error(err, "rendering union query"))
            return self
        self.segments.append(
            QuerySegmentAtom(
                segment=Segment.UNION,
                expression=sub.sql,
                arguments=tuple(sub.args),
                modifier=Modifier.ALL if all_ else Modifier.NONE,
            )
        )
        return self

    def on_conflict(self, clause: Callable[[OnConflict], Any]) -> ExpressionChain:
        """Attach an ``ON CONFLICT`` clause, configured by ``clause``.

        Only one is allowed per chain; a second one is raised at render time.
        """
        if self.conflict is not None:
            self._record(ConflictClauseError(ERR_MSG_ONLY_ONE_CONFLICT))
            return self
        self.conflict = OnConflict()
        clause(self.conflict)
        return self

    def with_(self, name: str, chain: ExpressionChain) -> ExpressionChain:
        """Add the CTE ``name AS (chain)``; reusing a name replaces it in place."""
        self.ctes[name] = chain
        return self

    def table_prefixes(self) -> Formatter:
        """The ``{.key}`` substitution table, created on first use.

        Prefixes apply to text added after they are registered.
        """
        if self.formatter is None:
            self.formatter = Formatter()
        return self.formatter

    def set_local(self, statement: str) -> ExpressionChain:
        """Run ``SET LOCAL statement`` in the transaction executing this chain."""
        self.set_local_statement = statement
        return self

    def new_db(self, db: DB) -> ExpressionChain:
        self.db = db
        return self

    def clone(self) -> ExpressionChain:
        """Return an independent copy; argument values are shared, not copied."""
        other = ExpressionChain(self.db)
        other.segments = [atom.clone() for atom in self.segments]
        other.table_name = self.table_name
        other.main_operation = self.main_operation.clone() if self.main_operation else None
        other.limit_atom = self.limit_atom.clone() if self.limit_atom else None
        other.offset_atom = self.offset_atom.clone() if self.offset_atom else None
        other.conflict = self.conflict.clone() if self.conflict else None
        other.ctes = {name: chain.clone() for name, chain in self.ctes.items()}
        other.formatter = self.formatter.copy() if self.formatter else None
        other.errors = list(self.errors)
        other.set_local_statement = self.set_local_statement
        return other

    # -- rendering --------------------------------------------------------

    def render(self) -> Result:
        """Render the statement with ``$n`` positional parameters.

        Returns:
            The SQL text and the arguments, one per parameter.

        Raises:
            ChainError: For any error deferred while building the chain, or
                raised while rendering it.
        """
        self._raise_deferred()
        return render_chain(self, raw=False)

    def render_raw(self) -> Result:
        """Like :meth:`render` but leaves ``?`` markers in place."""
        self._raise_deferred()
        return render_chain(self, raw=True)

    def __str__(self) -> str:
        try:
            result = self.render()
        except ChainError as err:
            return f"invalid query, err: {err}"
        return f"query: {result.sql}, args: {result.args}"

    def __repr__(self) -> str:
        return f"<ExpressionChain {self}>"

    def fields(self) -> list[str]:
        """Column names the SELECT projection yields."""
        if self.main_operation is None:
            return []
        return self.main_operation.fields()

    # -- execution --------------------------------------------------------

    def _queryable(self) -> bool:
        if self.main_operation is not None and self.main_operation.segment == Segment.SELECT:
            return True
        return any(atom.segment == Segment.RETURNING for atom in self.segments)

    def _require_db(self) -> DB:
        if self.db is None:
            raise NoDBError(ERR_MSG_NO_DB)
        return self.db

    def _prepare(self, context: str, *, query: bool) -> Result:
        self._raise_deferred()
        try:
            result = render_chain(self)
        except ChainError as err:
            raise wrap_error(err, context) from err
        if query and not self._queryable():
            raise NotQueryableError(ERR_MSG_NOT_QUERYABLE, f"not queryable: {result.sql}")
        return result

    def query_iter(self) -> ResultFetchIter:
        """Run the query, returning a function that fetches one row per call."""
        result = self._prepare("rendering query to query with iterator", query=True)
        db = self._require_db()
        logger.debug("query_iter %s", result.sql)
        return db.query_iter(result.sql, self.fields(), result.args)

    def query(self) -> ResultFetch:
        """Run the query, returning a function that fetches every row."""
        result = self._prepare("rendering query to query", query=True)
        db = self._require_db()
        logger.debug("query %s", result.sql)
        return db.query(result.sql, self.fields(), result.args)

    def query_primitive(self) -> ResultFetch:
        """Run a one-column query whose rows are fetched as plain values.

        Raises:
            InvalidStatementError: If the projection is not exactly one column.
        """
        result = self._prepare("rendering query to query", query=True)
        fields = self.fields()
        if len(fields) != 1:
            raise InvalidStatementError(
                f"querying for primitives can be done for 1 column only, got {len(fields)}",
                f"primitive query {result.sql} projects {fields}",
            )
        db = self._require_db()
        logger.debug("query_primitive %s", result.sql)
        return db.query_primitive(result.sql, fields[0], result.args)

    def fetch(self, receiver: Any) -> None:
        """Run the query and fill ``receiver`` with every row."""
        self.query()(receiver)

    def fetch_into_primitive(self, receiver: Any) -> None:
        """Run a one-column query and fill ``receiver`` with its values."""
        self.query_primitive()(receiver)

    def raw(self, *fields: Any) -> None:
        """Run the query and scan the first row into ``fields``."""
        result = self._prepare("rendering query to raw query", query=True)
        db = self._require_db()
        logger.debug("raw %s", result.sql)
        db.raw(result.sql, result.args, *fields)

    def exec(self) -> None:
        """Execute a statement that yields no rows."""
        self.exec_result()

    def exec_result(self) -> int:
        """Execute a statement and return the number of rows affected.

        With :meth:`set_local`, the statement runs inside a transaction
        which is started and committed here unless the DB already is one.

        Raises:
            TransactionError: If the transaction cannot be started or committed.
        """
        result = self._prepare("rendering query to exec", query=False)
        db = self._require_db()
        logger.debug("exec %s", result.sql)
        if not self.set_local_statement:
            return db.exec_result(result.sql, result.args)
        if db.is_transaction():
            db.set(self.set_local_statement)
            return db.exec_result(result.sql, result.args)

        try:
            tx = db.begin_transaction()
        except Exception as err:
            raise TransactionError(
                "starting transaction to run SET LOCAL", str(err), wrapped=err
            ) from err
        try:
            tx.set(self.set_local_statement)
            affected = tx.exec_result(result.sql, result.args)
        except Exception:
            tx.rollback_transaction()
            raise
        try:
            tx.commit_transaction()
        except Exception as err:
            raise TransactionError(
                "could not commit the transaction", str(err), wrapped=err
            ) from err
        return affected
