"""pgchain - Fluent builder for parameterized Postgres statements."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pgchain")
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.0.0.dev0"

from pgchain._chain import ExpressionChain, SelectArgument
from pgchain._conflict import OnConflict, OnConflictAction, OnUpdate
from pgchain._constants import CURRENT_TIMESTAMP_PG_FN, MAX_POSTGRES_PARAMETERS, NULL_VALUE
from pgchain._errors import (
    ChainError,
    ConflictClauseError,
    CTEUnionError,
    FieldNameExtractionError,
    InsertColumnsMismatchError,
    InvalidArgumentsError,
    InvalidStatementError,
    MissingMainOperationError,
    MissingTableError,
    NoDBError,
    NoRowsError,
    NotQueryableError,
    PlaceholderMismatchError,
    ReturningError,
    TablePrefixError,
    TransactionError,
)
from pgchain._formatter import Formatter
from pgchain._group import ChainGroup
from pgchain._helpers import (
    as_,
    constraint,
    distinct,
    equals,
    greater_or_equal_than,
    greater_than,
    in_,
    join_on,
    lesser_or_equal_than,
    lesser_than,
    like,
    not_,
    not_equals,
    not_like,
    not_null,
    null,
    or_,
    set_to_current_timestamp,
)
from pgchain._orderby import Direction, OrderByOperator, asc, desc
from pgchain._placeholders import expand_args, marks_to_placeholders, placeholders_to_positional
from pgchain._rendering import Result
from pgchain._segment import Modifier, QuerySegmentAtom, Segment, SQLBool
from pgchain.connection import DB, ResultFetch, ResultFetchIter
from pgchain.selectparse import SelectParser, field_names, parse_select

__all__ = [
    "ExpressionChain",
    "SelectArgument",
    "ChainGroup",
    "Result",
    "DB",
    "ResultFetch",
    "ResultFetchIter",
    "OnConflict",
    "OnConflictAction",
    "OnUpdate",
    "Formatter",
    "OrderByOperator",
    "Direction",
    "asc",
    "desc",
    "QuerySegmentAtom",
    "Segment",
    "SQLBool",
    "Modifier",
    "SelectParser",
    "parse_select",
    "field_names",
    "expand_args",
    "placeholders_to_positional",
    "marks_to_placeholders",
    "as_",
    "constraint",
    "distinct",
    "equals",
    "greater_or_equal_than",
    "greater_than",
    "in_",
    "join_on",
    "lesser_or_equal_than",
    "lesser_than",
    "like",
    "not_",
    "not_equals",
    "not_like",
    "not_null",
    "null",
    "or_",
    "set_to_current_timestamp",
    "NULL_VALUE",
    "CURRENT_TIMESTAMP_PG_FN",
    "MAX_POSTGRES_PARAMETERS",
    "ChainError",
    "ConflictClauseError",
    "CTEUnionError",
    "FieldNameExtractionError",
    "InsertColumnsMismatchError",
    "InvalidArgumentsError",
    "InvalidStatementError",
    "MissingMainOperationError",
    "MissingTableError",
    "NoDBError",
    "NoRowsError",
    "NotQueryableError",
    "PlaceholderMismatchError",
    "ReturningError",
    "TablePrefixError",
    "TransactionError",
]
