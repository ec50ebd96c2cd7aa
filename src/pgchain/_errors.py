"""Exception hierarchy for building, rendering and running expression chains."""

from __future__ import annotations


class ChainError(Exception):
    """Base exception for expression chain errors.

    Provides dual messaging: a user-facing message and internal details
    for logging, which may include the offending SQL text.
    """

    def __init__(
        self,
        user_message: str,
        internal_details: str = "",
        wrapped: Exception | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.internal_details = internal_details or user_message
        self.wrapped = wrapped

    def internal(self) -> str:
        return self.internal_details


class MissingMainOperationError(ChainError):
    """Raised when a chain has no SELECT/INSERT/UPDATE/DELETE to render."""


class MissingTableError(ChainError):
    """Raised when a statement that needs a table has none."""


class InvalidStatementError(ChainError):
    """Raised when the main operation cannot produce a valid statement."""


class PlaceholderMismatchError(ChainError):
    """Raised when the number of markers differs from the number of arguments."""


class ConflictClauseError(ChainError):
    """Raised when more than one ON CONFLICT clause is attached to a chain."""


class ReturningError(ChainError):
    """Raised when RETURNING is used with a statement that does not support it."""


class CTEUnionError(ChainError):
    """Raised when common table expressions and unions are nested."""


class TablePrefixError(ChainError):
    """Raised when a table prefix placeholder has no registered value."""


class InvalidArgumentsError(ChainError):
    """Raised when a builder method is called with malformed arguments."""


class InsertColumnsMismatchError(ChainError):
    """Raised when multi-row insert columns have different lengths."""


class FieldNameExtractionError(ChainError):
    """Raised when a column name cannot be derived from a SELECT projection."""


class NotQueryableError(ChainError):
    """Raised when a query termination is used on a statement yielding no rows."""


class NoDBError(ChainError):
    """Raised when a chain is executed without a database attached."""


class NoRowsError(ChainError):
    """Raised by drivers when a query expected to yield rows does not."""


class TransactionError(ChainError):
    """Raised when a transaction cannot be started, committed or rolled back."""


def wrap_error(err: ChainError, context: str) -> ChainError:
    """Return a copy of ``err`` with ``context`` prefixed to its messages.

    The error class is preserved so callers can still match on it.
    """
    return type(err)(
        f"{context}: {err.user_message}",
        f"{context}: {err.internal_details}",
        wrapped=err,
    )


# User-facing error message constants
ERR_MSG_MISSING_MAIN_OPERATION = "missing main operation to perform on the db"
ERR_MSG_ONLY_ONE_CONFLICT = "only 1 ON CONFLICT clause can be associated per statement"
ERR_MSG_INVALID_RETURNING = "Returning is only valid on UPDATE and INSERT statements"
ERR_MSG_CTE_UNION = "cannot handle unions with CTEs outside of the primary query"
ERR_MSG_NOT_QUERYABLE = (
    "cannot invoke query with statements other than SELECT, please use exec"
)
ERR_MSG_NO_DB = "neither transaction or database connection exists"
ERR_MSG_NO_ROWS = "no rows in result set"
