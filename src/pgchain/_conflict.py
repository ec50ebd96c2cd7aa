"""``ON CONFLICT ... DO NOTHING | DO UPDATE SET ...`` clauses for INSERT."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pgchain._constants import INPUT_MARKER, NULL_VALUE
from pgchain._errors import InvalidArgumentsError, wrap_error
from pgchain._segment import Segment

if TYPE_CHECKING:
    from pgchain._chain import ExpressionChain


@dataclass(frozen=True)
class _Operation:
    """One piece of the conflict action.

    Terminal operations (the WHERE of an update) are rendered after all
    the assignments regardless of when they were added.
    """

    text: str
    args: tuple[Any, ...] = ()
    termination: bool = False


@dataclass
class OnConflictAction:
    """What to do on conflict, restricted to DO NOTHING or DO UPDATE."""

    phrase: str = ""
    operations: list[_Operation] = field(default_factory=list)

    def do_nothing(self) -> None:
        """Terminate the clause with ``DO NOTHING``."""
        self.phrase = "DO NOTHING"
        self.operations = []

    def do_update(self) -> OnUpdate:
        """Continue the clause with ``DO UPDATE SET`` assignments."""
        self.phrase = "DO UPDATE SET"
        self.operations = []
        return OnUpdate(self)


class OnUpdate:
    """Accumulates the assignments of a ``DO UPDATE SET``."""

    def __init__(self, action: OnConflictAction) -> None:
        self._action = action

    def _append(self, operation: _Operation) -> OnUpdate:
        self._action.operations.append(operation)
        return self

    def set_default(self, column: str) -> OnUpdate:
        """``column = DEFAULT``."""
        return self._append(_Operation(f"{column} = DEFAULT"))

    def set_now(self, column: str) -> OnUpdate:
        """``column = now()``."""
        return self._append(_Operation(f"{column} = now()"))

    def set(self, *pairs: Any) -> OnUpdate:
        """Assign values given as ``column, value, column, value, ...``.

        Values travel as arguments; ``None`` is written as ``NULL``.

        Raises:
            InvalidArgumentsError: If ``pairs`` has odd length or a column
                name is not a string.
        """
        for column, value in _pairwise(pairs, "set"):
            if value is None:
                self._append(_Operation(f"{column} = {NULL_VALUE}"))
            else:
                self._append(_Operation(f"{column} = {INPUT_MARKER}", (value,)))
        return self

    def set_sql(self, *pairs: str) -> OnUpdate:
        """Assign raw SQL given as ``column, expression, ...``, no escaping."""
        for column, expression in _pairwise(pairs, "set_sql"):
            self._append(_Operation(f"{column} = {expression}"))
        return self

    def where(self, chain: ExpressionChain) -> None:
        """Restrict the update with the WHERE atoms of ``chain``.

        This ends the clause, nothing can be chained after it.
        A chain without WHERE atoms adds nothing.

        Raises:
            ChainError: The first error deferred on ``chain``.
        """
        if chain.errors:
            raise wrap_error(chain.errors[0], "building conflict update where")
        if not any(atom.segment == Segment.WHERE for atom in chain.segments):
            return
        condition, args = chain.render_where_raw()
        self._append(_Operation(f"WHERE {condition}", tuple(args), termination=True))


def _pairwise(pairs: tuple[Any, ...], method: str) -> list[tuple[str, Any]]:
    if len(pairs) % 2 != 0:
        raise InvalidArgumentsError(
            f"arguments to `do_update().{method}(...)` must be even in length",
            f"{method} got {len(pairs)} arguments: {pairs!r}",
        )
    result = []
    for column, value in zip(pairs[::2], pairs[1::2]):
        if not isinstance(column, str):
            raise InvalidArgumentsError(
                f"column names passed to `do_update().{method}(...)` must be strings",
                f"{method} got column {column!r}",
            )
        result.append((column, value))
    return result


class OnConflict:
    """Target and action of an ``ON CONFLICT`` clause.

    Configured inside the callback given to ``ExpressionChain.on_conflict``::

        chain.on_conflict(lambda c: c.on_column("id").do_update().set("n", 1))
    """

    def __init__(self) -> None:
        self.target = ""
        self.action: OnConflictAction | None = None

    def on_constraint(self, name: str) -> OnConflictAction:
        """``ON CONFLICT ON CONSTRAINT name``."""
        self.target = f"ON CONSTRAINT {name}"
        self.action = OnConflictAction()
        return self.action

    def on_column(self, *columns: str) -> OnConflictAction:
        """``ON CONFLICT ( a, b )``, entries may carry COLLATE/opclass text."""
        self.target = f"( {', '.join(columns)} )"
        self.action = OnConflictAction()
        return self.action

    def do_nothing(self) -> None:
        """``ON CONFLICT DO NOTHING`` without a conflict target."""
        self.target = ""
        self.action = OnConflictAction()
        self.action.do_nothing()

    def clone(self) -> OnConflict:
        other = OnConflict()
        other.target = self.target
        if self.action is not None:
            other.action = OnConflictAction(self.action.phrase, list(self.action.operations))
        return other

    def render(self) -> tuple[str, list[Any]]:
        """Return the clause text with ``?`` markers and its arguments."""
        if self.action is None or not self.action.phrase:
            return "", []

        parts = ["ON CONFLICT"]
        if self.target:
            parts.append(self.target)
        parts.append(self.action.phrase)

        args: list[Any] = []
        assignments = [op for op in self.action.operations if not op.termination]
        terminations = [op for op in self.action.operations if op.termination]
        if assignments:
            parts.append(", ".join(op.text for op in assignments))
        if terminations:
            parts.append(" ".join(op.text for op in terminations))
        for op in assignments + terminations:
            args.extend(op.args)
        return " ".join(parts), args
