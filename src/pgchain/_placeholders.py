"""Input marker expansion and ``?`` to ``$n`` conversion."""

from __future__ import annotations

from collections.abc import Sequence
from io import StringIO
from typing import Any

from pgchain._constants import ESCAPE_CHAR, INPUT_MARKER, NULL_VALUE
from pgchain._errors import PlaceholderMismatchError

_BYTE_SEQUENCE_TYPES = (bytes, bytearray, memoryview)
_EXPANDABLE_TYPES = (list, tuple)

ESCAPED_MARKER = ESCAPE_CHAR + INPUT_MARKER


def is_expandable(arg: Any) -> bool:
    """Whether ``arg`` is a sequence that spreads over several markers.

    Byte sequences are binary scalars and are never expanded.
    """
    if isinstance(arg, _BYTE_SEQUENCE_TYPES):
        return False
    return isinstance(arg, _EXPANDABLE_TYPES)


def _is_escaped_marker(text: str, i: int) -> bool:
    return text[i] == ESCAPE_CHAR and i + 1 < len(text) and text[i + 1] == INPUT_MARKER


def expand_args(expression: str, args: Sequence[Any]) -> tuple[str, list[Any]]:
    """Rewrite ``expression`` so that every marker maps to exactly one argument.

    Args:
        expression: SQL fragment with ``?`` markers, ``\\?`` for a literal ``?``.
        args: Caller arguments, one per marker.

    Returns:
        The rewritten fragment and the flattened argument list. ``None``
        arguments become an inline ``NULL``; list and tuple arguments of
        length N become N markers joined by ``", "``. Escaped markers are
        kept escaped.

    Markers without an argument are left in place and surplus arguments are
    appended, so an unbalanced fragment is reported when it is rendered.
    """
    w = StringIO()
    expanded: list[Any] = []
    position = 0
    i = 0
    while i < len(expression):
        if _is_escaped_marker(expression, i):
            w.write(ESCAPED_MARKER)
            i += 2
            continue
        ch = expression[i]
        i += 1
        if ch != INPUT_MARKER or position >= len(args):
            w.write(ch)
            continue
        arg = args[position]
        position += 1
        if arg is None:
            w.write(NULL_VALUE)
        elif is_expandable(arg):
            w.write(", ".join([INPUT_MARKER] * len(arg)))
            expanded.extend(arg)
        else:
            w.write(INPUT_MARKER)
            expanded.append(arg)
    expanded.extend(args[position:])
    return w.getvalue(), expanded


def placeholders_to_positional(query: str) -> tuple[str, int]:
    """Replace each unescaped ``?`` in ``query`` by ``$1``, ``$2``, ...

    Returns:
        The converted query, with ``\\?`` unescaped to ``?``, and the number
        of positional parameters written.
    """
    w = StringIO()
    counter = 0
    i = 0
    while i < len(query):
        if _is_escaped_marker(query, i):
            w.write(INPUT_MARKER)
            i += 2
            continue
        ch = query[i]
        i += 1
        if ch == INPUT_MARKER:
            counter += 1
            w.write(f"${counter}")
        else:
            w.write(ch)
    return w.getvalue(), counter


def marks_to_placeholders(query: str, args: Sequence[Any]) -> tuple[str, list[Any]]:
    """Convert a finished ``?`` query to positional form, expanding arguments.

    Intended for hand written queries that never went through a chain.
    ``None`` arguments are passed as the string ``"NULL"``.

    Raises:
        PlaceholderMismatchError: If markers and arguments do not pair up.
    """
    values = [NULL_VALUE if arg is None else arg for arg in args]
    w = StringIO()
    expanded: list[Any] = []
    position = 0
    i = 0
    while i < len(query):
        if _is_escaped_marker(query, i):
            w.write(INPUT_MARKER)
            i += 2
            continue
        ch = query[i]
        i += 1
        if ch != INPUT_MARKER:
            w.write(ch)
            continue
        if position >= len(values):
            raise PlaceholderMismatchError(
                f"the query has more markers than the {len(values)} args passed",
                f"query {query!r} ran out of args {values!r}",
            )
        arg = values[position]
        position += 1
        items = list(arg) if is_expandable(arg) else [arg]
        markers = []
        for item in items:
            expanded.append(item)
            markers.append(f"${len(expanded)}")
        w.write(", ".join(markers))
    if position != len(values):
        raise PlaceholderMismatchError(
            f"the query has {position} markers but {len(values)} args were passed",
            f"query {query!r} args {values!r}",
        )
    return w.getvalue(), expanded
