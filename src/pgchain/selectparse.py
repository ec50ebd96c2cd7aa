"""Best-effort extraction of column names from a SELECT projection.

The projection (``a, t.b, count(*) AS total``) is split into top-level
columns with a small lark grammar; commas nested in parentheses or quotes do
not split. Each column then gets the name a row mapper would see for it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from lark import Lark, Token, Transformer
from lark.exceptions import LarkError

from pgchain._errors import FieldNameExtractionError

_GRAMMAR = r"""
select_list: column (COMMA column)*
column: _term*
_term: group | WORD | STRING
group: LPAR _inner* RPAR
_inner: group | WORD | STRING | COMMA

LPAR: "("
RPAR: ")"
COMMA: ","
STRING: /'(?:[^']|'')*'/ | /"[^"]*"/
WORD: /(?:\\.|[^\s(),'"\\])+/

%import common.WS
%ignore WS
"""

_parser = Lark(_GRAMMAR, parser="lalr", start="select_list")

_SIMPLE_WORD_RE = re.compile(r"[.0-9a-z_-]+")


@dataclass(frozen=True)
class _Group:
    """A parenthesized run of tokens, commas dropped."""

    items: tuple[Any, ...]
    start_pos: int
    end_pos: int


class _ColumnCollector(Transformer):
    """Turns the parse tree into a list of columns, each a list of items."""

    def group(self, children: list[Any]) -> _Group:
        lpar, *items, rpar = children
        kept = tuple(
            item for item in items if not (isinstance(item, Token) and item.type == "COMMA")
        )
        return _Group(kept, lpar.start_pos, rpar.end_pos)

    def column(self, children: list[Any]) -> list[Any]:
        return list(children)

    def select_list(self, children: list[Any]) -> list[list[Any]]:
        return [c for c in children if not isinstance(c, Token)]


@dataclass(frozen=True)
class SelectParser:
    """Columns of a SELECT projection and the names they will be returned as."""

    statement: str
    columns: list[str] = field(default_factory=list)
    column_names: list[str] = field(default_factory=list)


def _start(item: Any) -> int:
    return item.start_pos


def _end(item: Any) -> int:
    return item.end_pos


def _word_name(token: Token) -> str:
    text = str(token)
    if text.startswith('"') and text.endswith('"') and len(text) >= 2:
        return text[1:-1]
    return text.lower().split(".")[-1]


def _column_name(items: list[Any] | tuple[Any, ...], raw: str) -> str:
    if len(items) == 1 and isinstance(items[0], _Group):
        # Wholly parenthesized, look inside.
        return _column_name(items[0].items, raw)

    # column or table.column
    if len(items) == 1 and isinstance(items[0], Token):
        lowered = str(items[0]).lower()
        if _SIMPLE_WORD_RE.fullmatch(lowered):
            return lowered.split(".")[-1]

    # expression AS alias
    if (
        len(items) >= 3
        and isinstance(items[-1], Token)
        and isinstance(items[-2], Token)
        and str(items[-2]).lower() == "as"
    ):
        return _word_name(items[-1])

    # DISTINCT column, DISTINCT ON (...) column, function(...)
    last = items[-1] if items else None
    if isinstance(last, Token):
        return _word_name(last)
    if isinstance(last, _Group) and len(items) >= 2 and isinstance(items[-2], Token):
        return str(items[-2]).lower()

    raise FieldNameExtractionError(
        "could not extract potential column name, please use AS in your query",
        f"could not extract potential column name from {raw!r}",
    )


def parse_select(statement: str) -> SelectParser:
    """Split a SELECT projection into columns and derive their names.

    Args:
        statement: The text between ``SELECT`` and ``FROM``.

    Returns:
        A SelectParser with the raw text of each column and its name.

    Raises:
        FieldNameExtractionError: If the projection cannot be tokenized or a
            column has no recognizable name.
    """
    try:
        tree = _parser.parse(statement)
    except LarkError as err:
        raise FieldNameExtractionError(
            "could not parse select projection",
            f"could not parse select projection {statement!r}: {err}",
            wrapped=err,
        ) from err

    columns: list[str] = []
    names: list[str] = []
    for items in _ColumnCollector().transform(tree):
        if not items:
            continue
        raw = statement[_start(items[0]) : _end(items[-1])]
        columns.append(raw)
        names.append(_column_name(items, raw))
    return SelectParser(statement=statement, columns=columns, column_names=names)


def field_names(statement: str) -> list[str]:
    """Shorthand for ``parse_select(statement).column_names``."""
    return parse_select(statement).column_names
