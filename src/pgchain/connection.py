"""Interface to the database driver that runs rendered chains.

pgchain only renders SQL; connections, pools, transactions and row mapping
belong to a driver implementing :class:`DB`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

ResultFetch = Callable[[Any], None]
"""Fills the given receiver with every row of a query result."""

ResultFetchIter = Callable[[Any], tuple[bool, Callable[[], None]]]
"""Fills the given receiver with the next row.

Returns whether more rows remain and a function that releases the cursor.
"""


@runtime_checkable
class DB(Protocol):
    """Minimal database protocol consumed by expression chain terminations.

    ``statement`` always uses ``$n`` positional parameters and ``args`` is
    aligned with them.
    """

    def clone(self) -> DB: ...

    def query_iter(
        self, statement: str, fields: list[str], args: Sequence[Any]
    ) -> ResultFetchIter: ...

    def query(self, statement: str, fields: list[str], args: Sequence[Any]) -> ResultFetch: ...

    def query_primitive(
        self, statement: str, field: str, args: Sequence[Any]
    ) -> ResultFetch: ...

    def raw(self, statement: str, args: Sequence[Any], *fields: Any) -> None: ...

    def exec(self, statement: str, args: Sequence[Any]) -> None: ...

    def exec_result(self, statement: str, args: Sequence[Any]) -> int: ...

    def begin_transaction(self) -> DB: ...

    def commit_transaction(self) -> None: ...

    def rollback_transaction(self) -> None: ...

    def is_transaction(self) -> bool: ...

    def set(self, set_local: str) -> None: ...
