"""Table prefix substitution for ``{.alias}`` placeholders in fragment text."""

from __future__ import annotations

import re

from pgchain._errors import TablePrefixError

_PREFIX_RE = re.compile(r"\{\.([A-Za-z_][A-Za-z0-9_]*)\}")


class Formatter:
    """Key to table-prefix mapping applied to text as it enters a chain.

    ``{.users}`` in a fragment is replaced by the prefix
    registered under ``users``.
    """

    def __init__(self, format_table: dict[str, str] | None = None) -> None:
        self.format_table: dict[str, str] = dict(format_table or {})

    def add(self, key: str, prefix: str) -> bool:
        """Register ``prefix`` under ``key``; returns True if it replaced one."""
        replaced = key in self.format_table
        self.format_table[key] = prefix
        return replaced

    def delete(self, key: str) -> None:
        self.format_table.pop(key, None)

    def list(self) -> list[str]:
        return sorted(self.format_table)

    def copy(self) -> Formatter:
        return Formatter(self.format_table)

    def format(self, src: str) -> str:
        """Substitute every known ``{.key}`` in ``src``.

        Raises:
            TablePrefixError: If ``src`` references a key with no prefix.
        """
        missing: list[str] = []

        def _lookup(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in self.format_table:
                missing.append(key)
                return match.group(0)
            return self.format_table[key]

        formatted = _PREFIX_RE.sub(_lookup, src)
        if missing:
            raise TablePrefixError(
                "unknown table prefix",
                f"no table prefix registered for {', '.join(missing)} in {src!r}",
            )
        return formatted
