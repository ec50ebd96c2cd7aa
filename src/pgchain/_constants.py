"""SQL literals and limits shared across the rendering engine."""

NULL_VALUE = "NULL"
"""Inline literal written in place of a ``None`` argument."""

CURRENT_TIMESTAMP_PG_FN = "CURRENT_TIMESTAMP"
"""Postgres function returning the current timestamp with time zone."""

MAX_POSTGRES_PARAMETERS = 65535
"""Postgres refuses statements with more bind parameters than this."""

INPUT_MARKER = "?"
"""Caller-facing placeholder in fragment text."""

ESCAPE_CHAR = "\\"
"""Prefix that turns an input marker into a literal question mark."""
