"""Fixtures for integration tests against a real PostgreSQL."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from pgchain import NoRowsError
from pgchain._errors import ERR_MSG_NO_ROWS


# ---------------------------------------------------------------------------
# Container runtime detection (Docker or Podman)
# ---------------------------------------------------------------------------

def _get_podman_socket() -> str | None:
    """Get the Podman machine socket path, if available."""
    try:
        result = subprocess.run(
            ["podman", "machine", "inspect", "--format",
             "{{.ConnectionInfo.PodmanSocket.Path}}"],
            capture_output=True, text=True, check=True, timeout=5,
        )
        sock = result.stdout.strip()
        if sock and os.path.exists(sock):
            return sock
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired,
            FileNotFoundError):
        pass
    return None


def _container_runtime_available() -> bool:
    for cmd in ["docker", "podman"]:
        if shutil.which(cmd):
            try:
                subprocess.run(
                    [cmd, "info"], capture_output=True, check=True, timeout=10,
                )
                return True
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired,
                    FileNotFoundError):
                continue
    return False


def _configure_testcontainers_for_podman() -> None:
    if not shutil.which("podman"):
        return
    os.environ.setdefault("TESTCONTAINERS_RYUK_DISABLED", "true")
    if "DOCKER_HOST" not in os.environ:
        sock = _get_podman_socket()
        if sock:
            os.environ["DOCKER_HOST"] = f"unix://{sock}"


CONTAINER_RUNTIME_AVAILABLE = _container_runtime_available()

if CONTAINER_RUNTIME_AVAILABLE:
    _configure_testcontainers_for_podman()


# ---------------------------------------------------------------------------
# psycopg backed DB
# ---------------------------------------------------------------------------

_POSITIONAL_RE = re.compile(r"\$\d+")


def _to_driver(statement: str) -> str:
    """Rewrite ``$n`` parameters to psycopg ``%s``.

    Parameters are numbered in text order, so a plain substitution keeps
    them aligned with the argument list.
    """
    return _POSITIONAL_RE.sub("%s", statement.replace("%", "%%"))


class PsycopgDB:
    """Test driver implementing the ``DB`` protocol on a psycopg connection.

    The connection runs in autocommit mode; transactions are opened with
    explicit ``BEGIN`` statements.
    """

    def __init__(self, conn, in_transaction: bool = False) -> None:
        self.conn = conn
        self.in_transaction = in_transaction
        self.statements: list[str] = []

    def _execute(self, statement: str, args: Sequence[Any]):
        self.statements.append(statement)
        cur = self.conn.cursor()
        cur.execute(_to_driver(statement), list(args))
        return cur

    def clone(self) -> PsycopgDB:
        return PsycopgDB(self.conn, self.in_transaction)

    def query_iter(
        self, statement: str, fields: list[str], args: Sequence[Any]
    ) -> Callable[[dict[str, Any]], tuple[bool, Callable[[], None]]]:
        cur = self._execute(statement, args)

        def fetch(receiver: dict[str, Any]) -> tuple[bool, Callable[[], None]]:
            row = cur.fetchone()
            if row is None:
                return False, cur.close
            receiver.clear()
            receiver.update(zip(fields, row))
            return True, cur.close

        return fetch

    def query(
        self, statement: str, fields: list[str], args: Sequence[Any]
    ) -> Callable[[list[dict[str, Any]]], None]:
        cur = self._execute(statement, args)

        def fetch(receiver: list[dict[str, Any]]) -> None:
            try:
                receiver.extend(dict(zip(fields, row)) for row in cur.fetchall())
            finally:
                cur.close()

        return fetch

    def query_primitive(
        self, statement: str, field: str, args: Sequence[Any]
    ) -> Callable[[list[Any]], None]:
        cur = self._execute(statement, args)

        def fetch(receiver: list[Any]) -> None:
            try:
                receiver.extend(row[0] for row in cur.fetchall())
            finally:
                cur.close()

        return fetch

    def raw(self, statement: str, args: Sequence[Any], *fields: Any) -> None:
        """Scan the first row; each field is a list that receives one value."""
        cur = self._execute(statement, args)
        try:
            row = cur.fetchone()
        finally:
            cur.close()
        if row is None:
            raise NoRowsError(ERR_MSG_NO_ROWS, f"raw query {statement}")
        for target, value in zip(fields, row):
            target[:] = [value]

    def exec(self, statement: str, args: Sequence[Any]) -> None:
        self._execute(statement, args).close()

    def exec_result(self, statement: str, args: Sequence[Any]) -> int:
        cur = self._execute(statement, args)
        try:
            return cur.rowcount
        finally:
            cur.close()

    def begin_transaction(self) -> PsycopgDB:
        self.conn.execute("BEGIN")
        return PsycopgDB(self.conn, in_transaction=True)

    def commit_transaction(self) -> None:
        self.conn.execute("COMMIT")
        self.in_transaction = False

    def rollback_transaction(self) -> None:
        self.conn.execute("ROLLBACK")
        self.in_transaction = False

    def is_transaction(self) -> bool:
        return self.in_transaction

    def set(self, set_local: str) -> None:
        self.conn.execute(f"SET LOCAL {set_local}")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        age INTEGER,
        tags TEXT[],
        avatar BYTEA,
        profile JSONB,
        visits INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMP WITH TIME ZONE
    )
"""


@pytest.fixture(scope="session")
def pg_container():
    if not CONTAINER_RUNTIME_AVAILABLE:
        pytest.skip("No container runtime (Docker/Podman) available")
    from testcontainers.postgres import PostgresContainer
    with PostgresContainer("postgres:16") as pg:
        yield pg


@pytest.fixture(scope="session")
def pg_conn(pg_container):
    import psycopg
    conn = psycopg.connect(
        host=pg_container.get_container_host_ip(),
        port=pg_container.get_exposed_port(5432),
        user=pg_container.username,
        password=pg_container.password,
        dbname=pg_container.dbname,
        autocommit=True,
    )
    conn.execute(_SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def pg(pg_conn):
    """A clean ``users`` table and a DB bound to it."""
    pg_conn.execute("TRUNCATE users RESTART IDENTITY")
    return PsycopgDB(pg_conn)
