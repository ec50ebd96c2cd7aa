"""Shared test fixtures."""

from unittest.mock import MagicMock

import pytest

from pgchain import ExpressionChain


@pytest.fixture
def db():
    conn = MagicMock()
    conn.is_transaction.return_value = False
    conn.exec_result.return_value = 1
    return conn


@pytest.fixture
def tx(db):
    return db.begin_transaction.return_value


@pytest.fixture
def users(db):
    return ExpressionChain(db).select("id", "name").table("users")
