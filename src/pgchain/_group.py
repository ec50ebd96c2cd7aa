"""Running several statements in one transaction."""

from __future__ import annotations

import logging

from pgchain._chain import ExpressionChain
from pgchain._errors import (
    ERR_MSG_NO_DB,
    ChainError,
    InvalidStatementError,
    NoDBError,
    TransactionError,
    wrap_error,
)
from pgchain._segment import Segment

logger = logging.getLogger(__name__)


class ChainGroup:
    """Statements executed together, all or nothing.

    The transaction is opened on the DB of the first chain added.
    """

    def __init__(self) -> None:
        self.chains: list[ExpressionChain] = []
        self.set_local_statement = ""

    def add(self, chain: ExpressionChain) -> ChainGroup:
        self.chains.append(chain)
        return self

    def set_local(self, statement: str) -> ChainGroup:
        """Run ``SET LOCAL statement`` before the grouped statements."""
        self.set_local_statement = statement
        return self

    def run(self) -> None:
        """Execute every chain in order inside one transaction.

        Raises:
            InvalidStatementError: If a chain is a SELECT.
            NoDBError: If the first chain has no DB.
            TransactionError: If the transaction cannot be started or committed.
            ChainError: If a chain fails to render, after rolling back.
        """
        if not self.chains:
            return
        for chain in self.chains:
            operation = chain.main_operation
            if operation is not None and operation.segment == Segment.SELECT:
                raise InvalidStatementError(
                    "cannot query as part of a chain group",
                    f"select in chain group: {chain}",
                )

        db = self.chains[0].db
        if db is None:
            raise NoDBError(ERR_MSG_NO_DB)
        try:
            tx = db.begin_transaction()
        except Exception as err:
            raise TransactionError(
                "getting transaction to run chain group", str(err), wrapped=err
            ) from err

        try:
            if self.set_local_statement:
                tx.set(self.set_local_statement)
            for chain in self.chains:
                try:
                    result = chain.render()
                except ChainError as err:
                    raise wrap_error(err, "rendering part of chain transaction") from err
                logger.debug("chain group exec %s", result.sql)
                tx.exec(result.sql, result.args)
        except Exception:
            tx.rollback_transaction()
            raise

        try:
            tx.commit_transaction()
        except Exception as err:
            raise TransactionError(
                "could not commit the transaction", str(err), wrapped=err
            ) from err
