"""
Unit of Work Pattern - Transaction Coordination

💾 Scoped Mongo Transactions:
A unit of work owns one Mongo client session for the duration of an
``async with`` block. Repository calls join the transaction by passing
``uow.options`` (or ``QueryOptions(session=uow.session)``).

Key Features:
- Commit on clean exit
- Abort on any exception, re-raising the original error unchanged
- The session is ended on every exit path
"""

from typing import Any, AsyncIterator, Optional, TYPE_CHECKING
from contextlib import asynccontextmanager
import logging
import uuid

from ..errors import PersistenceError
from ..repositories.interface import QueryOptions

if TYPE_CHECKING:
    from ..backends.mongo import MongoConnection

logger = logging.getLogger(__name__)


class MongoUnitOfWork:
    """
    Unit of Work over a Mongo client session.

    Usage:
        async with MongoUnitOfWork(connection) as uow:
            await users.create(user, uow.options)
            await accounts.update(account_id, {"owner": user.id}, uow.options)

            # Commit happens automatically on successful exit
            # Abort happens automatically on exceptions
    """

    def __init__(self, connection: 'MongoConnection'):
        self.connection = connection
        self.session: Any = None

        # Transaction state
        self._transaction_id = str(uuid.uuid4())
        self._is_active = False
        self._is_committed = False
        self._is_rolled_back = False

    @property
    def transaction_id(self) -> str:
        return self._transaction_id

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def is_committed(self) -> bool:
        return self._is_committed

    @property
    def is_rolled_back(self) -> bool:
        return self._is_rolled_back

    @property
    def options(self) -> QueryOptions:
        """QueryOptions bound to this transaction's session"""
        return QueryOptions(session=self.session)

    async def begin(self):
        """Open a session and start the transaction"""
        if self._is_active:
            raise PersistenceError.invalid_request("Transaction is already active")
        if self._is_committed or self._is_rolled_back:
            raise PersistenceError.invalid_request("Transaction has already been completed")

        client = await self.connection.connect()
        logger.info(f"Starting transaction session {self._transaction_id}")
        self.session = await client.start_session()
        try:
            self.session.start_transaction()
        except BaseException:
            await self._end_session()
            raise
        self._is_active = True

    async def commit(self):
        if not self._is_active:
            raise PersistenceError.invalid_request("No active transaction to commit")

        logger.debug(f"Committing transaction {self._transaction_id}")
        await self.session.commit_transaction()
        self._is_active = False
        self._is_committed = True
        logger.debug(f"Transaction {self._transaction_id} committed")

    async def rollback(self, error: Optional[BaseException] = None):
        """Abort the transaction; a failing abort is logged, never raised"""
        if not self._is_active:
            return

        logger.error(f"Aborting transaction {self._transaction_id}: {error}")
        self._is_active = False
        self._is_rolled_back = True
        try:
            await self.session.abort_transaction()
        except Exception as abort_error:
            logger.error(f"Transaction {self._transaction_id} abort failed: {abort_error}")

    async def _end_session(self):
        if self.session is None:
            return
        logger.info(f"Ending transaction session {self._transaction_id}")
        try:
            await self.session.end_session()
        except Exception as end_error:
            logger.error(f"Ending session {self._transaction_id} failed: {end_error}")

    async def __aenter__(self):
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                try:
                    await self.commit()
                except Exception as commit_error:
                    await self.rollback(commit_error)
                    if isinstance(commit_error, PersistenceError):
                        raise
                    raise PersistenceError.internal(
                        f"Transaction {self._transaction_id} commit failed: {commit_error}",
                        commit_error
                    ) from commit_error
            else:
                await self.rollback(exc_val)
        finally:
            await self._end_session()
        return False  # Don't suppress exceptions


@asynccontextmanager
async def TransactionScope(connection: 'MongoConnection') -> AsyncIterator[MongoUnitOfWork]:
    """
    Convenience context manager for creating Unit of Work transactions.

    Usage:
        async with TransactionScope(connection) as uow:
            # Do work with uow.options
            pass
    """
    uow = MongoUnitOfWork(connection)
    async with uow:
        yield uow


# Export main components
__all__ = ["MongoUnitOfWork", "TransactionScope"]
