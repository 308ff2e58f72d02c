from __future__ import annotations

from contextlib import asynccontextmanager
from enum import Enum
from logging import getLogger
from typing import TYPE_CHECKING, Any, AsyncIterator, Sequence

from dbhelpers.base.executor import Executor
from dbhelpers.base.hydrator import Hydrator
from dbhelpers.base.interface import BaseInterface
from dbhelpers.exception import (
    BeginError,
    CommitError,
    RollbackError,
    TransactionError,
)

if TYPE_CHECKING:
    from dbhelpers.sql.executor import SQLExecutor

logger = getLogger("dbhelpers.transaction")


class IsolationLevel(Enum):
    """SQL transaction isolation levels"""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class TransactionState(Enum):
    """Transaction state machine states"""

    PENDING = "pending"  # Created but not started
    ACTIVE = "active"  # Transaction has begun
    COMMITTED = "committed"  # Transaction committed successfully
    ROLLED_BACK = "rolled_back"  # Transaction was rolled back


class Transaction(Executor):
    """
    A transaction opened by `SQLExecutor.run_tx`. It holds one connection
    and offers the same query helpers as the executor that created it. It
    must be used sequentially, and only until `run_tx` returns.
    """

    def __init__(
        self,
        executor: SQLExecutor,
        conn: Any,
        isolation: IsolationLevel = IsolationLevel.READ_COMMITTED,
    ) -> None:
        self._executor = executor
        self._conn = conn
        self._isolation = isolation
        self._state = TransactionState.PENDING

    @property
    def pool(self) -> BaseInterface:
        return self._executor.pool

    @property
    def hydrator(self) -> Hydrator:
        return self._executor.hydrator

    @property
    def connection(self) -> Any:
        """The underlying driver connection"""
        return self._conn

    @property
    def isolation(self) -> IsolationLevel:
        return self._isolation

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def is_committed(self) -> bool:
        return self._state is TransactionState.COMMITTED

    @property
    def is_rolled_back(self) -> bool:
        return self._state is TransactionState.ROLLED_BACK

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[Any]:
        self._ensure_active()
        yield self._conn

    async def _run_sql(
        self,
        conn: Any,
        query: str,
        args: Sequence[Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        return await self._executor._run_sql(
            conn, query, args, as_list=as_list, no_result=no_result
        )

    def _ensure_active(self) -> None:
        if self._state is TransactionState.PENDING:
            raise TransactionError("Transaction not active")
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(
                f"Transaction already completed ({self._state.value})"
            )

    async def _begin(self) -> None:
        if self._state is not TransactionState.PENDING:
            raise TransactionError("Transaction already started")
        logger.debug("begin transaction (%s)", self._isolation.value)
        try:
            await self.pool.begin(self._conn, self._isolation)
        except Exception as e:
            raise BeginError(f"begin transaction: {e}") from e
        self._state = TransactionState.ACTIVE

    async def _commit(self) -> None:
        self._ensure_active()
        logger.debug("commit transaction")
        try:
            await self.pool.commit(self._conn)
        except Exception as e:
            # A failed commit leaves nothing committed
            self._state = TransactionState.ROLLED_BACK
            raise CommitError(f"commit transaction: {e}") from e
        self._state = TransactionState.COMMITTED

    async def _rollback(self) -> None:
        self._ensure_active()
        logger.debug("rollback transaction")
        try:
            await self.pool.rollback(self._conn)
        except Exception as e:
            raise RollbackError(f"rollback transaction: {e}") from e
        finally:
            self._state = TransactionState.ROLLED_BACK
