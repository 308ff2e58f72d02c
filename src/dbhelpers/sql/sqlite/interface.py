from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiosqlite

from dbhelpers.base.interface import BaseInterface
from dbhelpers.exception import combine


class SQLitePool(BaseInterface):
    """Interface for connecting to a SQLite database. SQLite has no pool,
    so a single connection is shared, and callers take turns using it."""

    scheme = ""
    positional_sub = r"?"
    escape_percent = False

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock: Optional[asyncio.Lock] = None
        super().__init__()

    def _setup_pool(self): ...

    def _populate_dsn(self):
        self._dsn = self._full_dsn = self._db_path

    @property
    def db_path(self) -> str:
        return self._db_path

    async def open(self):
        """Open the connection"""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

    async def close(self):
        """Close the connection"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[aiosqlite.Connection]:
        """Obtain the connection to the database. Only one block holds it
        at a time, so a transaction opened inside the block is never
        committed or rolled back by another caller. An open transaction is
        committed when the block exits cleanly and rolled back otherwise.

        The connection is not reentrant: a block must not wait on another
        `connection()` of the same pool.

        Args:
            timeout (float, optional): Time to wait for the connection
                before `asyncio.TimeoutError` is raised. Defaults to `None`.

        Yields:
            aiosqlite.Connection: The database connection
        """
        if self._lock is None:
            self._lock = asyncio.Lock()
        await asyncio.wait_for(self._lock.acquire(), timeout)
        try:
            async with self._session() as conn:
                yield conn
        finally:
            self._lock.release()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[aiosqlite.Connection]:
        close_when_done = self._conn is None
        if close_when_done:
            await self.open()
        conn = self._conn

        try:
            yield conn
        except Exception as exc:
            if conn.in_transaction:
                try:
                    await conn.rollback()
                except Exception as rollback_error:
                    raise combine(exc, rollback_error) from exc
            raise
        else:
            if conn.in_transaction:
                await conn.commit()
        finally:
            if close_when_done:
                await self.close()

    async def begin(self, conn: aiosqlite.Connection, isolation) -> None:
        # SQLite transactions are always serializable
        await conn.execute("BEGIN")
