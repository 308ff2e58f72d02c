from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from dbhelpers.base.interface import BaseInterface
from dbhelpers.exception import DBHelpersError, combine

try:
    from asyncmy import create_pool

    MYSQL_ENABLED = True
except ModuleNotFoundError:
    MYSQL_ENABLED = False


class MysqlPool(BaseInterface):
    """Interface for connecting to a MySQL database"""

    scheme = "mysql"

    def _setup_pool(self):
        if not MYSQL_ENABLED:
            raise DBHelpersError(
                "MySQL driver not found. Try reinstalling dbhelpers: "
                "pip install dbhelpers[mysql]"
            )
        self._pool = None

    async def open(self):
        """Open connections to the pool"""
        self._pool = await create_pool(
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            db=self.db,
            minsize=self.min_size,
            maxsize=self.max_size or 10,
        )

    async def close(self):
        """Close connections to the pool"""
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[Any]:
        """Obtain a connection to the database. The work done on it is
        committed when the block exits cleanly and rolled back otherwise.

        Args:
            timeout (float, optional): _Not implemented_. Defaults to `None`.

        Yields:
            Connection: A database connection
        """
        if self._pool is None:
            raise DBHelpersError(f"{self} has not been opened")
        async with self._pool.acquire() as conn:
            try:
                yield conn
            except Exception as exc:
                try:
                    await conn.rollback()
                except Exception as rollback_error:
                    raise combine(exc, rollback_error) from exc
                raise
            else:
                await conn.commit()

    async def begin(self, conn: Any, isolation) -> None:
        async with conn.cursor() as cursor:
            await cursor.execute(
                f"SET TRANSACTION ISOLATION LEVEL {isolation.value}"
            )
        await conn.begin()
