from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from dbhelpers.base.interface import BaseInterface


class PostgresPool(BaseInterface):
    """Interface for connecting to a Postgres database"""

    scheme = "postgres"

    def _setup_pool(self):
        kwargs = {}
        if self.application_name:
            kwargs["application_name"] = self.application_name
        self._pool = AsyncConnectionPool(
            self.full_dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs=kwargs,
            open=False,
        )

    async def open(self):
        """Open connections to the pool"""
        await self._pool.open()

    async def close(self):
        """Close connections to the pool"""
        await self._pool.close()

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[AsyncConnection]:
        """Obtain a connection to the database. The pool commits an open
        transaction when the block exits cleanly and rolls it back
        otherwise.

        Args:
            timeout (float, optional): Time before an error is raised on
                failure to connect. Defaults to `None`.

        Yields:
            AsyncConnection: A database connection
        """
        async with self._pool.connection(timeout=timeout) as conn:
            yield conn

    async def begin(self, conn: AsyncConnection, isolation) -> None:
        # psycopg opens the transaction implicitly before the first
        # statement, so this must be that statement
        await conn.execute(
            f"SET TRANSACTION ISOLATION LEVEL {isolation.value}"
        )
