from __future__ import annotations

from typing import Any, Sequence

from psycopg import AsyncConnection
from psycopg.rows import dict_row

from dbhelpers.base.executor import closing

from ..executor import SQLExecutor


class PostgresExecutor(SQLExecutor):
    """Executor for interfacing with a Postgres database"""

    async def _run_sql(
        self,
        conn: AsyncConnection,
        query: str,
        args: Sequence[Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        async with closing(conn.cursor(row_factory=dict_row)) as cursor:
            await cursor.execute(query, list(args) or None)
            if no_result:
                return cursor.rowcount
            method_name = self._get_method(as_list=as_list)
            return await getattr(cursor, method_name)()
