from __future__ import annotations

from inspect import isawaitable
from typing import Any, Sequence

from dbhelpers.base.executor import closing
from dbhelpers.sql.mysql.interface import MYSQL_ENABLED

from ..executor import SQLExecutor

if MYSQL_ENABLED:
    from asyncmy.cursors import DictCursor


class MysqlExecutor(SQLExecutor):
    """Executor for interfacing with a MySQL database"""

    ENABLED = MYSQL_ENABLED

    async def _run_sql(
        self,
        conn: Any,
        query: str,
        args: Sequence[Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        async with closing(conn.cursor(cursor=DictCursor)) as cursor:
            rowcount = await cursor.execute(query, list(args) or None)
            if no_result:
                return rowcount
            method_name = self._get_method(as_list=as_list)
            raw = getattr(cursor, method_name)()
            if isawaitable(raw):
                raw = await raw
            return raw
