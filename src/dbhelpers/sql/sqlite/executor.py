from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

import aiosqlite

from dbhelpers.base.executor import closing

from ..executor import SQLExecutor


class SQLiteExecutor(SQLExecutor):
    """Executor for interfacing with a SQLite database"""

    async def _run_sql(
        self,
        conn: aiosqlite.Connection,
        query: str,
        args: Sequence[Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        async with closing(await conn.cursor()) as cursor:
            await cursor.execute(query, list(args))
            if no_result:
                return cursor.rowcount
            if as_list:
                rows = await cursor.fetchall()
                return [self._dict_factory(cursor, row) for row in rows]
            row = await cursor.fetchone()
            return self._dict_factory(cursor, row)

    @staticmethod
    def _dict_factory(
        cursor: aiosqlite.Cursor, row: Optional[Tuple[Any, ...]]
    ) -> Optional[Dict[str, Any]]:
        if row is None:
            return None
        return {val[0]: row[idx] for idx, val in enumerate(cursor.description)}
