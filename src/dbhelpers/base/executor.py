from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from logging import getLogger
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Dict,
    List,
    Sequence,
    Type,
    TypeVar,
)

from dbhelpers.base.hydrator import Hydrator
from dbhelpers.base.interface import BaseInterface
from dbhelpers.convert import bind_named, rebind
from dbhelpers.exception import (
    QueryError,
    RecordNotFound,
    TransactionError,
    combine,
)

logger = getLogger("dbhelpers.executor")

M = TypeVar("M")
NO_ROWS = LookupError("no rows in result set")


@asynccontextmanager
async def closing(cursor: Any) -> AsyncIterator[Any]:
    """Close a cursor on the way out. A failure to close while another
    error is propagating is combined with that error."""
    try:
        yield cursor
    except Exception as exc:
        try:
            await cursor.close()
        except Exception as close_error:
            raise combine(exc, close_error) from exc
        raise
    else:
        await cursor.close()


class Executor(ABC):
    """
    Base class for anything that can run queries: an executor borrowing
    pooled connections, or a transaction holding a single connection.

    Positional placeholders are written `$1`, `$2`, ... and named
    placeholders `:name`. Every failure is raised as a `QueryError` that
    carries the query and its arguments.
    """

    @property
    @abstractmethod
    def pool(self) -> BaseInterface: ...

    @property
    @abstractmethod
    def hydrator(self) -> Hydrator: ...

    @abstractmethod
    def _acquire(self) -> AsyncContextManager[Any]: ...

    @abstractmethod
    async def _run_sql(
        self,
        conn: Any,
        query: str,
        args: Sequence[Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        """Driver specific execution. Returns the affected row count when
        `no_result` is set, otherwise the fetched row mapping(s)."""

    def _get_method(self, as_list: bool) -> str:
        return "fetchall" if as_list else "fetchone"

    async def _run(
        self,
        query: str,
        args: Sequence[Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        text, values = rebind(
            query,
            args,
            self.pool.positional_sub,
            self.pool.escape_percent,
        )
        logger.debug("run query %r with args %r", query, values)
        try:
            async with self._acquire() as conn:
                return await self._run_sql(
                    conn,
                    text,
                    values,
                    as_list=as_list,
                    no_result=no_result,
                )
        except TransactionError:
            raise
        except Exception as e:
            raise QueryError(query, args, e) from e

    def _hydrate(self, model, data, query: str, args: Sequence[Any]):
        factory = self.hydrator._make(model)
        try:
            return factory(data)
        except Exception as e:
            raise QueryError(query, args, e) from e

    async def execute(self, query: str, *args: Any) -> int:
        """Run a statement that does not return rows

        Args:
            query (str): The statement
            *args (Any): Values for `$n` placeholders

        Returns:
            int: Number of rows affected
        """
        return await self._run(query, args, no_result=True)

    async def select(
        self, model: Type[M], query: str, *args: Any
    ) -> List[M]:
        """Run a query and cast every row into the model

        Args:
            model (Type[M]): The model used for hydration
            query (str): The query
            *args (Any): Values for `$n` placeholders

        Returns:
            List[M]: One model per row. Empty when there are no rows.
        """
        rows = await self._run(query, args, as_list=True)
        return self._hydrate(model, list(rows or []), query, args)

    async def get(self, model: Type[M], query: str, *args: Any) -> M:
        """Run a query and cast the first row into the model

        Args:
            model (Type[M]): The model used for hydration
            query (str): The query
            *args (Any): Values for `$n` placeholders

        Raises:
            RecordNotFound: When the query returns no row

        Returns:
            M: The hydrated model
        """
        row = await self._run(query, args)
        if not row:
            raise RecordNotFound(query, args, NO_ROWS)
        return self._hydrate(model, row, query, args)

    async def select_maps(
        self, query: str, *args: Any
    ) -> List[Dict[str, Any]]:
        """Run a query and return every row as a column to value mapping"""
        rows = await self._run(query, args, as_list=True)
        return [dict(row) for row in rows or []]

    async def get_map(self, query: str, *args: Any) -> Dict[str, Any]:
        """Run a query and return the first row as a column to value
        mapping

        Raises:
            RecordNotFound: When the query returns no row
        """
        row = await self._run(query, args)
        if not row:
            raise RecordNotFound(query, args, NO_ROWS)
        return dict(row)

    async def named_execute(self, query: str, arg: Any) -> int:
        text, args = bind_named(query, arg)
        return await self.execute(text, *args)

    async def named_select(
        self, model: Type[M], query: str, arg: Any
    ) -> List[M]:
        text, args = bind_named(query, arg)
        return await self.select(model, text, *args)

    async def named_get(self, model: Type[M], query: str, arg: Any) -> M:
        text, args = bind_named(query, arg)
        return await self.get(model, text, *args)

    async def named_select_maps(
        self, query: str, arg: Any
    ) -> List[Dict[str, Any]]:
        text, args = bind_named(query, arg)
        return await self.select_maps(text, *args)

    async def named_get_map(self, query: str, arg: Any) -> Dict[str, Any]:
        text, args = bind_named(query, arg)
        return await self.get_map(text, *args)

