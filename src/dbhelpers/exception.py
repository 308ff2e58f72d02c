from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple


class DBHelpersError(Exception):
    ...


class QueryError(DBHelpersError):
    """Failure while running a query. Carries the literal query text and
    the arguments it was run with."""

    def __init__(
        self,
        query: str,
        args: Sequence[Any] = (),
        cause: Optional[BaseException] = None,
    ) -> None:
        self.query = query
        self.query_args = list(args)
        self.cause = cause
        message = f'run query "{query}" with args {self.query_args!r}'
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class BindError(QueryError):
    ...


class RecordNotFound(QueryError):
    ...


class TransactionError(DBHelpersError):
    ...


class BeginError(TransactionError):
    ...


class CommitError(TransactionError):
    ...


class RollbackError(TransactionError):
    ...


class CombinedError(DBHelpersError):
    """Several failures raised as one, in the order they happened"""

    def __init__(self, *errors: BaseException) -> None:
        self.errors: Tuple[BaseException, ...] = tuple(errors)
        super().__init__("; ".join(str(error) for error in self.errors))

    def __contains__(self, item: object) -> bool:
        return item in self.errors

    def __iter__(self):
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)


def combine(*errors: Optional[BaseException]) -> Optional[BaseException]:
    """Merge errors into one.

    `None` values are skipped and nested `CombinedError` instances are
    flattened.

    Returns:
        Optional[BaseException]: `None` if there was no error, the error
            itself if there was only one, otherwise a `CombinedError`
    """
    flat = []
    for error in errors:
        if error is None:
            continue
        if isinstance(error, CombinedError):
            flat.extend(error.errors)
        else:
            flat.append(error)
    if not flat:
        return None
    if len(flat) == 1:
        return flat[0]
    return CombinedError(*flat)
