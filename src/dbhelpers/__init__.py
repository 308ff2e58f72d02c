from importlib.metadata import version

from .base.executor import Executor
from .base.hydrator import Hydrator
from .connect import connect, create_executor
from .convert import bind_named, compile_named, rebind
from .exception import (
    BeginError,
    BindError,
    CombinedError,
    CommitError,
    DBHelpersError,
    QueryError,
    RecordNotFound,
    RollbackError,
    TransactionError,
    combine,
)
from .sql.executor import SQLExecutor
from .sql.mysql.executor import MysqlExecutor
from .sql.mysql.interface import MysqlPool
from .sql.postgres.executor import PostgresExecutor
from .sql.postgres.interface import PostgresPool
from .sql.sqlite.executor import SQLiteExecutor
from .sql.sqlite.interface import SQLitePool
from .sql.transaction import IsolationLevel, Transaction, TransactionState

__version__ = version("dbhelpers")

__all__ = (
    "bind_named",
    "combine",
    "compile_named",
    "connect",
    "create_executor",
    "rebind",
    "BeginError",
    "BindError",
    "CombinedError",
    "CommitError",
    "DBHelpersError",
    "Executor",
    "Hydrator",
    "IsolationLevel",
    "MysqlExecutor",
    "MysqlPool",
    "PostgresExecutor",
    "PostgresPool",
    "QueryError",
    "RecordNotFound",
    "RollbackError",
    "SQLExecutor",
    "SQLiteExecutor",
    "SQLitePool",
    "Transaction",
    "TransactionError",
    "TransactionState",
)
