import asyncio
import sqlite3
from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest

from dbhelpers import (
    SQLiteExecutor,
    SQLitePool,
    Transaction,
    connect,
)
from dbhelpers.exception import (
    BeginError,
    CombinedError,
    QueryError,
    RecordNotFound,
    RollbackError,
)

USERS = (
    ("ivanov", "Ivanov Ivan"),
    ("petrov", "Petrov Petr"),
    ("sidorov", "Sidorov Sidor"),
)


@dataclass
class User:
    id: int
    login: str
    name: str


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
async def sqlite_executor(db_path):
    executor = SQLiteExecutor(SQLitePool(db_path))
    async with executor:
        await executor.execute(
            """
            CREATE TABLE test_users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                login TEXT,
                name TEXT
            )
            """
        )
        for login, name in USERS:
            await executor.execute(
                "INSERT INTO test_users (login, name) VALUES ($1, $2)",
                login,
                name,
            )
        yield executor


async def fresh_read(db_path, login):
    async with SQLiteExecutor(SQLitePool(db_path)) as executor:
        return await executor.get(
            User, "SELECT * FROM test_users WHERE login=$1", login
        )


async def test_select_and_get(sqlite_executor):
    users = await sqlite_executor.select(
        User, "SELECT * FROM test_users ORDER BY id"
    )

    assert [user.login for user in users] == ["ivanov", "petrov", "sidorov"]

    user = await sqlite_executor.get(
        User, "SELECT * FROM test_users WHERE login=$1", "petrov"
    )
    assert user == User(id=2, login="petrov", name="Petrov Petr")


async def test_maps(sqlite_executor):
    maps = await sqlite_executor.select_maps(
        "SELECT login FROM test_users WHERE id > $1 ORDER BY id", 1
    )
    assert maps == [{"login": "petrov"}, {"login": "sidorov"}]

    row = await sqlite_executor.named_get_map(
        "SELECT * FROM test_users WHERE login=:login", {"login": "petrov"}
    )
    assert row == {"id": 2, "login": "petrov", "name": "Petrov Petr"}


async def test_named_select_with_object(sqlite_executor):
    users = await sqlite_executor.named_select(
        User,
        "SELECT * FROM test_users WHERE login=:login OR name=:name",
        User(id=0, login="ivanov", name="Sidorov Sidor"),
    )

    assert sorted(user.id for user in users) == [1, 3]


async def test_execute_rows_affected(sqlite_executor, db_path):
    count = await sqlite_executor.execute(
        "UPDATE test_users SET name=$1 WHERE id >= $2", "Someone", 2
    )

    assert count == 2
    assert (await fresh_read(db_path, "sidorov")).name == "Someone"


async def test_get_missing_row(sqlite_executor):
    with pytest.raises(RecordNotFound):
        await sqlite_executor.get(
            User, "SELECT * FROM test_users WHERE login=$1", "nobody"
        )


async def test_bad_query(sqlite_executor):
    with pytest.raises(QueryError, match='run query "SELECT \\* FROM nope"'):
        await sqlite_executor.select_maps("SELECT * FROM nope")


async def test_committed_update_is_visible(sqlite_executor, db_path):
    async def update_user(tx: Transaction) -> User:
        await tx.get(
            User, "SELECT * FROM test_users WHERE login = $1", "ivanov"
        )
        await tx.execute(
            "UPDATE test_users SET name = $1 WHERE login = $2",
            "Sergeev",
            "ivanov",
        )
        return await tx.get(
            User, "SELECT * FROM test_users WHERE login = $1", "ivanov"
        )

    user = await sqlite_executor.run_tx(update_user)

    assert user.name == "Sergeev"
    assert (await fresh_read(db_path, "ivanov")).name == "Sergeev"


async def test_failed_unit_of_work_persists_nothing(sqlite_executor, db_path):
    async def update_then_fail(tx: Transaction):
        await tx.get(
            User, "SELECT * FROM test_users WHERE login = $1", "petrov"
        )
        await tx.named_execute(
            "UPDATE test_users SET name = :name WHERE login = :login",
            {"name": "Sergeev", "login": "petrov"},
        )
        raise ValueError("changed my mind")

    with pytest.raises(ValueError, match="changed my mind"):
        await sqlite_executor.run_tx(update_then_fail)

    assert (await fresh_read(db_path, "petrov")).name == "Petrov Petr"
    user = await sqlite_executor.get(
        User, "SELECT * FROM test_users WHERE login = $1", "petrov"
    )
    assert user.name == "Petrov Petr"


async def test_connect_with_path(sqlite_executor, db_path):
    executor = await connect(db_path)
    try:
        assert isinstance(executor, SQLiteExecutor)
        assert await executor.get(int, "SELECT COUNT(*) FROM test_users") == 3
    finally:
        await executor.close()


async def count_users(executor) -> int:
    return await executor.get(int, "SELECT COUNT(*) FROM test_users")


async def insert_user(tx: Transaction):
    await tx.execute(
        "INSERT INTO test_users (login, name) VALUES ($1, $2)",
        "kozlov",
        "Kozlov Kozma",
    )


async def test_concurrent_call_does_not_commit_unit_of_work(
    sqlite_executor, db_path
):
    inserted = asyncio.Event()

    async def insert_then_fail(tx: Transaction):
        await insert_user(tx)
        inserted.set()
        await asyncio.sleep(0.05)
        raise ValueError("changed my mind")

    async def count_meanwhile():
        await inserted.wait()
        return await count_users(sqlite_executor)

    failed, counted = await asyncio.gather(
        sqlite_executor.run_tx(insert_then_fail),
        count_meanwhile(),
        return_exceptions=True,
    )

    assert isinstance(failed, ValueError)
    assert counted == 3
    assert await count_users(sqlite_executor) == 3
    assert await count_users(SQLiteExecutor(SQLitePool(db_path))) == 3


async def test_connection_wait_times_out(sqlite_executor):
    async with sqlite_executor.pool.connection():
        with pytest.raises(asyncio.TimeoutError):
            async with sqlite_executor.pool.connection(timeout=0.01):
                pass


async def test_unreachable_database_fails_to_begin(tmp_path):
    executor = SQLiteExecutor(SQLitePool(str(tmp_path / "missing" / "x.db")))
    work = AsyncMock()

    with pytest.raises(BeginError, match="begin transaction: unable") as e:
        await executor.run_tx(work)

    assert isinstance(e.value.__cause__, sqlite3.OperationalError)
    work.assert_not_awaited()


async def test_rollback_failure_keeps_original_error(
    monkeypatch, sqlite_executor, db_path
):
    error = ValueError("changed my mind")
    monkeypatch.setattr(
        SQLitePool, "rollback", AsyncMock(side_effect=RuntimeError("busy"))
    )

    async def insert_then_fail(tx: Transaction):
        await insert_user(tx)
        raise error

    with pytest.raises(CombinedError) as e:
        await sqlite_executor.run_tx(insert_then_fail)

    original, rollback = e.value.errors
    assert original is error
    assert isinstance(rollback, RollbackError)
    assert "rollback transaction: busy" in str(e.value)
    assert await count_users(SQLiteExecutor(SQLitePool(db_path))) == 3


async def test_connection_rollback_failure_is_combined(
    monkeypatch, sqlite_executor
):
    error = ValueError("changed my mind")
    disk_error = RuntimeError("disk I/O error")
    monkeypatch.setattr(
        sqlite_executor.pool._conn,
        "rollback",
        AsyncMock(side_effect=disk_error),
    )

    async def insert_then_fail(tx: Transaction):
        await insert_user(tx)
        raise error

    with pytest.raises(CombinedError) as e:
        await sqlite_executor.run_tx(insert_then_fail)

    original, rollback, second_rollback = e.value.errors
    assert original is error
    assert isinstance(rollback, RollbackError)
    assert rollback.__cause__ is disk_error
    assert second_rollback is disk_error
