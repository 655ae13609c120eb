import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from rewardhub.core.exceptions import ConflictError, RemoteFailure
from rewardhub.core.owner import Owner
from rewardhub.db.store import SqlAlchemyStore, USER_CURRENCY, USER_DAILY_QUESTS, USER_STATS, in_, lt


def make_session():
    db = AsyncMock()
    db.add = MagicMock()
    return db


def compile_sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def test_fetch_filters_by_owner_column_and_null_other():
    store = SqlAlchemyStore(make_session())
    stmt = store.statement_for_fetch(
        USER_DAILY_QUESTS,
        {**Owner.user("u-1").filters(), "progress": lt(5), "quest_id": in_(["a", "b"])},
        order=[("created_at", False)],
        limit=3
    )
    sql = compile_sql(stmt)

    assert "user_daily_quests.user_id = " in sql
    assert "user_daily_quests.client_id IS NULL" in sql
    assert "user_daily_quests.progress < " in sql
    assert "user_daily_quests.quest_id IN" in sql
    assert "ORDER BY user_daily_quests.created_at DESC" in sql
    assert "LIMIT" in sql


def test_unknown_table_rejected():
    store = SqlAlchemyStore(make_session())
    with pytest.raises(ValueError):
        store.statement_for_fetch("users")


@pytest.mark.asyncio
async def test_update_returns_rowcount_and_commits():
    db = make_session()
    db.execute.return_value = MagicMock(rowcount=2)
    store = SqlAlchemyStore(db)

    count = await store.update(USER_STATS, Owner.guest("c").filters(), {"level": 2})

    assert count == 2
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_operations_inside_transaction_only_flush():
    db = make_session()
    db.execute.return_value = MagicMock(rowcount=1)
    store = SqlAlchemyStore(db)

    async with store.transaction():
        await store.update(USER_STATS, Owner.guest("c").filters(), {"level": 2})
        async with store.transaction():
            await store.update(USER_STATS, Owner.guest("c").filters(), {"xp": 10})
        db.flush.assert_awaited()
        db.commit.assert_not_awaited()

    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error():
    db = make_session()
    store = SqlAlchemyStore(db)

    with pytest.raises(RuntimeError):
        async with store.transaction():
            raise RuntimeError("credit failed")

    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_commit_failure_is_remote_failure():
    db = make_session()
    db.commit.side_effect = SQLAlchemyError("connection lost")
    store = SqlAlchemyStore(db)

    with pytest.raises(RemoteFailure) as exc_info:
        async with store.transaction():
            pass

    assert exc_info.value.is_retryable is True
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_unique_violation_is_conflict():
    db = make_session()
    db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
    store = SqlAlchemyStore(db)

    with pytest.raises(ConflictError) as exc_info:
        await store.insert(USER_CURRENCY, {**Owner.guest("c").columns(), "vcoin": 0, "ruby": 0})

    assert exc_info.value.is_retryable is False
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_conflict_inside_transaction_keeps_outer_transaction():
    db = make_session()
    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=savepoint)
    savepoint.__aexit__ = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("duplicate key")))
    db.begin_nested = MagicMock(return_value=savepoint)
    store = SqlAlchemyStore(db)

    async with store.transaction():
        with pytest.raises(ConflictError):
            await store.insert(USER_DAILY_QUESTS, {**Owner.guest("c").columns(), "quest_id": "q-1"})
        db.rollback.assert_not_awaited()

    db.begin_nested.assert_called_once()
    db.commit.assert_awaited_once()
