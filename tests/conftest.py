import asyncio
import copy
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pytest

from rewardhub.core.exceptions import ConflictError, RemoteFailure
from rewardhub.core.owner import Owner
from rewardhub.db.base_class import OwnedMixin
from rewardhub.db.store import (
    Condition,
    SqlAlchemyStore,
    TableStore,
    row_matches,
    DAILY_QUESTS,
    LEVEL_QUESTS,
    LOGIN_REWARDS,
    USER_DAILY_QUESTS,
    USER_LEVEL_QUESTS,
    USER_LOGIN_REWARDS,
    CHARACTER_RELATIONSHIP,
    RELATIONSHIP_MILESTONES,
    USER_CURRENCY,
    USER_STATS,
)
from rewardhub.services.notifications import NotificationQueue

# Уникальные ключи таблиц (для таблиц владельца к ним добавляется колонка владельца)
UNIQUE_KEYS = {
    USER_DAILY_QUESTS: ("quest_id", "quest_date"),
    USER_LEVEL_QUESTS: ("quest_id",),
    USER_LOGIN_REWARDS: (),
    CHARACTER_RELATIONSHIP: ("character_id",),
    RELATIONSHIP_MILESTONES: ("character_id", "milestone_level"),
    USER_CURRENCY: (),
    USER_STATS: (),
    LOGIN_REWARDS: ("day_number",),
}


def column_defaults(table: str) -> Dict[str, Any]:
    model = SqlAlchemyStore.MODELS[table]
    values = {}
    for column in model.__table__.columns:
        default = column.default
        values[column.name] = default.arg if default is not None and default.is_scalar else None
    return values


class InMemoryStore(TableStore):
    """TableStore в памяти с той же семантикой фильтров, уникальности и транзакций."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.calls: List[Tuple[str, str]] = []
        self._failures: Dict[Tuple[str, str], List[Exception]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._tx_task = None
        self._tx_depth = 0

    # Вспомогательные методы для тестов

    def seed(self, table: str, **values) -> Dict[str, Any]:
        row = {**column_defaults(table), **values}
        if row.get("id") is None:
            row["id"] = uuid.uuid4()
        self.tables[table].append(row)
        return row

    def rows(self, table: str, **filters) -> List[Dict[str, Any]]:
        return [dict(row) for row in self.tables[table] if row_matches(row, filters)]

    def fail_next(self, action: str, table: str, error: Optional[Exception] = None, times: int = 1) -> None:
        for _ in range(times):
            self._failures[(action, table)].append(error or RemoteFailure(f"Injected {action} failure on {table}"))

    async def _enter(self, action: str, table: str) -> None:
        self.calls.append((action, table))
        # Даем другим корутинам вклиниться между операциями
        await asyncio.sleep(0)
        if self._failures[(action, table)]:
            raise self._failures[(action, table)].pop(0)

    def _unique_key(self, table: str, row: Dict[str, Any]):
        if table not in UNIQUE_KEYS:
            return None
        columns = UNIQUE_KEYS[table]
        if issubclass(SqlAlchemyStore.MODELS[table], OwnedMixin):
            columns = ("user_id", "client_id") + columns
        return tuple(row.get(c) for c in columns)

    def _check(self, table: str, row: Dict[str, Any], ignore=None) -> None:
        if issubclass(SqlAlchemyStore.MODELS[table], OwnedMixin):
            if (row.get("user_id") is None) == (row.get("client_id") is None):
                raise ConflictError(f"Row in {table} must have exactly one owner column")
        key = self._unique_key(table, row)
        if key is None:
            return
        for existing in self.tables[table]:
            if existing is not ignore and self._unique_key(table, existing) == key:
                raise ConflictError(f"Duplicate row in {table}", details={"table": table})

    # TableStore

    async def fetch(self, table, filters=None, order=None, limit=None):
        await self._enter("fetch", table)
        rows = [row for row in self.tables[table] if row_matches(row, filters or {})]
        for column, ascending in reversed(list(order or ())):
            rows.sort(key=lambda r: r.get(column), reverse=not ascending)
        if limit is not None:
            rows = rows[:limit]
        return [dict(row) for row in rows]

    async def insert(self, table, row):
        await self._enter("insert", table)
        new_row = {**column_defaults(table), **row}
        if new_row.get("id") is None:
            new_row["id"] = uuid.uuid4()
        self._check(table, new_row)
        self.tables[table].append(new_row)
        return dict(new_row)

    async def update(self, table, filters, patch):
        await self._enter("update", table)
        matched = [row for row in self.tables[table] if row_matches(row, filters)]
        for row in matched:
            self._check(table, {**row, **patch}, ignore=row)
            row.update(patch)
        return len(matched)

    async def increment(self, table, filters, deltas, defaults=None):
        await self._enter("increment", table)
        for row in self.tables[table]:
            if row_matches(row, filters):
                for column, delta in deltas.items():
                    row[column] = (row.get(column) or 0) + delta
                return dict(row)

        new_row = {**column_defaults(table), **(defaults or {})}
        new_row.update({k: v for k, v in filters.items() if not isinstance(v, Condition)})
        for column, delta in deltas.items():
            new_row[column] = (new_row.get(column) or 0) + delta
        if new_row.get("id") is None:
            new_row["id"] = uuid.uuid4()
        self._check(table, new_row)
        self.tables[table].append(new_row)
        return dict(new_row)

    @asynccontextmanager
    async def transaction(self):
        task = asyncio.current_task()
        if self._tx_task is task:
            self._tx_depth += 1
            try:
                yield self
            finally:
                self._tx_depth -= 1
            return

        async with self._lock:
            self._tx_task = task
            self._tx_depth = 1
            snapshot = copy.deepcopy(dict(self.tables))
            try:
                yield self
            except BaseException:
                self.tables = defaultdict(list, snapshot)
                raise
            finally:
                self._tx_task = None
                self._tx_depth = 0


class FakeClock:
    """Управляемые часы в миллисекундах для очереди уведомлений"""

    def __init__(self, start: float = 0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def owner():
    return Owner.guest("client-1")


@pytest.fixture
def user_owner():
    return Owner.user("5F1C8A2E-0000-4000-8000-000000000001")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifications(clock):
    return NotificationQueue(clock=clock)


@pytest.fixture
def today():
    return date(2026, 3, 10)


def seed_daily_pool(store: InMemoryStore, easy: int = 4, medium: int = 3, hard: int = 2, quest_type: str = "swipe_character"):
    templates = []
    for difficulty, count in (("easy", easy), ("medium", medium), ("hard", hard)):
        for i in range(count):
            templates.append(store.seed(
                DAILY_QUESTS,
                quest_type=quest_type,
                difficulty=difficulty,
                description=f"{difficulty} quest {i}",
                target_value=3,
                reward_vcoin=10 * (i + 1),
                reward_ruby=1 if difficulty == "hard" else 0,
                reward_xp=20 * (i + 1),
                is_active=True,
            ))
    return templates


def seed_level_quest(store: InMemoryStore, level_required: int, quest_type: str = "chat_streak", **values):
    return store.seed(
        LEVEL_QUESTS,
        quest_type=quest_type,
        level_required=level_required,
        description=values.pop("description", f"level {level_required} quest"),
        target_value=values.pop("target_value", 2),
        reward_vcoin=values.pop("reward_vcoin", 100),
        reward_ruby=values.pop("reward_ruby", 0),
        reward_xp=values.pop("reward_xp", 50),
        is_active=values.pop("is_active", True),
        **values
    )


def seed_login_rewards(store: InMemoryStore, days: int = 30):
    return [
        store.seed(LOGIN_REWARDS, day_number=day, reward_vcoin=50 + day, reward_ruby=5 if day % 7 == 0 else 0, reward_energy=10)
        for day in range(1, days + 1)
    ]
