"""
Контракт доступа к табличному хранилищу и его реализация поверх SQLAlchemy.

Движок наград работает со строками как со словарями и не знает про ORM:
fetch / insert / update / increment плюс transaction() для многошаговых операций.
Фильтры - словарь колонка -> значение:
	- обычное значение: равенство
	- None: IS NULL
	- lt(x), lte(x), in_([...]): сравнения
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from sqlalchemy import select, update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewardhub.core.exceptions import ConflictError, RemoteFailure
from rewardhub.models.quest import DailyQuest, LevelQuest, UserDailyQuest, UserLevelQuest
from rewardhub.models.login_reward import LoginReward, UserLoginReward
from rewardhub.models.relationship import CharacterRelationship, RelationshipMilestone
from rewardhub.models.user import UserCurrency, UserStats

logger = logging.getLogger(__name__)

# Имена таблиц, которые использует движок
DAILY_QUESTS = "daily_quests"
LEVEL_QUESTS = "level_quests"
USER_DAILY_QUESTS = "user_daily_quests"
USER_LEVEL_QUESTS = "user_level_quests"
LOGIN_REWARDS = "login_rewards"
USER_LOGIN_REWARDS = "user_login_rewards"
CHARACTER_RELATIONSHIP = "character_relationship"
RELATIONSHIP_MILESTONES = "relationship_milestones"
USER_CURRENCY = "user_currency"
USER_STATS = "user_stats"

Row = Dict[str, Any]
Filters = Dict[str, Any]
# (колонка, по возрастанию)
Order = Sequence[Tuple[str, bool]]


@dataclass(frozen=True)
class Condition:
	op: str
	value: Any

	def matches(self, actual: Any) -> bool:
		if self.op == "in":
			return actual in self.value
		if actual is None:
			return False
		if self.op == "lt":
			return actual < self.value
		if self.op == "lte":
			return actual <= self.value
		raise ValueError(f"Unknown filter operator: {self.op}")


def lt(value: Any) -> Condition:
	return Condition("lt", value)


def lte(value: Any) -> Condition:
	return Condition("lte", value)


def in_(values: Iterable[Any]) -> Condition:
	return Condition("in", tuple(values))


def row_matches(row: Row, filters: Filters) -> bool:
	"""Проверяет строку на соответствие фильтрам (та же семантика, что и в SQL)."""
	for column, expected in filters.items():
		actual = row.get(column)
		if isinstance(expected, Condition):
			if not expected.matches(actual):
				return False
		elif expected is None:
			if actual is not None:
				return False
		elif actual != expected:
			return False
	return True


class TableStore(ABC):
	"""Абстрактное хранилище строк, которым пользуются сервисы наград."""

	@abstractmethod
	async def fetch(
		self,
		table: str,
		filters: Optional[Filters] = None,
		order: Optional[Order] = None,
		limit: Optional[int] = None
	) -> List[Row]:
		...

	@abstractmethod
	async def insert(self, table: str, row: Row) -> Row:
		"""Вставляет строку и возвращает ее со значениями по умолчанию. ConflictError при дубликате."""

	@abstractmethod
	async def update(self, table: str, filters: Filters, patch: Row) -> int:
		"""Обновляет строки по фильтру и возвращает количество затронутых строк."""

	@abstractmethod
	async def increment(self, table: str, filters: Filters, deltas: Dict[str, int], defaults: Optional[Row] = None) -> Row:
		"""
		Атомарно прибавляет deltas к колонкам строки, найденной по фильтру.
		Если строки нет, создает ее из defaults + filters и прибавляет deltas к defaults.
		"""

	@abstractmethod
	def transaction(self):
		"""Асинхронный контекстный менеджер: все операции внутри фиксируются или откатываются вместе."""


class SqlAlchemyStore(TableStore):
	"""
	TableStore поверх AsyncSession.

	Одна сессия на экземпляр, поэтому экземпляр нельзя использовать из нескольких
	корутин одновременно (как и саму AsyncSession).
	"""

	MODELS = {
		DAILY_QUESTS: DailyQuest,
		LEVEL_QUESTS: LevelQuest,
		USER_DAILY_QUESTS: UserDailyQuest,
		USER_LEVEL_QUESTS: UserLevelQuest,
		LOGIN_REWARDS: LoginReward,
		USER_LOGIN_REWARDS: UserLoginReward,
		CHARACTER_RELATIONSHIP: CharacterRelationship,
		RELATIONSHIP_MILESTONES: RelationshipMilestone,
		USER_CURRENCY: UserCurrency,
		USER_STATS: UserStats,
	}

	def __init__(self, db: AsyncSession):
		self.db = db
		self._tx_depth = 0

	def _model(self, table: str):
		try:
			return self.MODELS[table]
		except KeyError:
			raise ValueError(f"Unknown table: {table}")

	def _conditions(self, model, filters: Optional[Filters]) -> list:
		conditions = []
		for column_name, expected in (filters or {}).items():
			column = getattr(model, column_name)
			if isinstance(expected, Condition):
				if expected.op == "lt":
					conditions.append(column < expected.value)
				elif expected.op == "lte":
					conditions.append(column <= expected.value)
				elif expected.op == "in":
					conditions.append(column.in_(expected.value))
				else:
					raise ValueError(f"Unknown filter operator: {expected.op}")
			elif expected is None:
				conditions.append(column.is_(None))
			else:
				conditions.append(column == expected)
		return conditions

	@staticmethod
	def _to_row(obj) -> Row:
		return {attr.key: getattr(obj, attr.key) for attr in obj.__mapper__.column_attrs}

	async def _commit(self) -> None:
		# Внутри transaction() только flush, фиксирует внешний блок
		if self._tx_depth:
			await self.db.flush()
		else:
			await self.db.commit()

	async def _fail(self, table: str, action: str, error: SQLAlchemyError):
		if not self._tx_depth:
			await self.db.rollback()
		if isinstance(error, IntegrityError):
			raise ConflictError(
				f"Duplicate row in {table}",
				details={"table": table, "action": action}
			) from error
		logger.error(f"Store failure on {action} {table}: {error}", exc_info=True)
		raise RemoteFailure(
			f"Failed to {action} {table}",
			details={"table": table, "action": action}
		) from error

	def statement_for_fetch(self, table: str, filters: Optional[Filters] = None, order: Optional[Order] = None, limit: Optional[int] = None):
		model = self._model(table)
		stmt = select(model).where(*self._conditions(model, filters))
		for column_name, ascending in order or ():
			column = getattr(model, column_name)
			stmt = stmt.order_by(column.asc() if ascending else column.desc())
		if limit is not None:
			stmt = stmt.limit(limit)
		# Строки могли измениться через update() в обход identity map
		return stmt.execution_options(populate_existing=True)

	async def fetch(self, table, filters=None, order=None, limit=None):
		stmt = self.statement_for_fetch(table, filters, order, limit)
		try:
			result = await self.db.execute(stmt)
		except SQLAlchemyError as e:
			await self._fail(table, "fetch", e)
		return [self._to_row(obj) for obj in result.scalars().all()]

	async def insert(self, table, row):
		model = self._model(table)
		obj = model(**row)
		try:
			if self._tx_depth:
				# Дубликат внутри transaction() откатывает только savepoint
				async with self.db.begin_nested():
					self.db.add(obj)
			else:
				self.db.add(obj)
				await self.db.commit()
			await self.db.refresh(obj)
		except SQLAlchemyError as e:
			await self._fail(table, "insert", e)
		return self._to_row(obj)

	async def update(self, table, filters, patch):
		model = self._model(table)
		stmt = (
			sa_update(model)
			.where(*self._conditions(model, filters))
			.values(**patch)
			.execution_options(synchronize_session=False)
		)
		try:
			result = await self.db.execute(stmt)
			await self._commit()
		except SQLAlchemyError as e:
			await self._fail(table, "update", e)
		return result.rowcount

	async def increment(self, table, filters, deltas, defaults=None):
		model = self._model(table)
		try:
			# Блокируем строку для атомарной операции
			obj = await self._locked(model, filters)
			if obj is None:
				payload = dict(defaults or {})
				payload.update({k: v for k, v in filters.items() if not isinstance(v, Condition)})
				for column_name, delta in deltas.items():
					payload[column_name] = payload.get(column_name, 0) + delta
				try:
					# Параллельная вставка той же строки откатывает только savepoint
					async with self.db.begin_nested():
						obj = model(**payload)
						self.db.add(obj)
				except IntegrityError:
					obj = await self._locked(model, filters)
					if obj is None:
						raise
					self._apply(obj, deltas)
			else:
				self._apply(obj, deltas)
			await self._commit()
			await self.db.refresh(obj)
		except SQLAlchemyError as e:
			await self._fail(table, "increment", e)
		return self._to_row(obj)

	async def _locked(self, model, filters):
		result = await self.db.execute(
			select(model)
			.where(*self._conditions(model, filters))
			.with_for_update()
			.execution_options(populate_existing=True)
		)
		return result.scalars().first()

	@staticmethod
	def _apply(obj, deltas: Dict[str, int]) -> None:
		for column_name, delta in deltas.items():
			setattr(obj, column_name, (getattr(obj, column_name) or 0) + delta)

	@asynccontextmanager
	async def transaction(self) -> AsyncIterator["SqlAlchemyStore"]:
		if self._tx_depth:
			# Вложенный блок - часть внешней транзакции
			self._tx_depth += 1
			try:
				yield self
			finally:
				self._tx_depth -= 1
			return

		self._tx_depth = 1
		try:
			yield self
		except BaseException:
			self._tx_depth = 0
			await self.db.rollback()
			raise
		self._tx_depth = 0
		try:
			await self.db.commit()
		except SQLAlchemyError as e:
			await self.db.rollback()
			logger.error(f"Failed to commit transaction: {e}", exc_info=True)
			raise RemoteFailure("Failed to commit transaction") from e
