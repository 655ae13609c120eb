"""
Сервис daily квестов владельца: генерация набора на день, прогресс и выдача наград.

Экземпляр сервиса привязан к одному владельцу и хранит кэш сегодняшних квестов.
Каждая строка кэша - словарь экземпляра из user_daily_quests с шаблоном в ключе "quest".
"""
from typing import Any, Callable, Dict, List, Optional
from datetime import date, datetime, timezone
import random
import logging

from rewardhub.core.config import settings
from rewardhub.core.exceptions import AlreadyClaimed, NotCompleted, NotFound, RewardError
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore, DAILY_QUESTS, USER_DAILY_QUESTS, in_, lte
from rewardhub.services.notifications import NotificationQueue
from rewardhub.services.quest_rewards import announce_rewards, reward_items, settle_quest_claim
from rewardhub.services.user_stats import get_or_create_stats

logger = logging.getLogger(__name__)

DIFFICULTY_ORDER = {"easy": 0, "medium": 1, "hard": 2}


def daily_quota() -> Dict[str, int]:
	return {
		"easy": settings.DAILY_QUESTS_EASY,
		"medium": settings.DAILY_QUESTS_MEDIUM,
		"hard": settings.DAILY_QUESTS_HARD,
	}


def sort_daily_quests(quests: List[Dict]) -> List[Dict]:
	"""Сортировка по сложности (easy < medium < hard, неизвестная в конце), затем по награде XP"""
	def key(instance: Dict):
		template = instance.get("quest") or {}
		return (
			DIFFICULTY_ORDER.get(template.get("difficulty"), len(DIFFICULTY_ORDER)),
			template.get("reward_xp") or 0
		)
	return sorted(quests, key=key)


def select_daily_templates(
	pool: List[Dict],
	quota: Optional[Dict[str, int]] = None,
	rng: Optional[random.Random] = None
) -> List[Dict]:
	"""
	Случайно выбирает шаблоны из пула по квоте сложностей.

	Если шаблонов какой-то сложности не хватает, берутся все имеющиеся.
	"""
	quota = quota or daily_quota()
	rng = rng or random
	selected = []
	for difficulty, count in quota.items():
		candidates = [t for t in pool if t.get("difficulty") == difficulty]
		rng.shuffle(candidates)
		selected.extend(candidates[:count])
	return selected


class DailyQuestEngine:
	def __init__(
		self,
		store: TableStore,
		owner: Owner,
		notifications: Optional[NotificationQueue] = None,
		today: Optional[Callable[[], date]] = None,
		now: Optional[Callable[[], datetime]] = None,
		rng: Optional[random.Random] = None
	):
		self.store = store
		self.owner = owner
		self.notifications = notifications
		self._today = today or date.today
		self._now = now or (lambda: datetime.now(timezone.utc))
		self._rng = rng
		self._quests: List[Dict] = []
		self._cache_date: Optional[date] = None

	@property
	def quests(self) -> List[Dict]:
		return list(self._quests)

	async def _attach_templates(self, instances: List[Dict]) -> List[Dict]:
		if not instances:
			return []
		quest_ids = {row["quest_id"] for row in instances}
		templates = await self.store.fetch(DAILY_QUESTS, {"id": in_(quest_ids)})
		by_id = {t["id"]: t for t in templates}
		return [{**row, "quest": by_id.get(row["quest_id"])} for row in instances]

	async def _fetch_today(self, today: date) -> List[Dict]:
		rows = await self.store.fetch(USER_DAILY_QUESTS, {**self.owner.filters(), "quest_date": today})
		return await self._attach_templates(rows)

	async def load_today(self) -> List[Dict]:
		"""
		Загружает квесты на сегодня. Если их еще нет, генерирует новый набор.

		Raises:
			RemoteFailure: Если хранилище недоступно
		"""
		today = self._today()
		quests = await self._fetch_today(today)
		if not quests:
			async with self.store.transaction():
				await self._lock_owner()
				# Параллельная загрузка могла успеть создать набор, пока ждали блокировку
				quests = await self._fetch_today(today)
				if not quests:
					await self._generate(today)
					return self.quests

		self._cache_date = today
		self._quests = sort_daily_quests(quests)
		return self.quests

	async def _ensure_fresh(self) -> None:
		if self._cache_date != self._today():
			await self.load_today()

	async def generate(self) -> List[Dict]:
		"""
		Архивирует открытые квесты сегодняшнего дня и выдает новый набор 3 easy / 2 medium / 1 hard.

		Пустой пул шаблонов - не ошибка, результат просто пустой. Шаблоны, у которых уже есть
		экземпляр на сегодня, повторно не выдаются.

		Returns:
			Созданные экземпляры, отсортированные по сложности
		"""
		today = self._today()
		async with self.store.transaction():
			await self._lock_owner()
			return await self._generate(today)

	async def _lock_owner(self) -> None:
		# Строка user_stats блокируется до конца транзакции: генерация одного владельца идет по очереди
		await get_or_create_stats(self.store, self.owner, self._now())

	async def _generate(self, today: date) -> List[Dict]:
		now = self._now()
		filters = {**self.owner.filters(), "quest_date": today}

		existing = await self._fetch_today(today)
		if any(not q["claimed"] for q in existing):
			await self.store.update(
				USER_DAILY_QUESTS,
				{**filters, "completed": False},
				{"completed": True, "claimed": True, "completed_at": now}
			)
			await self.store.update(USER_DAILY_QUESTS, {**filters, "claimed": False}, {"claimed": True})
			for quest in existing:
				if not quest["completed"]:
					quest["completed_at"] = now
				quest["completed"] = True
				quest["claimed"] = True
			logger.info(f"Archived open daily quests of {self.owner.key} for {today}")

		taken = {q["quest_id"] for q in existing}
		pool = await self.store.fetch(DAILY_QUESTS, {"is_active": True})
		pool = [t for t in pool if t["id"] not in taken]

		created = []
		for template in select_daily_templates(pool, rng=self._rng):
			try:
				row = await self.store.insert(USER_DAILY_QUESTS, {
					**self.owner.columns(),
					"quest_id": template["id"],
					"progress": 0,
					"completed": False,
					"claimed": False,
					"quest_date": today,
				})
			except RewardError as e:
				logger.warning(f"Failed to create daily quest {template['id']} for {self.owner.key}: {e}")
				continue
			created.append({**row, "quest": template})

		if not created:
			logger.warning(f"No daily quests generated for {self.owner.key} ({len(pool)} templates available)")

		self._quests = sort_daily_quests(existing + created)
		self._cache_date = today
		return sort_daily_quests(created)

	async def track_progress(self, quest_type: str, increment: int = 1) -> List[Dict]:
		"""
		Увеличивает прогресс всех открытых сегодняшних квестов указанного типа.

		Прогресс ограничивается target_value, при достижении цели квест становится выполненным.
		Ошибка обновления одного квеста логируется и не прерывает остальные.

		Returns:
			Обновленные экземпляры
		"""
		if increment <= 0:
			return []
		await self._ensure_fresh()

		today = self._today()
		updated = []
		for quest in self._quests:
			template = quest.get("quest")
			if not template or template["quest_type"] != quest_type:
				continue
			if quest["completed"] or quest["claimed"] or quest["quest_date"] != today:
				continue

			target = template["target_value"]
			new_progress = min(target, quest["progress"] + increment)
			patch: Dict[str, Any] = {"progress": new_progress}
			newly_completed = new_progress >= target
			if newly_completed:
				patch["completed"] = True
				patch["completed_at"] = self._now()

			try:
				count = await self.store.update(
					USER_DAILY_QUESTS,
					{
						**self.owner.filters(),
						"id": quest["id"],
						"completed": False,
						"progress": lte(new_progress),
					},
					patch
				)
			except RewardError as e:
				logger.warning(f"Failed to update progress of daily quest {quest['id']}: {e}")
				continue
			if not count:
				logger.warning(f"Daily quest {quest['id']} changed concurrently, progress skipped")
				continue

			quest.update(patch)
			updated.append(quest)
			if self.notifications is not None:
				self.notifications.show_quest_progress(template["description"], new_progress, target)
				if newly_completed:
					self.notifications.show_quest_progress(template["description"], target, target, completed=True)

		return updated

	def _find(self, quest_id: Any) -> Dict:
		for quest in self._quests:
			if str(quest["id"]) == str(quest_id):
				return quest
		raise NotFound("Daily quest not found", details={"quest_id": str(quest_id)})

	async def claim(self, quest_id: Any) -> Dict:
		"""
		Выдает награду за выполненный квест.

		Raises:
			NotFound: Квеста нет среди сегодняшних
			NotCompleted: Квест не выполнен
			AlreadyClaimed: Награда уже получена
			RemoteFailure: Ошибка хранилища, ничего не начислено
		"""
		await self._ensure_fresh()
		quest = self._find(quest_id)
		if not quest["completed"]:
			raise NotCompleted("Daily quest is not completed", details={"quest_id": str(quest_id)})
		if quest["claimed"]:
			raise AlreadyClaimed("Daily quest reward already claimed", details={"quest_id": str(quest_id)})

		template = quest.get("quest") or {}
		try:
			result = await settle_quest_claim(
				self.store, self.owner, USER_DAILY_QUESTS, quest["id"], template, {"claimed": True}
			)
		except AlreadyClaimed:
			quest["claimed"] = True
			raise

		quest["claimed"] = True
		announce_rewards(
			self.notifications,
			vcoin=template.get("reward_vcoin") or 0,
			ruby=template.get("reward_ruby") or 0,
			xp_result=result["xp"]
		)
		return {"quest_id": quest["id"], **result}

	def reward_items(self, quest_id: Any) -> List[Dict]:
		try:
			quest = self._find(quest_id)
		except NotFound:
			return []
		return reward_items(quest.get("quest"))
