"""
Сервис квестов, открывающихся с ростом уровня.
"""
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timezone
import logging

from rewardhub.core.exceptions import AlreadyClaimed, ConflictError, NotCompleted, NotFound, RewardError
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore, LEVEL_QUESTS, USER_LEVEL_QUESTS, in_, lte
from rewardhub.services.notifications import NotificationQueue
from rewardhub.services.quest_rewards import announce_rewards, reward_items, settle_quest_claim

logger = logging.getLogger(__name__)


def sort_level_quests(entries: List[Dict]) -> List[Dict]:
	"""По убыванию требуемого уровня, затем невыполненные, затем по убыванию прогресса"""
	def key(entry: Dict):
		template = entry.get("quest") or {}
		return (
			-(template.get("level_required") or 0),
			bool(entry.get("completed")),
			-(entry.get("progress") or 0)
		)
	return sorted(entries, key=key)


def locked_entry(template: Dict) -> Dict:
	"""Шаблон без экземпляра: показывается закрытым с нулевым прогрессом"""
	return {
		"id": None,
		"quest_id": template["id"],
		"quest": template,
		"progress": 0,
		"completed": False,
		"claimed": False,
		"unlocked": False,
		"unlocked_at": None,
		"completed_at": None,
		"claimed_at": None,
	}


class LevelQuestEngine:
	def __init__(
		self,
		store: TableStore,
		owner: Owner,
		notifications: Optional[NotificationQueue] = None,
		observed_level: int = 1,
		now: Optional[Callable[[], datetime]] = None
	):
		self.store = store
		self.owner = owner
		self.notifications = notifications
		self.observed_level = observed_level
		self._now = now or (lambda: datetime.now(timezone.utc))
		self._instances: List[Dict] = []
		self._visible: List[Dict] = []

	@property
	def quests(self) -> List[Dict]:
		return list(self._instances)

	@property
	def visible(self) -> List[Dict]:
		return list(self._visible)

	async def load_for_level(self, level: int) -> List[Dict]:
		"""
		Загружает шаблоны до указанного уровня и экземпляры владельца.

		Returns:
			Объединенный список: экземпляры (unlocked=True) и шаблоны без экземпляров (unlocked=False)
		"""
		self.observed_level = level
		templates = await self.store.fetch(LEVEL_QUESTS, {"level_required": lte(level), "is_active": True})
		instances = await self.store.fetch(USER_LEVEL_QUESTS, self.owner.filters())

		by_id = {t["id"]: t for t in templates}
		missing = {row["quest_id"] for row in instances} - set(by_id)
		if missing:
			for template in await self.store.fetch(LEVEL_QUESTS, {"id": in_(missing)}):
				by_id[template["id"]] = template

		self._instances = [{**row, "quest": by_id.get(row["quest_id"]), "unlocked": True} for row in instances]
		owned = {row["quest_id"] for row in instances}
		placeholders = [locked_entry(t) for t in templates if t["id"] not in owned]
		self._visible = sort_level_quests(self._instances + placeholders)
		return self.visible

	async def unlock(self, level: int) -> List[Dict]:
		"""
		Создает экземпляры для всех активных шаблонов уровня level, которых еще нет у владельца.

		Returns:
			Новые экземпляры
		"""
		templates = await self.store.fetch(LEVEL_QUESTS, {"level_required": level, "is_active": True})
		if not templates:
			return []

		existing = await self.store.fetch(
			USER_LEVEL_QUESTS,
			{**self.owner.filters(), "quest_id": in_(t["id"] for t in templates)}
		)
		owned = {row["quest_id"] for row in existing}

		created = []
		for template in templates:
			if template["id"] in owned:
				continue
			try:
				row = await self.store.insert(USER_LEVEL_QUESTS, {
					**self.owner.columns(),
					"quest_id": template["id"],
					"progress": 0,
					"completed": False,
					"claimed": False,
					"unlocked_at": self._now(),
				})
			except ConflictError:
				# Уже открыт параллельным запросом
				continue
			except RewardError as e:
				logger.warning(f"Failed to unlock level quest {template['id']} for {self.owner.key}: {e}")
				continue
			created.append({**row, "quest": template, "unlocked": True})

		if created:
			self._instances.extend(created)
			unlocked_ids = {entry["quest_id"] for entry in created}
			self._visible = sort_level_quests(
				[e for e in self._visible if e["quest_id"] not in unlocked_ids] + created
			)
			logger.info(f"Unlocked {len(created)} level quests for {self.owner.key} at level {level}")
		return created

	async def on_level_up(self, new_level: int) -> List[Dict]:
		"""Открывает квесты всех уровней до new_level, если уровень вырос с прошлого раза"""
		if new_level <= self.observed_level:
			return []
		self.observed_level = new_level

		created = []
		for level in range(1, new_level + 1):
			created.extend(await self.unlock(level))
		return created

	async def track_progress(self, quest_type: str, increment: int = 1) -> List[Dict]:
		"""
		Увеличивает прогресс открытых невыполненных квестов указанного типа.

		Returns:
			Обновленные экземпляры
		"""
		if increment <= 0:
			return []

		updated = []
		for quest in self._instances:
			template = quest.get("quest")
			if not template or template["quest_type"] != quest_type:
				continue
			if quest["completed"] or quest["claimed"]:
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
					USER_LEVEL_QUESTS,
					{
						**self.owner.filters(),
						"id": quest["id"],
						"completed": False,
						"progress": lte(new_progress),
					},
					patch
				)
			except RewardError as e:
				logger.warning(f"Failed to update progress of level quest {quest['id']}: {e}")
				continue
			if not count:
				logger.warning(f"Level quest {quest['id']} changed concurrently, progress skipped")
				continue

			quest.update(patch)
			updated.append(quest)
			if self.notifications is not None:
				self.notifications.show_quest_progress(template["description"], new_progress, target)
				if newly_completed:
					self.notifications.show_quest_progress(template["description"], target, target, completed=True)

		if updated:
			self._visible = sort_level_quests(self._visible)
		return updated

	def _find(self, quest_id: Any) -> Dict:
		for quest in self._instances:
			if str(quest["id"]) == str(quest_id):
				return quest
		raise NotFound("Level quest not found", details={"quest_id": str(quest_id)})

	async def claim(self, quest_id: Any) -> Dict:
		"""
		Выдает награду за выполненный level квест и ставит claimed_at.

		Raises:
			NotFound, NotCompleted, AlreadyClaimed, RemoteFailure
		"""
		quest = self._find(quest_id)
		if not quest["completed"]:
			raise NotCompleted("Level quest is not completed", details={"quest_id": str(quest_id)})
		if quest["claimed"]:
			raise AlreadyClaimed("Level quest reward already claimed", details={"quest_id": str(quest_id)})

		template = quest.get("quest") or {}
		claimed_at = self._now()
		try:
			result = await settle_quest_claim(
				self.store,
				self.owner,
				USER_LEVEL_QUESTS,
				quest["id"],
				template,
				{"claimed": True, "claimed_at": claimed_at}
			)
		except AlreadyClaimed:
			quest["claimed"] = True
			raise

		quest["claimed"] = True
		quest["claimed_at"] = claimed_at
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
