"""
Награды за вехи отношений с персонажем.

Вехи и награды фиксированы, в таблице relationship_milestones хранится только факт получения.
"""
from typing import Callable, Dict, Iterable, List, Optional
from datetime import datetime, timezone
import logging

from rewardhub.core.currency import add_currency
from rewardhub.core.exceptions import AlreadyClaimed, ConflictError, NotEligible, NotFound
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore, CHARACTER_RELATIONSHIP, RELATIONSHIP_MILESTONES
from rewardhub.services.notifications import NotificationQueue
from rewardhub.services.quest_rewards import announce_rewards

logger = logging.getLogger(__name__)

MILESTONES = (10, 25, 40, 50, 60, 75, 90, 100)

MILESTONE_REWARDS: Dict[int, Dict[str, int]] = {
	10: {"vcoin": 200, "ruby": 5},
	25: {"vcoin": 500, "ruby": 10},
	40: {"vcoin": 1000, "ruby": 20},
	50: {"vcoin": 2000, "ruby": 50},
	60: {"vcoin": 3000, "ruby": 75},
	75: {"vcoin": 5000, "ruby": 100},
	90: {"vcoin": 8000, "ruby": 150},
	100: {"vcoin": 10000, "ruby": 300},
}

# (минимальный уровень, название, описание) по убыванию уровня
RELATIONSHIP_LEVELS = (
	(90, "Soulmate", "A soulmate connection this strong is rare. Cherish every conversation."),
	(75, "Lover", "It's true love. Continue to show care to keep the relationship glowing."),
	(60, "Crush", "There's a spark between you two. Keep the momentum and see where it goes."),
	(50, "Best Friend", "Best friends forever! Keep interacting to see what surprises await."),
	(40, "Close Friend", "You're close friends now. Sharing more moments together will unlock new memories."),
	(25, "Friend", "You're officially friends! Meaningful chats will deepen the bond even more."),
	(10, "Acquaintance", "You're warming up. Keep the conversations going to become closer friends."),
	(0, "Stranger", "You're just getting started. Spend more time chatting to build your connection."),
)


def get_level_name(level: int) -> str:
	for threshold, name, _ in RELATIONSHIP_LEVELS:
		if level >= threshold:
			return name
	return RELATIONSHIP_LEVELS[-1][1]


def get_level_description(level: int) -> str:
	for threshold, _, description in RELATIONSHIP_LEVELS:
		if level >= threshold:
			return description
	return RELATIONSHIP_LEVELS[-1][2]


def can_claim_milestone(level: int, milestone: int, claimed: Iterable[int]) -> bool:
	"""Веху можно получить, если уровень отношений ее достиг и она еще не получена"""
	return level >= milestone and milestone not in set(claimed)


class RelationshipMilestoneEngine:
	def __init__(
		self,
		store: TableStore,
		owner: Owner,
		notifications: Optional[NotificationQueue] = None,
		now: Optional[Callable[[], datetime]] = None
	):
		self.store = store
		self.owner = owner
		self.notifications = notifications
		self._now = now or (lambda: datetime.now(timezone.utc))

	async def relationship_level(self, character_id: str) -> int:
		rows = await self.store.fetch(
			CHARACTER_RELATIONSHIP,
			{**self.owner.filters(), "character_id": character_id},
			limit=1
		)
		if not rows:
			return 0
		return rows[0].get("relationship_level") or 0

	async def claimed_milestones(self, character_id: str) -> List[int]:
		rows = await self.store.fetch(
			RELATIONSHIP_MILESTONES,
			{**self.owner.filters(), "character_id": character_id, "claimed": True},
			order=[("milestone_level", True)]
		)
		return [row["milestone_level"] for row in rows]

	async def stages(self, character_id: str) -> Dict:
		"""Все вехи персонажа с наградами и состоянием получения"""
		level = await self.relationship_level(character_id)
		claimed = set(await self.claimed_milestones(character_id))
		return {
			"character_id": character_id,
			"relationship_level": level,
			"level_name": get_level_name(level),
			"level_description": get_level_description(level),
			"stages": [
				{
					"milestone": milestone,
					"name": get_level_name(milestone),
					"reward": MILESTONE_REWARDS[milestone],
					"reached": level >= milestone,
					"claimed": milestone in claimed,
					"can_claim": can_claim_milestone(level, milestone, claimed),
				}
				for milestone in MILESTONES
			],
		}

	async def claim(self, character_id: str, milestone: int) -> Dict:
		"""
		Выдает награду за веху отношений.

		Отметка о получении и начисление валюты выполняются в одной транзакции. Строка
		отметки уникальна для (владелец, персонаж, веха), поэтому параллельные запросы
		начисляют награду ровно один раз.

		Raises:
			NotFound: Такой вехи нет
			NotEligible: Уровень отношений ниже вехи
			AlreadyClaimed: Награда уже получена
		"""
		reward = MILESTONE_REWARDS.get(milestone)
		if reward is None:
			raise NotFound("Relationship milestone not found", details={"milestone": milestone})

		filters = {**self.owner.filters(), "character_id": character_id, "milestone_level": milestone}
		details = {"character_id": character_id, "milestone": milestone}

		# Полученная веха остается полученной, даже если уровень отношений потом упал
		if milestone in await self.claimed_milestones(character_id):
			raise AlreadyClaimed("Relationship milestone already claimed", details=details)

		level = await self.relationship_level(character_id)
		if level < milestone:
			raise NotEligible(
				"Relationship level is below milestone",
				details={**details, "level": level}
			)

		claimed_at = self._now()

		async with self.store.transaction():
			rows = await self.store.fetch(RELATIONSHIP_MILESTONES, filters, limit=1)
			if rows:
				if rows[0]["claimed"]:
					raise AlreadyClaimed("Relationship milestone already claimed", details=details)
				updated = await self.store.update(
					RELATIONSHIP_MILESTONES,
					{**filters, "claimed": False},
					{"claimed": True, "claimed_at": claimed_at}
				)
				if not updated:
					raise AlreadyClaimed("Relationship milestone already claimed", details=details)
			else:
				try:
					await self.store.insert(RELATIONSHIP_MILESTONES, {
						**self.owner.columns(),
						"character_id": character_id,
						"milestone_level": milestone,
						"claimed": True,
						"claimed_at": claimed_at,
					})
				except ConflictError as e:
					raise AlreadyClaimed("Relationship milestone already claimed", details=details) from e

			await add_currency(self.store, self.owner, vcoin=reward["vcoin"], ruby=reward["ruby"])

		logger.info(f"Owner {self.owner.key} claimed milestone {milestone} of {character_id}")
		announce_rewards(self.notifications, vcoin=reward["vcoin"], ruby=reward["ruby"])
		return {"character_id": character_id, "milestone": milestone, "reward": dict(reward)}
