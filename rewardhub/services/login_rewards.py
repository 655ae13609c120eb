"""
Сервис ежедневных наград за вход (цикл из 30 дней).

Состояние серии вычисляется чистой функцией evaluate_login_state по записи владельца и
сегодняшней дате, в хранилище current_day записывается только при получении награды.
"""
from typing import Any, Callable, Dict, List, Optional
from datetime import date, datetime, timezone
import logging

from rewardhub.core.config import settings
from rewardhub.core.currency import add_currency
from rewardhub.core.exceptions import ConflictError, NotEligible, NotReady
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore, LOGIN_REWARDS, USER_LOGIN_REWARDS
from rewardhub.services.notifications import NotificationQueue
from rewardhub.services.quest_rewards import announce_rewards
from rewardhub.services.user_stats import credit_energy, update_login_streak

logger = logging.getLogger(__name__)


def days_since_claim(record: Dict[str, Any], today: date) -> Optional[int]:
	"""Разница в календарных днях между сегодня и последним получением (None если не получали)"""
	last_claim = record.get("last_claim_date")
	if last_claim is None:
		return None
	if isinstance(last_claim, datetime):
		last_claim = last_claim.date()
	return (today - last_claim).days


def evaluate_login_state(
	record: Dict[str, Any],
	today: date,
	cycle_days: int = settings.LOGIN_REWARD_CYCLE_DAYS
) -> Dict[str, Any]:
	"""
	Вычисляет текущий день цикла и доступность награды.

	- не получали ни разу: день max(current_day, 1), награда доступна
	- получали сегодня: награда недоступна, день не меняется
	- получали вчера: следующий день (после 30 снова 1), награда доступна
	- пропуск больше дня: серия сброшена, день 1, награда доступна
	- дата получения в будущем (сдвиг часов): награда недоступна

	Returns:
		Словарь: record (с вычисленным current_day), current_day, can_claim_today,
		has_claimed_today, streak_broken
	"""
	current_day = record.get("current_day") or 0
	gap = days_since_claim(record, today)
	can_claim = False
	claimed_today = False
	streak_broken = False

	if gap is None:
		current_day = max(current_day, 1)
		can_claim = True
	elif gap == 0:
		claimed_today = True
	elif gap == 1:
		current_day += 1
		if current_day > cycle_days:
			current_day = 1
		can_claim = True
	elif gap > 1:
		current_day = 1
		can_claim = True
		streak_broken = True

	return {
		"record": {**record, "current_day": current_day},
		"current_day": current_day,
		"can_claim_today": can_claim,
		"has_claimed_today": claimed_today,
		"streak_broken": streak_broken,
	}


class LoginRewardEngine:
	def __init__(
		self,
		store: TableStore,
		owner: Owner,
		notifications: Optional[NotificationQueue] = None,
		today: Optional[Callable[[], date]] = None,
		now: Optional[Callable[[], datetime]] = None
	):
		self.store = store
		self.owner = owner
		self.notifications = notifications
		self._today = today or date.today
		self._now = now or (lambda: datetime.now(timezone.utc))
		self.rewards: List[Dict] = []
		self.state: Optional[Dict] = None

	async def _get_or_create_record(self) -> Dict:
		rows = await self.store.fetch(USER_LOGIN_REWARDS, self.owner.filters(), limit=1)
		if rows:
			return rows[0]
		try:
			return await self.store.insert(USER_LOGIN_REWARDS, {
				**self.owner.columns(),
				"current_day": 0,
				"total_days_claimed": 0,
			})
		except ConflictError:
			rows = await self.store.fetch(USER_LOGIN_REWARDS, self.owner.filters(), limit=1)
			if not rows:
				raise
			return rows[0]

	async def hydrate(self) -> Dict:
		"""Загружает таблицу наград и запись владельца, затем вычисляет состояние на сегодня"""
		self.rewards = await self.store.fetch(LOGIN_REWARDS, order=[("day_number", True)])
		record = await self._get_or_create_record()
		self.state = evaluate_login_state(record, self._today())
		return self.state

	async def claim(self, state: Dict, rewards: List[Dict]) -> Dict:
		"""
		Выдает награду за текущий день серии.

		Запись обновляется условно по предыдущей last_claim_date, поэтому два параллельных
		запроса не получат награду дважды. Начисление валюты, энергии и серии входов
		выполняется в той же транзакции.

		Raises:
			NotReady: Нет шаблона награды для текущего дня
			NotEligible: Награда сегодня уже получена или еще недоступна
		"""
		day = state["current_day"]
		reward = next((r for r in rewards if r["day_number"] == day), None)
		if reward is None:
			raise NotReady("No login reward configured for day", details={"day": day})
		if not state["can_claim_today"]:
			raise NotEligible(
				"Login reward is not available",
				details={"day": day, "has_claimed_today": state["has_claimed_today"]}
			)

		record = state["record"]
		today = self._today()
		consecutive = days_since_claim(record, today) == 1

		async with self.store.transaction():
			updated = await self.store.update(
				USER_LOGIN_REWARDS,
				{
					**self.owner.filters(),
					"id": record["id"],
					"last_claim_date": record.get("last_claim_date"),
				},
				{
					"current_day": day,
					"last_claim_date": today,
					"total_days_claimed": (record.get("total_days_claimed") or 0) + 1,
					"updated_at": self._now(),
				}
			)
			if not updated:
				raise NotEligible("Login reward already claimed", details={"day": day, "has_claimed_today": True})

			await add_currency(
				self.store,
				self.owner,
				vcoin=reward.get("reward_vcoin") or 0,
				ruby=reward.get("reward_ruby") or 0
			)
			energy = 0
			if reward.get("reward_energy"):
				energy = await credit_energy(self.store, self.owner, reward["reward_energy"], now=self._now())
			login_streak = await update_login_streak(self.store, self.owner, consecutive)

		new_record = {
			**record,
			"current_day": day,
			"last_claim_date": today,
			"total_days_claimed": (record.get("total_days_claimed") or 0) + 1,
		}
		self.state = evaluate_login_state(new_record, today)
		logger.info(f"Owner {self.owner.key} claimed login reward day {day}")

		announce_rewards(
			self.notifications,
			vcoin=reward.get("reward_vcoin") or 0,
			ruby=reward.get("reward_ruby") or 0,
			energy=energy
		)

		items = [
			{"type": reward_type, "amount": amount}
			for reward_type, amount in (
				("vcoin", reward.get("reward_vcoin") or 0),
				("ruby", reward.get("reward_ruby") or 0),
				("energy", energy),
			)
			if amount > 0
		]
		return {
			"record": new_record,
			"reward": reward,
			"rewards": items,
			"login_streak": login_streak,
		}

	async def claim_today(self) -> Dict:
		"""hydrate + claim с текущим состоянием"""
		state = await self.hydrate()
		return await self.claim(state, self.rewards)
