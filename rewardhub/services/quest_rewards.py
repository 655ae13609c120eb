"""
Общая выдача наград за квесты (daily и level).
"""
from typing import Dict, List, Optional, Any
import logging

from rewardhub.core.currency import add_currency
from rewardhub.core.exceptions import AlreadyClaimed
from rewardhub.core.owner import Owner
from rewardhub.core.progression import award_xp
from rewardhub.db.store import TableStore
from rewardhub.services.notifications import NotificationQueue

logger = logging.getLogger(__name__)


def reward_items(template: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
	"""Список ненулевых наград шаблона в порядке vcoin, ruby, xp"""
	if not template:
		return []
	items = []
	for reward_type in ("vcoin", "ruby", "xp"):
		amount = template.get(f"reward_{reward_type}") or 0
		if amount > 0:
			items.append({"type": reward_type, "amount": amount})
	return items


async def settle_quest_claim(
	store: TableStore,
	owner: Owner,
	table: str,
	instance_id: Any,
	template: Dict[str, Any],
	patch: Dict[str, Any]
) -> Dict:
	"""
	Отмечает экземпляр квеста полученным и начисляет награду одной транзакцией.

	Отметка claimed ставится условным обновлением (только выполненный и еще не полученный
	экземпляр), поэтому параллельные запросы начисляют награду один раз. Любая ошибка
	откатывает и отметку, и начисления.

	Returns:
		Словарь:
		- rewards: список выданных наград
		- balance: баланс после начисления
		- xp: результат award_xp или None

	Raises:
		AlreadyClaimed: Если экземпляр уже получен (или не выполнен в хранилище)
	"""
	async with store.transaction():
		updated = await store.update(
			table,
			{**owner.filters(), "id": instance_id, "completed": True, "claimed": False},
			patch
		)
		if not updated:
			raise AlreadyClaimed(
				"Quest reward already claimed",
				details={"quest_id": str(instance_id)}
			)

		currency = await add_currency(
			store,
			owner,
			vcoin=template.get("reward_vcoin") or 0,
			ruby=template.get("reward_ruby") or 0
		)
		xp_result = None
		if (template.get("reward_xp") or 0) > 0:
			xp_result = await award_xp(store, owner, template["reward_xp"])

	logger.info(f"Owner {owner.key} claimed quest {instance_id} from {table}")
	return {
		"rewards": reward_items(template),
		"balance": currency["balance"],
		"xp": xp_result
	}


def announce_rewards(
	notifications: Optional[NotificationQueue],
	vcoin: int = 0,
	ruby: int = 0,
	xp_result: Optional[Dict] = None,
	energy: int = 0
) -> None:
	if notifications is None:
		return
	if vcoin > 0:
		notifications.show_currency("vcoin", vcoin)
	if ruby > 0:
		notifications.show_currency("ruby", ruby)
	if energy > 0:
		notifications.show_energy(energy)
	if xp_result:
		notifications.show_xp(xp_result["xp_awarded"])
		if xp_result["level_increased"]:
			notifications.show_level_up(xp_result["level"])
