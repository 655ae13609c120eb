"""
Модуль для работы с валютой владельцев (VCoin и Ruby).

Начисление выполняется атомарным инкрементом, строка баланса создается при первом начислении.
"""
from typing import Dict
import logging

from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore, USER_CURRENCY

logger = logging.getLogger(__name__)


async def get_balance(store: TableStore, owner: Owner) -> Dict[str, int]:
	"""
	Возвращает баланс владельца. Если строки еще нет, баланс нулевой.
	"""
	rows = await store.fetch(USER_CURRENCY, owner.filters(), limit=1)
	if not rows:
		return {"vcoin": 0, "ruby": 0}
	row = rows[0]
	return {"vcoin": row.get("vcoin") or 0, "ruby": row.get("ruby") or 0}


async def add_currency(
	store: TableStore,
	owner: Owner,
	vcoin: int = 0,
	ruby: int = 0
) -> Dict:
	"""
	Атомарно начисляет валюту владельцу.

	Нулевые компоненты не трогаются, если обе нулевые - хранилище не вызывается.

	Args:
		store: Хранилище
		owner: Владелец
		vcoin: Количество VCoin (неотрицательное)
		ruby: Количество Ruby (неотрицательное)

	Returns:
		Словарь с информацией о результате начисления:
		- balance: новый баланс {"vcoin", "ruby"}
		- added: начисленные суммы по валютам (только ненулевые)

	Raises:
		ValueError: Если сумма отрицательная
	"""
	if vcoin < 0 or ruby < 0:
		raise ValueError("Amount must not be negative")

	deltas = {name: amount for name, amount in (("vcoin", vcoin), ("ruby", ruby)) if amount > 0}
	if not deltas:
		return {"balance": await get_balance(store, owner), "added": {}}

	row = await store.increment(
		USER_CURRENCY,
		owner.filters(),
		deltas,
		defaults={"vcoin": 0, "ruby": 0}
	)
	logger.info(f"Credited {deltas} to {owner.key}")

	return {
		"balance": {"vcoin": row["vcoin"], "ruby": row["ruby"]},
		"added": deltas
	}
