"""
Сервис для работы со статистикой владельца: энергия и серия входов.

Опыт и уровень начисляются через rewardhub.core.progression.
"""
from typing import Dict, Optional, Tuple
from datetime import datetime, timedelta, timezone
import logging

from rewardhub.core.config import settings
from rewardhub.core.exceptions import RemoteFailure
from rewardhub.core.owner import Owner
from rewardhub.core.progression import DEFAULT_STATS, calculate_total_xp_for_level, get_progression_info
from rewardhub.db.store import TableStore, USER_STATS

logger = logging.getLogger(__name__)

# Сколько раз повторяем условное обновление энергии при параллельной записи
ENERGY_UPDATE_ATTEMPTS = 3


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


async def get_or_create_stats(store: TableStore, owner: Owner, now: Optional[datetime] = None) -> Dict:
	"""Возвращает строку user_stats, создавая ее со значениями по умолчанию."""
	return await store.increment(
		USER_STATS,
		owner.filters(),
		{},
		defaults={**DEFAULT_STATS, "energy_updated_at": now or _utcnow()}
	)


def regenerate_energy(energy: int, updated_at: Optional[datetime], now: datetime) -> Tuple[int, datetime]:
	"""
	Пассивное восстановление энергии: 1 единица за ENERGY_REGEN_MINUTES минут до ENERGY_MAX.

	Остаток неполного интервала сохраняется за счет сдвига updated_at ровно на начисленные интервалы.

	Returns:
		(новая энергия, новая отметка времени восстановления)
	"""
	if energy >= settings.ENERGY_MAX or updated_at is None:
		return energy, now

	interval = timedelta(minutes=settings.ENERGY_REGEN_MINUTES)
	elapsed = now - _as_aware(updated_at)
	if elapsed < interval:
		return energy, _as_aware(updated_at)

	points = int(elapsed // interval)
	new_energy = min(settings.ENERGY_MAX, energy + points)
	if new_energy >= settings.ENERGY_MAX:
		return new_energy, now
	return new_energy, _as_aware(updated_at) + interval * points


async def get_stats(store: TableStore, owner: Owner, now: Optional[datetime] = None) -> Dict:
	"""
	Получает статистику владельца с учетом восстановленной энергии.

	Восстановленная энергия сохраняется условным обновлением: если строку параллельно
	изменили, возвращается свежая строка без повторного пересчета.
	"""
	now = now or _utcnow()
	row = await get_or_create_stats(store, owner, now)

	energy, regen_at = regenerate_energy(row["energy"], row.get("energy_updated_at"), now)
	if energy != row["energy"] or row.get("energy_updated_at") is None:
		updated = await store.update(
			USER_STATS,
			{**owner.filters(), "energy": row["energy"]},
			{"energy": energy, "energy_updated_at": regen_at}
		)
		if updated:
			row = {**row, "energy": energy, "energy_updated_at": regen_at}
		else:
			row = await get_or_create_stats(store, owner, now)

	level = row["level"] or 1
	return {
		"level": level,
		"xp": row["xp"] or 0,
		"next_level_xp": calculate_total_xp_for_level(level + 1),
		"energy": row["energy"],
		"energy_max": settings.ENERGY_MAX,
		"energy_updated_at": row.get("energy_updated_at"),
		"login_streak": row.get("login_streak") or 0,
		"progression": get_progression_info(row["xp"] or 0)
	}


async def credit_energy(store: TableStore, owner: Owner, amount: int, now: Optional[datetime] = None) -> int:
	"""
	Начисляет энергию с ограничением в диапазоне [0, ENERGY_MAX].

	Если ограничение не меняет значение, запись пропускается.

	Returns:
		Фактически начисленная энергия (может быть 0)

	Raises:
		RemoteFailure: Если строку не удалось обновить из-за параллельных изменений
	"""
	now = now or _utcnow()
	for _ in range(ENERGY_UPDATE_ATTEMPTS):
		row = await get_or_create_stats(store, owner, now)
		current = row["energy"]
		new_energy = max(0, min(settings.ENERGY_MAX, current + amount))
		if new_energy == current:
			return 0

		patch = {"energy": new_energy}
		# Отсчет восстановления начинается с момента выхода из максимума
		if new_energy >= settings.ENERGY_MAX or current >= settings.ENERGY_MAX:
			patch["energy_updated_at"] = now
		updated = await store.update(USER_STATS, {**owner.filters(), "energy": current}, patch)
		if updated:
			logger.info(f"Energy of {owner.key}: {current} -> {new_energy}")
			return new_energy - current

	raise RemoteFailure(
		"Failed to credit energy: concurrent updates",
		details={"owner": owner.key, "amount": amount}
	)


async def update_login_streak(store: TableStore, owner: Owner, consecutive: bool) -> int:
	"""
	Обновляет счетчик серии входов: +1 для входа на следующий день, иначе серия начинается заново.

	Returns:
		Новое значение login_streak
	"""
	if consecutive:
		row = await store.increment(USER_STATS, owner.filters(), {"login_streak": 1}, defaults=DEFAULT_STATS)
		return row["login_streak"]

	await get_or_create_stats(store, owner)
	await store.update(USER_STATS, owner.filters(), {"login_streak": 1})
	return 1
