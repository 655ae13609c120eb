"""
Модуль для расчета и начисления опыта (XP) и уровней владельцев.

Формулы:
- level(xp) = ⌊√(max(0, xp) / 100)⌋ + 1
- TotalXP(N) = (N - 1)² × 100 - общий опыт, требуемый для достижения уровня N
"""
import math
from typing import Dict
import logging

from rewardhub.core.config import settings
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore, USER_STATS, lt

logger = logging.getLogger(__name__)

# Значения для лениво создаваемой строки user_stats
DEFAULT_STATS = {
	"level": 1,
	"xp": 0,
	"energy": settings.ENERGY_MAX,
	"login_streak": 0,
}


def calculate_level_from_xp(total_xp: int) -> int:
	"""
	Определяет уровень по общему опыту.

	Args:
		total_xp: Общий опыт (отрицательный считается нулем)

	Returns:
		Уровень, начиная с 1
	"""
	return math.isqrt(max(0, total_xp) // 100) + 1


def calculate_total_xp_for_level(level: int) -> int:
	"""
	Рассчитывает общий опыт TotalXP(N), требуемый для достижения уровня N.

	Args:
		level: Целевой уровень

	Returns:
		Общее количество XP (0 для уровня 1 и ниже)
	"""
	if level <= 1:
		return 0
	return (level - 1) ** 2 * 100


def get_progression_info(total_xp: int) -> Dict:
	"""
	Получает информацию о прогрессе владельца.

	Args:
		total_xp: Общий опыт

	Returns:
		Словарь с информацией о прогрессе:
		- level: текущий уровень
		- total_xp: общий опыт
		- xp_for_current_level: XP, требуемый для текущего уровня
		- xp_for_next_level: XP, требуемый для следующего уровня
		- xp_progress: XP, накопленный на текущем уровне
		- xp_needed: XP, необходимое для следующего уровня
		- progress_percent: процент прогресса до следующего уровня (0-100)
	"""
	total_xp = max(0, total_xp)
	current_level = calculate_level_from_xp(total_xp)
	xp_for_current_level = calculate_total_xp_for_level(current_level)
	xp_for_next_level = calculate_total_xp_for_level(current_level + 1)

	xp_progress = total_xp - xp_for_current_level
	xp_needed = xp_for_next_level - total_xp
	level_span = xp_for_next_level - xp_for_current_level

	progress_percent = (xp_progress / level_span) * 100 if level_span > 0 else 100.0

	return {
		"level": current_level,
		"total_xp": total_xp,
		"xp_for_current_level": xp_for_current_level,
		"xp_for_next_level": xp_for_next_level,
		"xp_progress": xp_progress,
		"xp_needed": xp_needed,
		"progress_percent": round(progress_percent, 2)
	}


async def award_xp(
	store: TableStore,
	owner: Owner,
	xp_amount: int
) -> Dict:
	"""
	Атомарно начисляет опыт и пересчитывает уровень.

	Опыт прибавляется инкрементом в хранилище, уровень считается уже от нового значения.
	Уровень обновляется только вверх, чтобы параллельные начисления не откатили его назад.

	Args:
		store: Хранилище
		owner: Владелец
		xp_amount: Количество XP для начисления (должно быть положительным)

	Returns:
		Словарь с информацией о результате начисления:
		- level: новый уровень
		- total_xp: новый общий опыт
		- xp_awarded: начисленное количество XP
		- level_increased: True, если уровень повысился
		- old_level: уровень до начисления
		- progression: информация о прогрессе (см. get_progression_info)

	Raises:
		ValueError: Если xp_amount <= 0
	"""
	if xp_amount <= 0:
		raise ValueError("XP amount must be positive")

	row = await store.increment(
		USER_STATS,
		owner.filters(),
		{"xp": xp_amount},
		defaults=DEFAULT_STATS
	)

	new_xp = row["xp"]
	stored_level = row["level"] or 1
	old_level = calculate_level_from_xp(new_xp - xp_amount)
	new_level = calculate_level_from_xp(new_xp)

	if new_level > stored_level:
		await store.update(
			USER_STATS,
			{**owner.filters(), "level": lt(new_level)},
			{"level": new_level}
		)
		logger.info(f"Owner {owner.key} reached level {new_level} ({new_xp} XP)")

	return {
		"level": new_level,
		"total_xp": new_xp,
		"xp_awarded": xp_amount,
		"level_increased": new_level > old_level,
		"old_level": old_level,
		"progression": get_progression_info(new_xp)
	}
