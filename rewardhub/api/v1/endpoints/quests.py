from fastapi import APIRouter, Depends
from typing import Dict, Optional
from uuid import UUID
from rewardhub.api import deps
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore
from rewardhub.schemas.quest import (
	LevelQuestEntry,
	QuestClaimResult,
	QuestProgressIn,
	QuestProgressResult,
	UserDailyQuest
)
from rewardhub.services.daily_quests import DailyQuestEngine
from rewardhub.services.level_quests import LevelQuestEngine
from rewardhub.services.quest_progress import QuestProgressTracker
from rewardhub.services.user_stats import get_stats
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


async def prepare_level_engine(store: TableStore, owner: Owner, engine: LevelQuestEngine) -> int:
	"""Открывает квесты до текущего уровня владельца и загружает их в движок"""
	stats = await get_stats(store, owner)
	await engine.on_level_up(stats["level"])
	await engine.load_for_level(stats["level"])
	return stats["level"]


async def unlock_after_claim(result: Dict, level_engine: LevelQuestEngine) -> None:
	xp_result = result.get("xp")
	if xp_result and xp_result["level_increased"]:
		await level_engine.on_level_up(xp_result["level"])


def claim_response(result: Dict) -> Dict:
	xp_result: Optional[Dict] = result.get("xp")
	return {
		"quest_id": result["quest_id"],
		"rewards": result["rewards"],
		"balance": result["balance"],
		"level": xp_result["level"] if xp_result else None,
		"level_increased": bool(xp_result and xp_result["level_increased"])
	}

# ========== Daily квесты ==========

@router.get("/quests/daily", response_model=list[UserDailyQuest])
async def get_daily_quests(
	engine: DailyQuestEngine = Depends(deps.get_daily_engine)
):
	"""Квесты на сегодня (генерируются при первом запросе за день)"""
	return await engine.load_today()

@router.post("/quests/daily/generate", response_model=list[UserDailyQuest])
async def generate_daily_quests(
	engine: DailyQuestEngine = Depends(deps.get_daily_engine)
):
	"""Архивировать открытые квесты дня и выдать новый набор"""
	return await engine.generate()

@router.post("/quests/daily/{quest_id}/claim", response_model=QuestClaimResult)
async def claim_daily_quest(
	quest_id: UUID,
	engine: DailyQuestEngine = Depends(deps.get_daily_engine),
	level_engine: LevelQuestEngine = Depends(deps.get_level_engine)
):
	"""Получить награду за выполненный daily квест"""
	await engine.load_today()
	result = await engine.claim(quest_id)
	await unlock_after_claim(result, level_engine)
	return claim_response(result)

# ========== Level квесты ==========

@router.get("/quests/level", response_model=list[LevelQuestEntry])
async def get_level_quests(
	store: TableStore = Depends(deps.get_store),
	owner: Owner = Depends(deps.get_owner),
	engine: LevelQuestEngine = Depends(deps.get_level_engine)
):
	"""Level квесты до текущего уровня, включая еще не открытые"""
	await prepare_level_engine(store, owner, engine)
	return engine.visible

@router.post("/quests/level/{quest_id}/claim", response_model=QuestClaimResult)
async def claim_level_quest(
	quest_id: UUID,
	store: TableStore = Depends(deps.get_store),
	owner: Owner = Depends(deps.get_owner),
	engine: LevelQuestEngine = Depends(deps.get_level_engine)
):
	"""Получить награду за выполненный level квест"""
	await prepare_level_engine(store, owner, engine)
	result = await engine.claim(quest_id)
	await unlock_after_claim(result, engine)
	return claim_response(result)

# ========== Прогресс ==========

@router.post("/quests/progress", response_model=QuestProgressResult)
async def track_quest_progress(
	payload: QuestProgressIn,
	store: TableStore = Depends(deps.get_store),
	owner: Owner = Depends(deps.get_owner),
	tracker: QuestProgressTracker = Depends(deps.get_tracker)
):
	"""Засчитать прогресс по типу квеста в daily и level квестах"""
	await tracker.daily.load_today()
	await prepare_level_engine(store, owner, tracker.level)
	return await tracker.track_quest_type(payload.quest_type, payload.increment)
