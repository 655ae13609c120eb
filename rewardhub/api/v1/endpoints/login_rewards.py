from fastapi import APIRouter, Depends
from rewardhub.api import deps
from rewardhub.api.v1.endpoints.quests import prepare_level_engine
from rewardhub.core.exceptions import RewardError
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore
from rewardhub.schemas.login_reward import LoginRewardBoard, LoginRewardClaimResult
from rewardhub.services.login_rewards import LoginRewardEngine
from rewardhub.services.quest_progress import QuestProgressTracker
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("", response_model=LoginRewardBoard)
async def get_login_rewards(
	engine: LoginRewardEngine = Depends(deps.get_login_engine)
):
	"""Таблица наград за вход и состояние серии на сегодня"""
	state = await engine.hydrate()
	return {"rewards": engine.rewards, "state": state}

@router.post("/claim", response_model=LoginRewardClaimResult)
async def claim_login_reward(
	store: TableStore = Depends(deps.get_store),
	owner: Owner = Depends(deps.get_owner),
	engine: LoginRewardEngine = Depends(deps.get_login_engine),
	tracker: QuestProgressTracker = Depends(deps.get_tracker)
):
	"""Получить награду за сегодняшний вход"""
	result = await engine.claim_today()

	# Награда уже выдана, прогресс квестов на серию входов вторичен
	try:
		await tracker.daily.load_today()
		await prepare_level_engine(store, owner, tracker.level)
		await tracker.track("login_streak")
	except RewardError as e:
		logger.warning(f"Failed to track login streak quests for {owner.key}: {e}")

	return result
