from typing import AsyncGenerator, Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from rewardhub.core.config import settings
from rewardhub.core.owner import Owner
from rewardhub.db.session import AsyncSessionLocal
from rewardhub.db.store import SqlAlchemyStore, TableStore
from rewardhub.services.daily_quests import DailyQuestEngine
from rewardhub.services.level_quests import LevelQuestEngine
from rewardhub.services.login_rewards import LoginRewardEngine
from rewardhub.services.notifications import NotificationQueue, notification_center
from rewardhub.services.quest_progress import QuestProgressTracker
from rewardhub.services.relationship_milestones import RelationshipMilestoneEngine

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.AUTH_TOKEN_URL, auto_error=False)

async def get_db() -> AsyncGenerator:
	async with AsyncSessionLocal() as session:
		yield session

async def get_store(db: AsyncSession = Depends(get_db)) -> TableStore:
	return SqlAlchemyStore(db)

async def get_owner(
	request: Request,
	token: Optional[str] = Depends(oauth2_scheme)
) -> Owner:
	"""
	Владелец запроса: пользователь из JWT (Authorization header или cookie)
	или гость по заголовку X-Client-Id.
	"""
	if not token:
		token = request.cookies.get("access_token")

	user_id = None
	if token:
		try:
			payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
		except JWTError:
			raise HTTPException(
				status_code=status.HTTP_401_UNAUTHORIZED,
				detail="Could not validate credentials",
				headers={"WWW-Authenticate": "Bearer"},
			)
		user_id = payload.get("sub")

	client_id = request.headers.get(settings.GUEST_CLIENT_HEADER)
	return Owner.resolve(user_id=user_id, client_id=client_id)

def get_notifications(owner: Owner = Depends(get_owner)) -> NotificationQueue:
	return notification_center.queue_for(owner)

def get_daily_engine(
	store: TableStore = Depends(get_store),
	owner: Owner = Depends(get_owner),
	notifications: NotificationQueue = Depends(get_notifications)
) -> DailyQuestEngine:
	return DailyQuestEngine(store, owner, notifications)

def get_level_engine(
	store: TableStore = Depends(get_store),
	owner: Owner = Depends(get_owner),
	notifications: NotificationQueue = Depends(get_notifications)
) -> LevelQuestEngine:
	# Движок создается на запрос, поэтому открытие квестов проверяется с первого уровня
	return LevelQuestEngine(store, owner, notifications, observed_level=0)

def get_login_engine(
	store: TableStore = Depends(get_store),
	owner: Owner = Depends(get_owner),
	notifications: NotificationQueue = Depends(get_notifications)
) -> LoginRewardEngine:
	return LoginRewardEngine(store, owner, notifications)

def get_relationship_engine(
	store: TableStore = Depends(get_store),
	owner: Owner = Depends(get_owner),
	notifications: NotificationQueue = Depends(get_notifications)
) -> RelationshipMilestoneEngine:
	return RelationshipMilestoneEngine(store, owner, notifications)

def get_tracker(
	daily: DailyQuestEngine = Depends(get_daily_engine),
	level: LevelQuestEngine = Depends(get_level_engine)
) -> QuestProgressTracker:
	return QuestProgressTracker(daily, level)
