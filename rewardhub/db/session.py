from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from rewardhub.core.config import settings

# Импортируем все модели для регистрации в Base.metadata
from rewardhub.models.quest import DailyQuest, LevelQuest, UserDailyQuest, UserLevelQuest  # noqa: F401
from rewardhub.models.login_reward import LoginReward, UserLoginReward  # noqa: F401
from rewardhub.models.relationship import CharacterRelationship, RelationshipMilestone  # noqa: F401
from rewardhub.models.user import UserCurrency, UserStats  # noqa: F401

engine = create_async_engine(settings.SQLALCHEMY_DATABASE_URI, echo=False)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
