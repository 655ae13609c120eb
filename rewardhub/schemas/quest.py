from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from uuid import UUID
from datetime import datetime, date
from enum import Enum

class QuestDifficulty(str, Enum):
	easy = "easy"
	medium = "medium"
	hard = "hard"

class QuestTemplateBase(BaseModel):
	id: UUID
	quest_type: str
	quest_category: Optional[str] = None
	description: str
	target_value: int
	reward_vcoin: int = 0
	reward_ruby: int = 0
	reward_xp: int = 0
	is_active: bool = True

	class Config:
		from_attributes = True

class DailyQuestTemplate(QuestTemplateBase):
	difficulty: str

class LevelQuestTemplate(QuestTemplateBase):
	level_required: int

class UserQuestBase(BaseModel):
	id: UUID
	user_id: Optional[str] = None
	client_id: Optional[str] = None
	quest_id: UUID
	progress: int = 0
	completed: bool = False
	claimed: bool = False
	completed_at: Optional[datetime] = None

	class Config:
		from_attributes = True

	@property
	def is_archived(self) -> bool:
		"""Архивный (или уже закрытый) экземпляр: выполнен и награда получена"""
		return self.completed and self.claimed

class UserDailyQuest(UserQuestBase):
	quest_date: date
	quest: Optional[DailyQuestTemplate] = None

class UserLevelQuest(UserQuestBase):
	unlocked_at: Optional[datetime] = None
	claimed_at: Optional[datetime] = None
	quest: Optional[LevelQuestTemplate] = None

class LevelQuestEntry(BaseModel):
	"""Строка списка level квестов: открытый экземпляр или еще не открытый шаблон"""
	id: Optional[UUID] = None
	quest: LevelQuestTemplate
	progress: int = 0
	completed: bool = False
	claimed: bool = False
	unlocked: bool = False
	unlocked_at: Optional[datetime] = None
	completed_at: Optional[datetime] = None
	claimed_at: Optional[datetime] = None

class RewardItem(BaseModel):
	type: Literal["vcoin", "ruby", "xp", "energy"]
	amount: int

class QuestClaimResult(BaseModel):
	quest_id: UUID
	rewards: List[RewardItem]
	balance: Optional[dict] = None
	level: Optional[int] = None
	level_increased: bool = False

class QuestProgressIn(BaseModel):
	quest_type: str
	increment: int = Field(1, ge=1)

class QuestProgressResult(BaseModel):
	daily: List[UserDailyQuest] = []
	level: List[UserLevelQuest] = []
