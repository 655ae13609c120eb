from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from rewardhub.schemas.quest import RewardItem

class LoginRewardTemplate(BaseModel):
	id: UUID
	day_number: int
	reward_vcoin: int = 0
	reward_ruby: int = 0
	reward_energy: int = 0

	class Config:
		from_attributes = True

class UserLoginRewardRecord(BaseModel):
	id: UUID
	user_id: Optional[str] = None
	client_id: Optional[str] = None
	current_day: int = 0
	last_claim_date: Optional[date] = None
	total_days_claimed: int = 0
	updated_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class LoginRewardState(BaseModel):
	"""Результат вычисления состояния серии на сегодня"""
	record: UserLoginRewardRecord
	current_day: int
	can_claim_today: bool
	has_claimed_today: bool
	streak_broken: bool = False

class LoginRewardBoard(BaseModel):
	rewards: List[LoginRewardTemplate]
	state: LoginRewardState

class LoginRewardClaimResult(BaseModel):
	record: UserLoginRewardRecord
	reward: LoginRewardTemplate
	rewards: List[RewardItem]
	login_streak: Optional[int] = None
