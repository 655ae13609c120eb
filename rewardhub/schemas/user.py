from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class CurrencyBalance(BaseModel):
	vcoin: int = 0
	ruby: int = 0

class ProgressionInfo(BaseModel):
	level: int
	total_xp: int
	xp_for_current_level: int
	xp_for_next_level: int
	xp_progress: int
	xp_needed: int
	progress_percent: float

class UserStatsResponse(BaseModel):
	level: int
	xp: int
	next_level_xp: int
	energy: int
	energy_max: int
	energy_updated_at: Optional[datetime] = None
	login_streak: int
	progression: ProgressionInfo
