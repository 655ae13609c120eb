from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum
import uuid

class NotificationKind(str, Enum):
	xp = "xp"
	relationship = "relationship"
	vcoin = "vcoin"
	ruby = "ruby"
	energy = "energy"
	quest = "quest"
	quest_progress = "quest_progress"
	level_up = "level_up"
	custom = "custom"

class Notification(BaseModel):
	"""Короткое уведомление о награде или прогрессе (не сохраняется в БД)"""
	id: str = Field(default_factory=lambda: uuid.uuid4().hex)
	kind: NotificationKind
	title: str
	subtitle: Optional[str] = None
	amount: Optional[int] = None
	icon: Optional[str] = None
	progress: Optional[float] = None  # доля выполнения 0.0..1.0
	target: Optional[int] = None
	duration: Optional[int] = None  # миллисекунды, None - длительность по умолчанию
	created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class NotificationSnapshot(BaseModel):
	current: Optional[Notification] = None
	backlog: int = 0
	queued: List[Notification] = []
