from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Date, Boolean, Text, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from rewardhub.db.base_class import Base, OwnedMixin, owner_unique

class DailyQuest(Base):
	"""Шаблон daily квеста (поддерживается контент-пайплайном, движок только читает)"""
	__tablename__ = "daily_quests"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	quest_type = Column(String, nullable=False, index=True)  # "swipe_character", "video_call", ...
	quest_category = Column(String, nullable=True)
	difficulty = Column(String, nullable=False, index=True)  # easy, medium, hard
	description = Column(Text, nullable=False)
	target_value = Column(Integer, nullable=False)
	reward_vcoin = Column(Integer, default=0, nullable=False)
	reward_ruby = Column(Integer, default=0, nullable=False)
	reward_xp = Column(Integer, default=0, nullable=False)
	is_active = Column(Boolean, default=True, nullable=False, index=True)
	created_at = Column(DateTime(timezone=True), server_default=func.now())

	user_quests = relationship("UserDailyQuest", back_populates="quest")

class LevelQuest(Base):
	"""Шаблон квеста, открывающегося на определенном уровне"""
	__tablename__ = "level_quests"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	level_required = Column(Integer, nullable=False, index=True)
	quest_type = Column(String, nullable=False, index=True)
	quest_category = Column(String, nullable=True)
	description = Column(Text, nullable=False)
	target_value = Column(Integer, nullable=False)
	reward_vcoin = Column(Integer, default=0, nullable=False)
	reward_ruby = Column(Integer, default=0, nullable=False)
	reward_xp = Column(Integer, default=0, nullable=False)
	is_active = Column(Boolean, default=True, nullable=False, index=True)
	created_at = Column(DateTime(timezone=True), server_default=func.now())

	user_quests = relationship("UserLevelQuest", back_populates="quest")

class UserDailyQuest(OwnedMixin, Base):
	__tablename__ = "user_daily_quests"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	quest_id = Column(UUID(as_uuid=True), ForeignKey("daily_quests.id"), nullable=False, index=True)
	progress = Column(Integer, default=0, nullable=False)
	completed = Column(Boolean, default=False, nullable=False)
	claimed = Column(Boolean, default=False, nullable=False)
	quest_date = Column(Date, nullable=False, index=True)
	completed_at = Column(DateTime(timezone=True), nullable=True)
	created_at = Column(DateTime(timezone=True), server_default=func.now())

	quest = relationship("DailyQuest", back_populates="user_quests")

	__owner_table_args__ = owner_unique('uq_user_daily_quest_date', 'quest_id', 'quest_date') + (
		CheckConstraint('NOT claimed OR completed', name='ck_user_daily_quests_claimed_completed'),
	)

class UserLevelQuest(OwnedMixin, Base):
	__tablename__ = "user_level_quests"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	quest_id = Column(UUID(as_uuid=True), ForeignKey("level_quests.id"), nullable=False, index=True)
	progress = Column(Integer, default=0, nullable=False)
	completed = Column(Boolean, default=False, nullable=False)
	claimed = Column(Boolean, default=False, nullable=False)
	unlocked_at = Column(DateTime(timezone=True), nullable=True)
	completed_at = Column(DateTime(timezone=True), nullable=True)
	claimed_at = Column(DateTime(timezone=True), nullable=True)
	created_at = Column(DateTime(timezone=True), server_default=func.now())

	quest = relationship("LevelQuest", back_populates="user_quests")

	__owner_table_args__ = owner_unique('uq_user_level_quest', 'quest_id') + (
		CheckConstraint('NOT claimed OR completed', name='ck_user_level_quests_claimed_completed'),
	)
