from sqlalchemy import Column, DateTime, Integer, Date
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
from rewardhub.db.base_class import Base, OwnedMixin, owner_unique

class LoginReward(Base):
	"""Награда за N-й день серии входов (1..30)"""
	__tablename__ = "login_rewards"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	day_number = Column(Integer, nullable=False, unique=True, index=True)
	reward_vcoin = Column(Integer, default=0, nullable=False)
	reward_ruby = Column(Integer, default=0, nullable=False)
	reward_energy = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime(timezone=True), server_default=func.now())

class UserLoginReward(OwnedMixin, Base):
	__tablename__ = "user_login_rewards"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	current_day = Column(Integer, default=0, nullable=False)
	last_claim_date = Column(Date, nullable=True)
	total_days_claimed = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime(timezone=True), server_default=func.now())
	updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

	__owner_table_args__ = owner_unique('uq_user_login_rewards_owner')
