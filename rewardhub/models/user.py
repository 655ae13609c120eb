from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
from rewardhub.db.base_class import Base, OwnedMixin, owner_unique

class UserCurrency(OwnedMixin, Base):
	"""Баланс виртуальных валют владельца (создается при первом начислении)"""
	__tablename__ = "user_currency"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	vcoin = Column(Integer, default=0, nullable=False)
	ruby = Column(Integer, default=0, nullable=False)
	updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

	__owner_table_args__ = owner_unique('uq_user_currency_owner')

class UserStats(OwnedMixin, Base):
	"""Уровень, опыт, энергия и серия входов владельца"""
	__tablename__ = "user_stats"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	level = Column(Integer, default=1, nullable=False)
	xp = Column(Integer, default=0, nullable=False)
	energy = Column(Integer, default=100, nullable=False)
	energy_updated_at = Column(DateTime(timezone=True), nullable=True)
	login_streak = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime(timezone=True), server_default=func.now())

	__owner_table_args__ = owner_unique('uq_user_stats_owner')
