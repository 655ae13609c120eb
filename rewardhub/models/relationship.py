from sqlalchemy import Column, DateTime, Integer, String, Boolean
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
from rewardhub.db.base_class import Base, OwnedMixin, owner_unique

class CharacterRelationship(OwnedMixin, Base):
	"""Уровень отношений с персонажем (ведется чатом, здесь только чтение)"""
	__tablename__ = "character_relationship"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	character_id = Column(String, nullable=False, index=True)
	relationship_level = Column(Integer, default=0, nullable=False)
	relationship_xp = Column(Integer, default=0, nullable=False)
	last_interaction = Column(DateTime(timezone=True), nullable=True)

	__owner_table_args__ = owner_unique('uq_character_relationship_owner', 'character_id')

class RelationshipMilestone(OwnedMixin, Base):
	"""Факт получения награды за веху отношений"""
	__tablename__ = "relationship_milestones"

	id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
	character_id = Column(String, nullable=False, index=True)
	milestone_level = Column(Integer, nullable=False)
	claimed = Column(Boolean, default=False, nullable=False)
	claimed_at = Column(DateTime(timezone=True), nullable=True)
	created_at = Column(DateTime(timezone=True), server_default=func.now())

	__owner_table_args__ = owner_unique('uq_relationship_milestones_owner', 'character_id', 'milestone_level')
