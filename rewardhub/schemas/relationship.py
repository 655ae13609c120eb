from pydantic import BaseModel
from typing import List

class MilestoneReward(BaseModel):
	vcoin: int
	ruby: int

class MilestoneStage(BaseModel):
	milestone: int
	name: str
	reward: MilestoneReward
	reached: bool
	claimed: bool
	can_claim: bool

class RelationshipMilestones(BaseModel):
	character_id: str
	relationship_level: int
	level_name: str
	level_description: str
	stages: List[MilestoneStage]

class MilestoneClaimResult(BaseModel):
	character_id: str
	milestone: int
	reward: MilestoneReward
