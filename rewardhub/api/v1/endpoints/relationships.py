from fastapi import APIRouter, Depends, Path
from rewardhub.api import deps
from rewardhub.schemas.relationship import MilestoneClaimResult, RelationshipMilestones
from rewardhub.services.relationship_milestones import RelationshipMilestoneEngine

router = APIRouter()

@router.get("/{character_id}/milestones", response_model=RelationshipMilestones)
async def get_milestones(
	character_id: str = Path(..., min_length=1),
	engine: RelationshipMilestoneEngine = Depends(deps.get_relationship_engine)
):
	"""Вехи отношений с персонажем и их состояние"""
	return await engine.stages(character_id)

@router.post("/{character_id}/milestones/{milestone}/claim", response_model=MilestoneClaimResult)
async def claim_milestone(
	milestone: int,
	character_id: str = Path(..., min_length=1),
	engine: RelationshipMilestoneEngine = Depends(deps.get_relationship_engine)
):
	"""Получить награду за веху отношений"""
	return await engine.claim(character_id, milestone)
