from fastapi import APIRouter, Depends
from rewardhub.api import deps
from rewardhub.core.currency import get_balance
from rewardhub.core.owner import Owner
from rewardhub.db.store import TableStore
from rewardhub.schemas.user import CurrencyBalance, UserStatsResponse
from rewardhub.services.user_stats import get_stats

router = APIRouter()

@router.get("/me/stats", response_model=UserStatsResponse)
async def read_my_stats(
	store: TableStore = Depends(deps.get_store),
	owner: Owner = Depends(deps.get_owner)
):
	"""Уровень, опыт, энергия (с восстановлением) и серия входов"""
	return await get_stats(store, owner)

@router.get("/me/currency", response_model=CurrencyBalance)
async def read_my_currency(
	store: TableStore = Depends(deps.get_store),
	owner: Owner = Depends(deps.get_owner)
):
	"""Баланс VCoin и Ruby"""
	return await get_balance(store, owner)
