from fastapi import APIRouter
from rewardhub.api.v1.endpoints import users, quests, login_rewards, relationships, notifications

api_router = APIRouter()
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(quests.router, tags=["quests"])
api_router.include_router(login_rewards.router, prefix="/login-rewards", tags=["login-rewards"])
api_router.include_router(relationships.router, prefix="/relationships", tags=["relationships"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
