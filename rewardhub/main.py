from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from rewardhub.core.config import settings
from rewardhub.core.exceptions import RewardError
from rewardhub.api.v1.api import api_router
from rewardhub.core.scheduler import start_scheduler, shutdown_scheduler
from rewardhub.services.notifications import notification_center

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	"""Управление жизненным циклом приложения."""
	# Startup
	start_scheduler()
	yield
	# Shutdown
	shutdown_scheduler()
	await notification_center.shutdown()


app = FastAPI(
	title=settings.PROJECT_NAME,
	lifespan=lifespan,
	docs_url="/docs" if settings.DEBUG else None,
	redoc_url="/redoc" if settings.DEBUG else None
)


@app.exception_handler(RewardError)
async def reward_error_handler(request: Request, exc: RewardError):
	if exc.HTTP_STATUS >= 500:
		logger.error(f"{request.method} {request.url.path} failed: {exc}")
	return JSONResponse(status_code=exc.HTTP_STATUS, content=exc.to_dict())


# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
	app.add_middleware(
		CORSMiddleware,
		allow_origins=settings.BACKEND_CORS_ORIGINS,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/health")
def health_check():
	return {"status": "ok"}
