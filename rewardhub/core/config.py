from pydantic_settings import BaseSettings
from typing import List, Union
import json

class Settings(BaseSettings):
	PROJECT_NAME: str = "RewardHub Backend"
	API_V1_STR: str = "/api/v1"

	# CORS
	BACKEND_CORS_ORIGINS: Union[str, List[str]] = ["http://localhost:3000", "http://localhost:8081"]

	# Database
	POSTGRES_SERVER: str = "localhost"
	POSTGRES_USER: str = "postgres"
	POSTGRES_PASSWORD: str = "postgres"
	POSTGRES_DB: str = "rewardhub"
	SQLALCHEMY_DATABASE_URI: Union[str, None] = None

	# Auth (токены выпускает внешний сервис, здесь только проверка)
	SECRET_KEY: str = "CHANGE_THIS_SECRET_KEY"
	ALGORITHM: str = "HS256"
	AUTH_TOKEN_URL: str = "/auth/login/access-token"
	GUEST_CLIENT_HEADER: str = "X-Client-Id"

	# Daily квесты: сколько шаблонов каждой сложности выдавать в день
	DAILY_QUESTS_EASY: int = 3
	DAILY_QUESTS_MEDIUM: int = 2
	DAILY_QUESTS_HARD: int = 1
	DAILY_QUESTS_CRON_HOUR: int = 0

	# Награды за вход
	LOGIN_REWARD_CYCLE_DAYS: int = 30

	# Энергия
	ENERGY_MAX: int = 100
	ENERGY_REGEN_MINUTES: int = 6

	# Очередь уведомлений (миллисекунды)
	NOTIFICATION_DEFAULT_DURATION_MS: int = 1800
	NOTIFICATION_MIN_DURATION_MS: int = 200
	NOTIFICATION_QUEST_PROGRESS_DURATION_MS: int = 2500
	NOTIFICATION_QUEST_COMPLETED_DURATION_MS: int = 3000
	# Очередь владельца без уведомлений освобождается через столько секунд
	NOTIFICATION_IDLE_TIMEOUT_S: float = 60.0

	# Debug
	DEBUG: bool = True  # По умолчанию True для разработки

	class Config:
		case_sensitive = True
		env_file = ".env"

	def __init__(self, **data):
		super().__init__(**data)
		# Парсинг BACKEND_CORS_ORIGINS из строки
		if isinstance(self.BACKEND_CORS_ORIGINS, str):
			# Пробуем парсить как JSON
			try:
				self.BACKEND_CORS_ORIGINS = json.loads(self.BACKEND_CORS_ORIGINS)
			except json.JSONDecodeError:
				# Если не JSON, парсим как строку через запятую
				self.BACKEND_CORS_ORIGINS = [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
		# Формирование URI для БД
		if not self.SQLALCHEMY_DATABASE_URI:
			self.SQLALCHEMY_DATABASE_URI = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
