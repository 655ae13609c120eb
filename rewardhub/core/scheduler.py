"""
Модуль для настройки периодических задач через APScheduler.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import logging

from rewardhub.core.config import settings
from rewardhub.core.owner import owner_from_row
from rewardhub.db.session import AsyncSessionLocal
from rewardhub.db.store import SqlAlchemyStore, USER_STATS
from rewardhub.services.daily_quests import DailyQuestEngine

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def initialize_daily_quests_job():
	"""Задача для генерации daily квестов всем владельцам, у которых есть статистика."""
	try:
		async with AsyncSessionLocal() as db:
			store = SqlAlchemyStore(db)
			rows = await store.fetch(USER_STATS)

			logger.info(f"Initializing daily quests for {len(rows)} owners")

			for row in rows:
				owner = owner_from_row(row)
				try:
					await DailyQuestEngine(store, owner).load_today()
				except Exception as e:
					logger.error(f"Error initializing daily quests for {owner.key}: {e}", exc_info=True)

			logger.info("Daily quests initialization completed")
	except Exception as e:
		logger.error(f"Error in daily quests initialization job: {e}", exc_info=True)


def start_scheduler():
	"""Запускает планировщик задач."""
	if scheduler.running:
		logger.warning("Scheduler is already running")
		return

	# Добавляем задачу инициализации daily квестов каждый день
	scheduler.add_job(
		initialize_daily_quests_job,
		trigger=CronTrigger(hour=settings.DAILY_QUESTS_CRON_HOUR, minute=0),
		id="initialize_daily_quests",
		name="Initialize daily quests",
		replace_existing=True
	)

	scheduler.start()
	logger.info(f"Scheduler started with daily quests initialization (daily at {settings.DAILY_QUESTS_CRON_HOUR:02d}:00)")


def shutdown_scheduler():
	"""Останавливает планировщик задач."""
	if scheduler.running:
		scheduler.shutdown()
		logger.info("Scheduler stopped")
