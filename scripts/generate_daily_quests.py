"""
Скрипт для генерации daily квестов всем владельцам вне планировщика.
Запускается через cron, если приложение работает без APScheduler.
"""
import asyncio
import logging
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rewardhub.core.scheduler import initialize_daily_quests_job

logging.basicConfig(
	level=logging.INFO,
	format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


if __name__ == "__main__":
	logger.info("Generating daily quests once")
	asyncio.run(initialize_daily_quests_job())
