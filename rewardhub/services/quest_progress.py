"""
Сервис для передачи игровых действий в прогресс daily и level квестов.
"""
from typing import Dict, Iterable, List, Optional
import logging

from rewardhub.core.exceptions import RewardError
from rewardhub.services.daily_quests import DailyQuestEngine
from rewardhub.services.level_quests import LevelQuestEngine

logger = logging.getLogger(__name__)

# Действие -> quest_type шаблонов
QUEST_TYPE_MAP = {
	"swipe_character": "swipe_character",
	"swipe_background": "swipe_background",
	"video_call": "video_call",
	"voice_call": "voice_call",
	"chat_streak": "chat_streak",
	"unlock_character": "unlock_character",
	"unlock_costume": "unlock_costume",
	"unlock_background": "unlock_background",
	"make_payment": "make_payment",
	"obtain_backgrounds": "obtain_backgrounds",
	"obtain_characters": "obtain_characters",
	"capture_characters": "capture_characters",
	"capture_backgrounds": "capture_backgrounds",
	"dance_character": "dance_character",
	"obtain_media": "obtain_media",
	"reach_relationship": "reach_relationship",
	"login_streak": "login_streak",
}

# Размеры коллекции, на которых засчитывается прогресс obtain_* квестов
COLLECTION_THRESHOLDS = (5, 10)


class QuestProgressTracker:
	def __init__(self, daily: Optional[DailyQuestEngine] = None, level: Optional[LevelQuestEngine] = None):
		self.daily = daily
		self.level = level

	async def track(self, action: str, increment: int = 1) -> Dict[str, List[Dict]]:
		"""
		Засчитывает игровое действие.

		Raises:
			ValueError: Неизвестное действие
		"""
		quest_type = QUEST_TYPE_MAP.get(action)
		if quest_type is None:
			raise ValueError(f"Unknown quest action: {action}")
		return await self.track_quest_type(quest_type, increment)

	async def track_many(self, actions: Iterable[str], increment: int = 1) -> Dict[str, List[Dict]]:
		# Движки делят одну сессию хранилища, поэтому последовательно
		result: Dict[str, List[Dict]] = {"daily": [], "level": []}
		for action in actions:
			tracked = await self.track(action, increment)
			result["daily"].extend(tracked["daily"])
			result["level"].extend(tracked["level"])
		return result

	async def track_quest_type(self, quest_type: str, increment: int = 1) -> Dict[str, List[Dict]]:
		"""
		Передает прогресс обоим движкам. Ошибка одного движка логируется и не мешает другому.

		Returns:
			Обновленные экземпляры: {"daily": [...], "level": [...]}
		"""
		result: Dict[str, List[Dict]] = {"daily": [], "level": []}
		if not quest_type or increment <= 0:
			return result

		for name, engine in (("daily", self.daily), ("level", self.level)):
			if engine is None:
				continue
			try:
				result[name] = await engine.track_progress(quest_type, increment)
			except RewardError as e:
				logger.warning(f"Failed to track {quest_type} for {name} quests: {e}")
		return result

	@staticmethod
	def should_track_collection_milestone(count: int, thresholds: Iterable[int] = COLLECTION_THRESHOLDS) -> bool:
		return count in tuple(thresholds)
