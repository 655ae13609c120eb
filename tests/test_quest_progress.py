from unittest.mock import AsyncMock

import pytest

from conftest import seed_daily_pool, seed_level_quest
from rewardhub.core.exceptions import RemoteFailure
from rewardhub.services.daily_quests import DailyQuestEngine
from rewardhub.services.level_quests import LevelQuestEngine
from rewardhub.services.quest_progress import QUEST_TYPE_MAP, QuestProgressTracker


@pytest.mark.asyncio
async def test_action_reaches_both_engines(store, owner, today):
    seed_daily_pool(store, quest_type="chat_streak")
    seed_level_quest(store, 1, quest_type="chat_streak")
    daily = DailyQuestEngine(store, owner, today=lambda: today)
    level = LevelQuestEngine(store, owner, observed_level=0)
    await daily.load_today()
    await level.on_level_up(1)
    await level.load_for_level(1)
    tracker = QuestProgressTracker(daily, level)

    result = await tracker.track("chat_streak")

    assert len(result["daily"]) == 6
    assert len(result["level"]) == 1
    assert all(q["progress"] == 1 for q in result["daily"] + result["level"])


@pytest.mark.asyncio
async def test_unknown_action_is_rejected():
    with pytest.raises(ValueError):
        await QuestProgressTracker().track("fly_to_moon")


@pytest.mark.asyncio
async def test_engine_failure_does_not_block_the_other():
    daily = AsyncMock()
    daily.track_progress.side_effect = RemoteFailure("store down")
    level = AsyncMock()
    level.track_progress.return_value = [{"id": "lq-1"}]

    result = await QuestProgressTracker(daily, level).track_quest_type("video_call", 2)

    assert result == {"daily": [], "level": [{"id": "lq-1"}]}
    level.track_progress.assert_awaited_once_with("video_call", 2)


@pytest.mark.asyncio
async def test_non_positive_increment_is_ignored():
    daily = AsyncMock()
    result = await QuestProgressTracker(daily).track_quest_type("video_call", 0)

    assert result == {"daily": [], "level": []}
    daily.track_progress.assert_not_awaited()


@pytest.mark.asyncio
async def test_track_many_runs_every_action():
    daily = AsyncMock()
    daily.track_progress.return_value = [{"id": "dq"}]
    tracker = QuestProgressTracker(daily)

    result = await tracker.track_many(["swipe_character", "swipe_background"])

    assert len(result["daily"]) == 2
    assert [c.args[0] for c in daily.track_progress.await_args_list] == ["swipe_character", "swipe_background"]


def test_action_map_covers_login_streak():
    assert QUEST_TYPE_MAP["login_streak"] == "login_streak"


@pytest.mark.parametrize("count, expected", [(4, False), (5, True), (10, True), (11, False)])
def test_collection_milestone(count, expected):
    assert QuestProgressTracker.should_track_collection_milestone(count) is expected
