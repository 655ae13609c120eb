import pytest

from rewardhub.core.progression import (
    award_xp,
    calculate_level_from_xp,
    calculate_total_xp_for_level,
    get_progression_info,
)
from rewardhub.db.store import USER_STATS


@pytest.mark.parametrize("xp, level", [
    (0, 1),
    (99, 1),
    (100, 2),
    (399, 2),
    (400, 3),
    (900, 4),
    (-50, 1),
])
def test_level_from_xp(xp, level):
    assert calculate_level_from_xp(xp) == level


def test_level_is_monotonic():
    levels = [calculate_level_from_xp(xp) for xp in range(0, 5000, 7)]
    assert levels == sorted(levels)


def test_total_xp_for_level_matches_formula():
    assert calculate_total_xp_for_level(1) == 0
    assert calculate_total_xp_for_level(2) == 100
    assert calculate_total_xp_for_level(3) == 400
    for level in range(1, 20):
        assert calculate_level_from_xp(calculate_total_xp_for_level(level)) == level


def test_progression_info():
    info = get_progression_info(250)
    assert info["level"] == 2
    assert info["xp_for_current_level"] == 100
    assert info["xp_for_next_level"] == 400
    assert info["xp_progress"] == 150
    assert info["xp_needed"] == 150
    assert info["progress_percent"] == 50.0


@pytest.mark.asyncio
async def test_award_xp_creates_stats_row(store, owner):
    result = await award_xp(store, owner, 50)

    assert result["total_xp"] == 50
    assert result["level"] == 1
    assert result["level_increased"] is False
    rows = store.rows(USER_STATS, **owner.filters())
    assert len(rows) == 1
    assert rows[0]["xp"] == 50
    assert rows[0]["energy"] == 100


@pytest.mark.asyncio
async def test_award_xp_levels_up_after_credit(store, owner):
    await award_xp(store, owner, 90)
    result = await award_xp(store, owner, 320)

    assert result["old_level"] == 1
    assert result["level"] == 3
    assert result["level_increased"] is True
    assert store.rows(USER_STATS, **owner.filters())[0]["level"] == 3


@pytest.mark.asyncio
async def test_award_xp_rejects_non_positive(store, owner):
    with pytest.raises(ValueError):
        await award_xp(store, owner, 0)
    assert store.calls == []
