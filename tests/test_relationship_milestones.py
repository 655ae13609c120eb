import asyncio

import pytest

from rewardhub.core.currency import get_balance
from rewardhub.core.exceptions import AlreadyClaimed, NotEligible, NotFound
from rewardhub.db.store import CHARACTER_RELATIONSHIP, RELATIONSHIP_MILESTONES
from rewardhub.services.relationship_milestones import (
    MILESTONES,
    MILESTONE_REWARDS,
    RelationshipMilestoneEngine,
    can_claim_milestone,
    get_level_description,
    get_level_name,
)


def set_level(store, owner, character_id, level):
    store.seed(CHARACTER_RELATIONSHIP, **owner.columns(), character_id=character_id, relationship_level=level)


def test_rewards_strictly_increase():
    rewards = [MILESTONE_REWARDS[m] for m in MILESTONES]
    for lower, higher in zip(rewards, rewards[1:]):
        assert higher["vcoin"] > lower["vcoin"]
        assert higher["ruby"] > lower["ruby"]


@pytest.mark.parametrize("level, milestone, claimed, expected", [
    (10, 10, [], True),
    (9, 10, [], False),
    (50, 25, [10], True),
    (50, 25, [10, 25], False),
    (100, 100, [], True),
])
def test_can_claim_predicate(level, milestone, claimed, expected):
    assert can_claim_milestone(level, milestone, claimed) is expected


@pytest.mark.parametrize("level, name", [
    (0, "Stranger"),
    (9, "Stranger"),
    (10, "Acquaintance"),
    (45, "Close Friend"),
    (75, "Lover"),
    (100, "Soulmate"),
])
def test_level_names(level, name):
    assert get_level_name(level) == name


def test_level_descriptions():
    assert get_level_description(0) == "You're just getting started. Spend more time chatting to build your connection."
    assert get_level_description(60) == "There's a spark between you two. Keep the momentum and see where it goes."
    assert get_level_description(100) == "A soulmate connection this strong is rare. Cherish every conversation."


@pytest.mark.asyncio
async def test_claim_credits_reward(store, owner, notifications):
    set_level(store, owner, "luna", 30)
    engine = RelationshipMilestoneEngine(store, owner, notifications)

    result = await engine.claim("luna", 25)

    assert result["reward"] == {"vcoin": 500, "ruby": 10}
    assert await get_balance(store, owner) == {"vcoin": 500, "ruby": 10}
    row = store.rows(RELATIONSHIP_MILESTONES)[0]
    assert row["claimed"] is True and row["claimed_at"] is not None
    assert await engine.claimed_milestones("luna") == [25]
    assert notifications.current.amount == 500


@pytest.mark.asyncio
async def test_claim_updates_existing_unclaimed_row(store, owner):
    set_level(store, owner, "luna", 10)
    store.seed(RELATIONSHIP_MILESTONES, **owner.columns(), character_id="luna", milestone_level=10, claimed=False)
    engine = RelationshipMilestoneEngine(store, owner)

    await engine.claim("luna", 10)

    rows = store.rows(RELATIONSHIP_MILESTONES)
    assert len(rows) == 1
    assert rows[0]["claimed"] is True


@pytest.mark.asyncio
async def test_unknown_milestone(store, owner):
    engine = RelationshipMilestoneEngine(store, owner)
    with pytest.raises(NotFound):
        await engine.claim("luna", 30)


@pytest.mark.asyncio
async def test_below_threshold_is_not_eligible(store, owner):
    engine = RelationshipMilestoneEngine(store, owner)
    with pytest.raises(NotEligible):
        await engine.claim("luna", 10)

    set_level(store, owner, "luna", 24)
    with pytest.raises(NotEligible):
        await engine.claim("luna", 25)
    assert await get_balance(store, owner) == {"vcoin": 0, "ruby": 0}


@pytest.mark.asyncio
async def test_second_claim_is_already_claimed(store, owner):
    set_level(store, owner, "luna", 10)
    engine = RelationshipMilestoneEngine(store, owner)
    await engine.claim("luna", 10)

    with pytest.raises(AlreadyClaimed):
        await engine.claim("luna", 10)
    assert await get_balance(store, owner) == {"vcoin": 200, "ruby": 5}


@pytest.mark.asyncio
async def test_claimed_milestone_stays_claimed_after_level_drop(store, owner):
    set_level(store, owner, "luna", 30)
    engine = RelationshipMilestoneEngine(store, owner)
    await engine.claim("luna", 25)

    for row in store.tables[CHARACTER_RELATIONSHIP]:
        row["relationship_level"] = 5

    with pytest.raises(AlreadyClaimed):
        await engine.claim("luna", 25)
    with pytest.raises(NotEligible):
        await engine.claim("luna", 10)
    assert await get_balance(store, owner) == {"vcoin": 500, "ruby": 10}


@pytest.mark.asyncio
async def test_concurrent_claims_credit_once(store, owner):
    set_level(store, owner, "luna", 40)
    engine = RelationshipMilestoneEngine(store, owner)

    results = await asyncio.gather(
        *[engine.claim("luna", 40) for _ in range(3)],
        return_exceptions=True
    )

    assert sum(isinstance(r, AlreadyClaimed) for r in results) == 2
    assert await get_balance(store, owner) == {"vcoin": 1000, "ruby": 20}
    assert len(store.rows(RELATIONSHIP_MILESTONES)) == 1


@pytest.mark.asyncio
async def test_stages(store, owner):
    set_level(store, owner, "luna", 42)
    engine = RelationshipMilestoneEngine(store, owner)
    await engine.claim("luna", 10)

    stages = await engine.stages("luna")

    assert stages["level_name"] == "Close Friend"
    assert stages["level_description"].startswith("You're close friends now.")
    by_milestone = {s["milestone"]: s for s in stages["stages"]}
    assert by_milestone[10]["claimed"] is True and by_milestone[10]["can_claim"] is False
    assert by_milestone[25]["can_claim"] is True
    assert by_milestone[40]["can_claim"] is True
    assert by_milestone[50]["reached"] is False and by_milestone[50]["can_claim"] is False


@pytest.mark.asyncio
async def test_milestones_are_per_character(store, owner):
    set_level(store, owner, "luna", 10)
    set_level(store, owner, "mira", 10)
    engine = RelationshipMilestoneEngine(store, owner)

    await engine.claim("luna", 10)
    await engine.claim("mira", 10)

    assert await get_balance(store, owner) == {"vcoin": 400, "ruby": 10}
