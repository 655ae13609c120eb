from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conftest import seed_daily_pool, seed_level_quest, seed_login_rewards
from rewardhub.api import deps
from rewardhub.core.config import settings
from rewardhub.db.store import CHARACTER_RELATIONSHIP, USER_CURRENCY
from rewardhub.main import app
from rewardhub.services.notifications import NotificationQueue

GUEST = {"X-Client-Id": "device-42"}
API = settings.API_V1_STR


@pytest.fixture
def queue():
    return NotificationQueue()


@pytest.fixture
def client(store, queue):
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_notifications] = lambda: queue
    # Без контекстного менеджера lifespan (планировщик) не запускается
    yield TestClient(app)
    app.dependency_overrides.clear()


def bearer(user_id: str, **claims) -> dict:
    payload = {"sub": user_id, "exp": datetime.now(timezone.utc) + timedelta(minutes=5), **claims}
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_owner_is_required(client):
    response = client.get(f"{API}/users/me/stats")

    assert response.status_code == 401
    assert response.json()["error_code"] == "Unauthenticated"


def test_invalid_token_is_rejected(client):
    response = client.get(f"{API}/users/me/stats", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def test_guest_stats(client):
    response = client.get(f"{API}/users/me/stats", headers=GUEST)

    assert response.status_code == 200
    body = response.json()
    assert body["level"] == 1
    assert body["energy"] == body["energy_max"] == 100


def test_jwt_user_takes_priority(client, store):
    user_id = "0b7e3f4a-6c3d-4c1e-9f00-000000000abc"
    store.seed(USER_CURRENCY, user_id=user_id, vcoin=70, ruby=1)

    response = client.get(f"{API}/users/me/currency", headers={**GUEST, **bearer(user_id)})

    assert response.status_code == 200
    assert response.json() == {"vcoin": 70, "ruby": 1}


def test_daily_quest_flow(client, store, queue):
    seed_daily_pool(store)

    response = client.get(f"{API}/quests/daily", headers=GUEST)
    assert response.status_code == 200
    quests = response.json()
    assert len(quests) == 6
    assert [q["quest"]["difficulty"] for q in quests[:3]] == ["easy"] * 3

    quest_id = quests[0]["id"]
    response = client.post(f"{API}/quests/daily/{quest_id}/claim", headers=GUEST)
    assert response.status_code == 409
    assert response.json()["error_code"] == "NotCompleted"

    response = client.post(
        f"{API}/quests/progress",
        json={"quest_type": "swipe_character", "increment": 3},
        headers=GUEST
    )
    assert response.status_code == 200
    assert all(q["completed"] for q in response.json()["daily"])

    response = client.post(f"{API}/quests/daily/{quest_id}/claim", headers=GUEST)
    assert response.status_code == 200
    body = response.json()
    vcoin = quests[0]["quest"]["reward_vcoin"]
    assert {"type": "vcoin", "amount": vcoin} in body["rewards"]
    assert body["balance"]["vcoin"] == vcoin

    response = client.post(f"{API}/quests/daily/{quest_id}/claim", headers=GUEST)
    assert response.status_code == 409
    assert response.json()["error_code"] == "AlreadyClaimed"

    assert client.get(f"{API}/users/me/currency", headers=GUEST).json()["vcoin"] == vcoin
    assert queue.current is not None


def test_unknown_daily_quest(client, store):
    seed_daily_pool(store)
    response = client.post(f"{API}/quests/daily/00000000-0000-4000-8000-000000000000/claim", headers=GUEST)
    assert response.status_code == 404


def test_progress_validation(client):
    response = client.post(
        f"{API}/quests/progress",
        json={"quest_type": "swipe_character", "increment": 0},
        headers=GUEST
    )
    assert response.status_code == 422


def test_level_quests_unlock_on_read(client, store):
    seed_level_quest(store, 1)
    seed_level_quest(store, 3)

    response = client.get(f"{API}/quests/level", headers=GUEST)

    assert response.status_code == 200
    entries = response.json()
    assert len(entries) == 1
    assert entries[0]["unlocked"] is True
    assert entries[0]["quest"]["level_required"] == 1


def test_login_reward_claim_twice(client, store):
    seed_login_rewards(store)

    board = client.get(f"{API}/login-rewards", headers=GUEST).json()
    assert len(board["rewards"]) == 30
    assert board["state"]["can_claim_today"] is True

    response = client.post(f"{API}/login-rewards/claim", headers=GUEST)
    assert response.status_code == 200
    assert response.json()["reward"]["day_number"] == 1

    response = client.post(f"{API}/login-rewards/claim", headers=GUEST)
    assert response.status_code == 409
    assert response.json()["error_code"] == "NotEligible"


def test_login_reward_without_templates(client):
    response = client.post(f"{API}/login-rewards/claim", headers=GUEST)
    assert response.status_code == 422
    assert response.json()["error_code"] == "NotReady"


def test_relationship_milestones(client, store):
    store.seed(CHARACTER_RELATIONSHIP, client_id="device-42", character_id="luna", relationship_level=26)

    board = client.get(f"{API}/relationships/luna/milestones", headers=GUEST).json()
    assert board["level_name"] == "Friend"
    assert [s["milestone"] for s in board["stages"] if s["can_claim"]] == [10, 25]

    response = client.post(f"{API}/relationships/luna/milestones/25/claim", headers=GUEST)
    assert response.status_code == 200
    assert response.json()["reward"] == {"vcoin": 500, "ruby": 10}

    response = client.post(f"{API}/relationships/luna/milestones/40/claim", headers=GUEST)
    assert response.status_code == 409
    assert response.json()["error_code"] == "NotEligible"


def test_notifications_snapshot_and_dismiss(client, queue):
    shown = queue.show_xp(25)
    queue.show_energy(5)

    snapshot = client.get(f"{API}/notifications/me", headers=GUEST).json()
    assert snapshot["current"]["id"] == shown.id
    assert snapshot["backlog"] == 1

    response = client.post(f"{API}/notifications/{shown.id}/dismiss", headers=GUEST)
    assert response.status_code == 200
    assert response.json()["current"] is None

    response = client.post(f"{API}/notifications/missing/dismiss", headers=GUEST)
    assert response.status_code == 404
