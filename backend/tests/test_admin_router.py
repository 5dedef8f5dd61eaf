import pytest

from campus_assistant.config import Settings, get_settings
from campus_assistant.main import app
from campus_assistant.models.conversation import ConversationEntry, Direction
from campus_assistant.models.feedback import FeedbackRecord
from campus_assistant.models.user import User

TOKEN = "admin-token-for-tests"
HEADERS = {"X-Admin-Token": TOKEN}


@pytest.fixture
def admin_settings():
    app.dependency_overrides[get_settings] = lambda: Settings(admin_api_token=TOKEN)
    yield
    _ = app.dependency_overrides.pop(get_settings, None)


async def _seed(session) -> tuple[User, User]:
    ama = User(contact_id="233200000301", display_name="Ama", credits=4, total_queries=1, onboarding_completed=True)
    kofi = User(contact_id="233200000302", credits=0, is_blocked=True)
    session.add_all([ama, kofi])
    await session.commit()

    q = ConversationEntry(user_id=ama.id, direction=Direction.USER, content="where is the library", message_id="wamid.1")
    a = ConversationEntry(
        user_id=ama.id,
        direction=Direction.BOT,
        content="Here you go",
        intent="NAVIGATION",
        intent_confidence=0.9,
        credits_used=1,
        response_time_ms=40,
    )
    g = ConversationEntry(user_id=kofi.id, direction=Direction.BOT, content="Hello", intent="GREETING")
    session.add_all([q, a, g])
    await session.commit()

    session.add_all(
        [
            FeedbackRecord(user_id=ama.id, conversation_id=a.id, rating=5, comment="very helpful", credits_awarded=3),
            FeedbackRecord(user_id=kofi.id, rating=4, comment="pretty good", credits_awarded=3),
        ]
    )
    await session.commit()
    return ama, kofi


@pytest.mark.asyncio
async def test_admin_requires_token(client, admin_settings):
    res = await client.get("/api/admin/analytics")
    assert res.status_code == 403

    res = await client.get("/api/admin/analytics", headers={"X-Admin-Token": "nope"})
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_admin_disabled_without_configured_token(client):
    app.dependency_overrides[get_settings] = lambda: Settings(admin_api_token="")

    res = await client.get("/api/admin/users", headers={"X-Admin-Token": ""})
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_analytics(client, test_session, admin_settings):
    _ = await _seed(test_session)

    res = await client.get("/api/admin/analytics", headers=HEADERS)
    assert res.status_code == 200
    data = res.json()
    assert data["total_users"] == 2
    assert data["active_users"] == 1
    assert data["total_conversations"] == 3
    assert data["total_feedback"] == 2
    assert data["avg_rating"] == 4.5
    assert {i["intent"] for i in data["top_intents"]} == {"NAVIGATION", "GREETING"}


@pytest.mark.asyncio
async def test_analytics_empty(client, admin_settings):
    res = await client.get("/api/admin/analytics", headers=HEADERS)
    data = res.json()
    assert data["total_users"] == 0
    assert data["avg_rating"] is None
    assert data["top_intents"] == []


@pytest.mark.asyncio
async def test_list_users_paginates(client, test_session, admin_settings):
    _ = await _seed(test_session)

    res = await client.get("/api/admin/users", params={"page": 1, "page_size": 1}, headers=HEADERS)
    assert res.status_code == 200
    data = res.json()
    assert data["total"] == 2
    assert data["page_size"] == 1
    assert len(data["items"]) == 1

    res = await client.get("/api/admin/users", headers=HEADERS)
    contacts = {u["contact_id"] for u in res.json()["items"]}
    assert contacts == {"233200000301", "233200000302"}


@pytest.mark.asyncio
async def test_block_and_unblock_user(client, test_session, admin_settings):
    ama, _ = await _seed(test_session)

    res = await client.patch(f"/api/admin/users/{ama.id}", json={"is_blocked": True}, headers=HEADERS)
    assert res.status_code == 200
    assert res.json()["is_blocked"] is True
    assert res.json()["is_active"] is True

    res = await client.patch(
        f"/api/admin/users/{ama.id}", json={"is_blocked": False, "is_active": False}, headers=HEADERS
    )
    assert res.json()["is_blocked"] is False
    assert res.json()["is_active"] is False


@pytest.mark.asyncio
async def test_patch_unknown_user(client, admin_settings):
    res = await client.patch("/api/admin/users/999", json={"is_blocked": True}, headers=HEADERS)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_user_conversations(client, test_session, admin_settings):
    ama, _ = await _seed(test_session)

    res = await client.get(f"/api/admin/users/{ama.id}/conversations", headers=HEADERS)
    assert res.status_code == 200
    rows = res.json()
    assert [r["direction"] for r in rows] == ["user", "bot"]
    assert rows[1]["intent"] == "NAVIGATION"
    assert rows[1]["credits_used"] == 1

    res = await client.get("/api/admin/users/999/conversations", headers=HEADERS)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_list_feedback(client, test_session, admin_settings):
    ama, _ = await _seed(test_session)

    res = await client.get("/api/admin/feedback", headers=HEADERS)
    assert res.status_code == 200
    items = res.json()
    assert len(items) == 2
    by_contact = {i["contact_id"]: i for i in items}
    assert by_contact["233200000301"]["rating"] == 5
    assert by_contact["233200000301"]["user_id"] == ama.id
    assert by_contact["233200000302"]["conversation_id"] is None
