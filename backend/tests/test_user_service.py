import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from campus_assistant.models.user import User, UserState
from campus_assistant.services.user_service import UserService


@pytest.mark.asyncio
async def test_get_or_create_uses_starting_balance(test_session):
    svc = UserService(initial_credits=5)

    user, created = await svc.get_or_create(test_session, " 233200000001 ", "Ama")
    assert created is True
    assert user.contact_id == "233200000001"
    assert user.display_name == "Ama"
    assert user.credits == 5
    assert user.onboarding_completed is False

    again, created = await svc.get_or_create(test_session, "233200000001")
    assert created is False
    assert again.id == user.id


@pytest.mark.asyncio
async def test_get_or_create_integrityerror_fallback(monkeypatch, test_session):
    svc = UserService(initial_credits=5)
    existing = User(contact_id="233200000002", credits=1)
    test_session.add(existing)
    await test_session.commit()

    calls = {"n": 0}
    orig = UserService.get_by_contact

    async def miss_first(db, contact_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await orig(db, contact_id)

    monkeypatch.setattr(UserService, "get_by_contact", staticmethod(miss_first))

    user, created = await svc.get_or_create(test_session, "233200000002")
    assert created is False
    assert user.credits == 1


@pytest.mark.asyncio
async def test_get_or_create_reraises_when_row_still_missing(monkeypatch, test_session):
    svc = UserService()

    async def always_none(db, contact_id):
        return None

    async def failing_commit():
        raise IntegrityError("stmt", {}, Exception("orig"))

    monkeypatch.setattr(UserService, "get_by_contact", staticmethod(always_none))
    monkeypatch.setattr(test_session, "commit", failing_commit)

    with pytest.raises(IntegrityError):
        await svc.get_or_create(test_session, "233200000003")


@pytest.mark.asyncio
async def test_complete_onboarding_only_once(test_session):
    svc = UserService()
    user, _ = await svc.get_or_create(test_session, "233200000004")

    assert await svc.complete_onboarding(test_session, user.id) is True
    assert await svc.complete_onboarding(test_session, user.id) is False

    flag = (await test_session.execute(select(User.onboarding_completed).where(User.id == user.id))).scalar_one()
    assert flag is True


@pytest.mark.asyncio
async def test_flags_and_counters(test_session):
    svc = UserService()
    user, _ = await svc.get_or_create(test_session, "233200000005")

    await svc.touch(test_session, user.id)
    await svc.increment_feedback_count(test_session, user.id)
    await svc.set_blocked(test_session, user.id, True)
    await svc.set_active(test_session, user.id, False)

    test_session.expire_all()
    fresh = await svc.get_by_id(test_session, user.id)
    assert fresh is not None
    assert fresh.last_interaction_at is not None
    assert fresh.total_feedback_given == 1
    assert fresh.is_blocked is True
    assert fresh.is_active is False


def test_lifecycle_state():
    u = User(contact_id="x", credits=0, is_active=True, is_blocked=False, onboarding_completed=False)
    assert UserService.lifecycle_state(u, created=True) == UserState.NEW
    assert UserService.lifecycle_state(u) == UserState.ONBOARDING

    u.onboarding_completed = True
    assert UserService.lifecycle_state(u) == UserState.ACTIVE

    u.is_blocked = True
    assert UserService.lifecycle_state(u, created=True) == UserState.BLOCKED

    u.is_blocked = False
    u.is_active = False
    assert UserService.lifecycle_state(u) == UserState.BLOCKED
