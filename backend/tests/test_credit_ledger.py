import asyncio
import random

import pytest
from sqlalchemy import select

from campus_assistant.models.user import User
from campus_assistant.services.credit_ledger import CreditLedger, InsufficientCreditsError


async def _make_user(session, contact_id: str = "233200000001", credits: int = 5) -> User:
    user = User(contact_id=contact_id, credits=credits)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.mark.asyncio
async def test_debit_decrements_balance_and_counts_query(test_session):
    ledger = CreditLedger()
    user = await _make_user(test_session, credits=3)

    new_balance = await ledger.debit(test_session, user.id, 1)
    assert new_balance == 2
    assert await ledger.balance(test_session, user.id) == 2

    row = (await test_session.execute(select(User.total_queries).where(User.id == user.id))).scalar_one()
    assert row == 1


@pytest.mark.asyncio
async def test_debit_insufficient_leaves_balance_untouched(test_session):
    ledger = CreditLedger()
    user = await _make_user(test_session, credits=1)

    with pytest.raises(InsufficientCreditsError) as exc:
        await ledger.debit(test_session, user.id, 2)
    assert exc.value.balance == 1
    assert exc.value.requested == 2

    assert await ledger.balance(test_session, user.id) == 1
    queries = (await test_session.execute(select(User.total_queries).where(User.id == user.id))).scalar_one()
    assert queries == 0


@pytest.mark.asyncio
async def test_credit_always_succeeds(test_session):
    ledger = CreditLedger()
    user = await _make_user(test_session, credits=0)

    assert await ledger.credit(test_session, user.id, 3) == 3
    assert await ledger.credit(test_session, user.id, 0) == 3


@pytest.mark.asyncio
async def test_negative_amounts_rejected(test_session):
    ledger = CreditLedger()
    user = await _make_user(test_session)

    with pytest.raises(ValueError):
        await ledger.debit(test_session, user.id, -1)
    with pytest.raises(ValueError):
        await ledger.credit(test_session, user.id, -1)


@pytest.mark.asyncio
async def test_unknown_user(test_session):
    ledger = CreditLedger()
    with pytest.raises(LookupError):
        await ledger.balance(test_session, 999)
    with pytest.raises(LookupError):
        await ledger.credit(test_session, 999, 1)
    with pytest.raises(InsufficientCreditsError) as exc:
        await ledger.debit(test_session, 999, 1)
    assert exc.value.balance is None


@pytest.mark.asyncio
async def test_uncommitted_debit_rolls_back_with_the_transaction(test_session):
    ledger = CreditLedger()
    user = await _make_user(test_session, credits=2)

    assert await ledger.debit(test_session, user.id, 1, commit=False) == 1
    await test_session.rollback()
    assert await ledger.balance(test_session, user.id) == 2


@pytest.mark.asyncio
async def test_two_concurrent_debits_on_single_credit(file_session_factory):
    ledger = CreditLedger()
    async with file_session_factory() as s:
        user = await _make_user(s, credits=1)
    user_id = int(user.id)

    async def _debit():
        async with file_session_factory() as s:
            return await ledger.debit(s, user_id, 1)

    results = await asyncio.gather(_debit(), _debit(), return_exceptions=True)

    ok = [r for r in results if isinstance(r, int)]
    failed = [r for r in results if isinstance(r, InsufficientCreditsError)]
    assert ok == [0]
    assert len(failed) == 1

    async with file_session_factory() as s:
        assert await ledger.balance(s, user_id) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", [1, 7, 42])
async def test_random_concurrent_debit_credit_never_negative(file_session_factory, seed):
    rng = random.Random(seed)
    ledger = CreditLedger()
    async with file_session_factory() as s:
        user = await _make_user(s, credits=2)
    user_id = int(user.id)

    ops = [(rng.choice(["debit", "credit"]), rng.randint(1, 3)) for _ in range(12)]

    async def _run(kind: str, amount: int):
        await asyncio.sleep(rng.random() / 100)
        async with file_session_factory() as s:
            if kind == "debit":
                return await ledger.debit(s, user_id, amount)
            return await ledger.credit(s, user_id, amount)

    results = await asyncio.gather(*[_run(k, a) for k, a in ops], return_exceptions=True)

    for r in results:
        if isinstance(r, BaseException):
            assert isinstance(r, InsufficientCreditsError)
        else:
            assert r >= 0

    credited = sum(a for k, a in ops if k == "credit")
    debited = sum(a for (k, a), r in zip(ops, results) if k == "debit" and isinstance(r, int))
    async with file_session_factory() as s:
        final = await ledger.balance(s, user_id)
    assert final >= 0
    assert final == 2 + credited - debited
