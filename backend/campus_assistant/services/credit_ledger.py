from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from ..models.user import User

logger = logging.getLogger(__name__)


class InsufficientCreditsError(Exception):
    def __init__(self, user_id: int, requested: int, balance: int | None = None) -> None:
        self.user_id = int(user_id)
        self.requested = int(requested)
        self.balance = balance
        super().__init__(f"user {user_id} cannot cover {requested} credit(s) (balance={balance})")


def _check_amount(amount: int) -> int:
    value = int(amount)
    if value < 0:
        raise ValueError("credit amount must be non-negative")
    return value


class CreditLedger:
    """Atomic per-user credit balance operations.

    Every mutation is a single conditional UPDATE, so two concurrent debits
    against a balance that only covers one of them cannot both succeed, even
    across processes. Callers that need the mutation to land together with
    other rows pass ``commit=False`` and commit themselves.
    """

    async def balance(self, db: AsyncSession, user_id: int) -> int:
        res = await db.execute(select(User.credits).where(User.id == int(user_id)))
        value = res.scalar_one_or_none()
        if value is None:
            raise LookupError(f"user not found: {user_id}")
        return int(value)

    async def debit(self, db: AsyncSession, user_id: int, amount: int = 1, *, commit: bool = True) -> int:
        n = _check_amount(amount)
        res = await db.execute(
            update(User)
            .where(User.id == int(user_id), User.credits >= n)
            .values(
                credits=User.credits - n,
                total_queries=User.total_queries + 1,
                last_interaction_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if getattr(res, "rowcount", 0) != 1:
            if commit:
                await db.rollback()
            try:
                current = await self.balance(db, user_id)
            except LookupError:
                current = None
            raise InsufficientCreditsError(int(user_id), n, current)

        new_balance = await self.balance(db, user_id)
        if commit:
            await db.commit()
        logger.info("Debited %s credit(s) user=%s balance=%s", n, user_id, new_balance)
        return new_balance

    async def credit(self, db: AsyncSession, user_id: int, amount: int, *, commit: bool = True) -> int:
        n = _check_amount(amount)
        res = await db.execute(
            update(User)
            .where(User.id == int(user_id))
            .values(credits=User.credits + n)
            .execution_options(synchronize_session=False)
        )
        if getattr(res, "rowcount", 0) != 1:
            raise LookupError(f"user not found: {user_id}")

        new_balance = await self.balance(db, user_id)
        if commit:
            await db.commit()
        logger.info("Credited %s credit(s) user=%s balance=%s", n, user_id, new_balance)
        return new_balance


credit_ledger = CreditLedger()
