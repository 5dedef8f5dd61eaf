"""User state store"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import func

from ..models.user import User, UserState


class UserService:
    """Per-user record: balance, flags, onboarding status"""

    def __init__(self, initial_credits: int = 5):
        self.initial_credits = int(initial_credits)

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> User | None:
        result = await db.execute(select(User).where(User.id == int(user_id)))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_contact(db: AsyncSession, contact_id: str) -> User | None:
        result = await db.execute(select(User).where(User.contact_id == str(contact_id).strip()))
        return result.scalar_one_or_none()

    async def get_or_create(
        self, db: AsyncSession, contact_id: str, display_name: str | None = None
    ) -> tuple[User, bool]:
        """Load the user or create it with the starting balance; returns (user, created)"""
        cid = str(contact_id).strip()
        user = await self.get_by_contact(db, cid)
        if user is not None:
            return user, False

        user = User(
            contact_id=cid,
            display_name=(display_name or "").strip() or None,
            credits=self.initial_credits,
            total_queries=0,
            total_feedback_given=0,
            is_active=True,
            is_blocked=False,
            onboarding_completed=False,
        )
        db.add(user)
        try:
            await db.commit()
            await db.refresh(user)
            return user, True
        except IntegrityError:
            await db.rollback()
            existing = await self.get_by_contact(db, cid)
            if existing is None:
                raise
            return existing, False

    @staticmethod
    async def complete_onboarding(db: AsyncSession, user_id: int, *, commit: bool = True) -> bool:
        """Flip onboarding_completed; False when another turn already did"""
        res = await db.execute(
            update(User)
            .where(User.id == int(user_id), User.onboarding_completed.is_(False))
            .values(onboarding_completed=True)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()
        return getattr(res, "rowcount", 0) == 1

    @staticmethod
    async def touch(db: AsyncSession, user_id: int, *, commit: bool = True) -> None:
        _ = await db.execute(
            update(User)
            .where(User.id == int(user_id))
            .values(last_interaction_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()

    @staticmethod
    async def increment_feedback_count(db: AsyncSession, user_id: int, *, commit: bool = True) -> None:
        _ = await db.execute(
            update(User)
            .where(User.id == int(user_id))
            .values(total_feedback_given=User.total_feedback_given + 1)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()

    @staticmethod
    async def set_blocked(db: AsyncSession, user_id: int, blocked: bool) -> None:
        """Moderation hook; the chat pipeline only reads the flag"""
        _ = await db.execute(
            update(User)
            .where(User.id == int(user_id))
            .values(is_blocked=bool(blocked))
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    @staticmethod
    async def set_active(db: AsyncSession, user_id: int, active: bool) -> None:
        _ = await db.execute(
            update(User)
            .where(User.id == int(user_id))
            .values(is_active=bool(active))
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    @staticmethod
    def lifecycle_state(user: User, *, created: bool = False) -> str:
        if bool(user.is_blocked) or not bool(user.is_active):
            return UserState.BLOCKED
        if created:
            return UserState.NEW
        if not bool(user.onboarding_completed):
            return UserState.ONBOARDING
        return UserState.ACTIVE
