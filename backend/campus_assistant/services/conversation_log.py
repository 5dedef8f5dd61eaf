from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.conversation import ConversationEntry, Direction


class ConversationLog:
    """Append-only message log. Nothing here updates or deletes entries."""

    @staticmethod
    async def append_inbound(
        db: AsyncSession,
        user_id: int,
        content: str,
        *,
        message_id: str | None = None,
        commit: bool = True,
    ) -> ConversationEntry:
        entry = ConversationEntry(
            user_id=int(user_id),
            message_id=(str(message_id).strip() or None) if message_id else None,
            direction=Direction.USER,
            content=str(content or ""),
            credits_used=0,
            meta={},
        )
        db.add(entry)
        if commit:
            await db.commit()
        else:
            await db.flush()
        return entry

    @staticmethod
    async def append_outbound(
        db: AsyncSession,
        user_id: int,
        content: str,
        *,
        intent: str | None = None,
        confidence: float | None = None,
        credits_used: int = 0,
        response_time_ms: int | None = None,
        metadata: dict[str, object] | None = None,
        commit: bool = True,
    ) -> ConversationEntry:
        entry = ConversationEntry(
            user_id=int(user_id),
            direction=Direction.BOT,
            content=str(content or ""),
            intent=intent,
            intent_confidence=None if confidence is None else float(confidence),
            credits_used=int(credits_used),
            response_time_ms=None if response_time_ms is None else int(response_time_ms),
            meta=dict(metadata or {}),
        )
        db.add(entry)
        if commit:
            await db.commit()
        else:
            await db.flush()
        return entry

    @staticmethod
    async def has_message(db: AsyncSession, message_id: str) -> bool:
        res = await db.execute(
            select(ConversationEntry.id).where(ConversationEntry.message_id == str(message_id)).limit(1)
        )
        return res.scalar_one_or_none() is not None

    @staticmethod
    async def last_bot_entry(db: AsyncSession, user_id: int) -> ConversationEntry | None:
        res = await db.execute(
            select(ConversationEntry)
            .where(ConversationEntry.user_id == int(user_id), ConversationEntry.direction == Direction.BOT)
            .order_by(ConversationEntry.created_at.desc(), ConversationEntry.id.desc())
            .limit(1)
        )
        return res.scalar_one_or_none()

    @staticmethod
    async def history(db: AsyncSession, user_id: int, limit: int = 50) -> Sequence[ConversationEntry]:
        """Most recent entries, oldest first"""
        safe_limit = max(1, min(int(limit), 500))
        res = await db.execute(
            select(ConversationEntry)
            .where(ConversationEntry.user_id == int(user_id))
            .order_by(ConversationEntry.created_at.desc(), ConversationEntry.id.desc())
            .limit(safe_limit)
        )
        rows = list(res.scalars().all())
        rows.reverse()
        return rows


conversation_log = ConversationLog()
