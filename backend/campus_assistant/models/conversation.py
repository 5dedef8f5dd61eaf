"""Conversation log model"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from ..database import Base

if TYPE_CHECKING:
    from .user import User


class Direction:
    USER = "user"
    BOT = "bot"


class ConversationEntry(Base):
    """One inbound or outbound message"""
    __tablename__: str = "conversation_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # transport message id, inbound entries only
    message_id: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True)
    direction: Mapped[str] = mapped_column(String(10), nullable=False, default=Direction.USER)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    intent: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    intent_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meta: Mapped[dict[str, object]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    user: Mapped[User] = relationship("User", back_populates="conversation_entries")
