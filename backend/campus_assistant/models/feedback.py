from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..database import Base

if TYPE_CHECKING:
    from .conversation import ConversationEntry
    from .user import User


class FeedbackRecord(Base):
    __tablename__: str = "feedback_records"
    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_feedback_rating_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    conversation_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("conversation_entries.id", ondelete="SET NULL"), nullable=True, index=True
    )

    rating: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    feedback_type: Mapped[str] = mapped_column(String(20), nullable=False, default="general")

    credits_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    user: Mapped[User] = relationship("User", back_populates="feedback_records")
    conversation: Mapped[ConversationEntry | None] = relationship("ConversationEntry", foreign_keys=[conversation_id])
