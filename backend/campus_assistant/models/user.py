"""User model"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from ..database import Base

if TYPE_CHECKING:
    from .conversation import ConversationEntry
    from .feedback import FeedbackRecord


class UserState:
    """Lifecycle states of a chat user"""
    NEW = "NEW"
    ONBOARDING = "ONBOARDING"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"


class User(Base):
    """Chat users, keyed by their external contact id"""
    __tablename__: str = "users"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_queries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_feedback_given: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_interaction_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    conversation_entries: Mapped[list[ConversationEntry]] = relationship(
        "ConversationEntry", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    feedback_records: Mapped[list[FeedbackRecord]] = relationship(
        "FeedbackRecord", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
