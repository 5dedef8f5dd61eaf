from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class IntentCount(BaseModel):
    intent: str
    count: int


class AnalyticsResponse(BaseModel):
    total_users: int
    active_users: int
    total_conversations: int
    total_feedback: int
    avg_rating: float | None
    top_intents: list[IntentCount]


class UserItem(BaseModel):
    id: int
    contact_id: str
    display_name: str | None
    credits: int = Field(..., ge=0)
    total_queries: int
    total_feedback_given: int
    is_active: bool
    is_blocked: bool
    onboarding_completed: bool
    created_at: datetime | None
    last_interaction_at: datetime | None

    model_config: ClassVar[ConfigDict] = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    items: list[UserItem]
    total: int
    page: int
    page_size: int


class FeedbackItem(BaseModel):
    id: int
    user_id: int
    contact_id: str | None = None
    conversation_id: int | None
    rating: int | None
    comment: str
    credits_awarded: int
    created_at: datetime | None

    model_config: ClassVar[ConfigDict] = ConfigDict(from_attributes=True)


class ConversationItem(BaseModel):
    id: int
    direction: str
    content: str
    intent: str | None
    intent_confidence: float | None
    credits_used: int
    response_time_ms: int | None
    created_at: datetime | None

    model_config: ClassVar[ConfigDict] = ConfigDict(from_attributes=True)


class UserStatusUpdate(BaseModel):
    is_blocked: bool | None = None
    is_active: bool | None = None
