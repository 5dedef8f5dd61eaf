"""Admin API"""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.conversation import ConversationEntry
from ..models.feedback import FeedbackRecord
from ..models.user import User
from ..schemas.admin import (
    AnalyticsResponse,
    ConversationItem,
    FeedbackItem,
    IntentCount,
    UserItem,
    UserListResponse,
    UserStatusUpdate,
)
from ..services.conversation_log import conversation_log
from ..services.user_service import UserService
from ..utils.deps import require_admin

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/analytics", response_model=AnalyticsResponse, summary="Usage analytics")
async def get_analytics(db: Annotated[AsyncSession, Depends(get_db)]):
    total_users = (await db.execute(select(func.count()).select_from(User))).scalar() or 0
    active_users = (
        await db.execute(
            select(func.count()).select_from(User).where(User.is_active.is_(True), User.is_blocked.is_(False))
        )
    ).scalar() or 0
    total_conversations = (await db.execute(select(func.count()).select_from(ConversationEntry))).scalar() or 0
    total_feedback = (await db.execute(select(func.count()).select_from(FeedbackRecord))).scalar() or 0
    avg_rating = (await db.execute(select(func.avg(FeedbackRecord.rating)))).scalar()

    count_col = func.count(ConversationEntry.id).label("count")
    rows = (
        await db.execute(
            select(ConversationEntry.intent, count_col)
            .where(ConversationEntry.intent.is_not(None))
            .group_by(ConversationEntry.intent)
            .order_by(desc(count_col), ConversationEntry.intent.asc())
            .limit(10)
        )
    ).all()

    return AnalyticsResponse(
        total_users=int(total_users),
        active_users=int(active_users),
        total_conversations=int(total_conversations),
        total_feedback=int(total_feedback),
        avg_rating=round(float(avg_rating), 2) if avg_rating is not None else None,
        top_intents=[IntentCount(intent=str(intent), count=int(count)) for intent, count in rows],
    )


@router.get("/users", response_model=UserListResponse, summary="User list")
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=200)] = 50,
):
    total = (await db.execute(select(func.count()).select_from(User))).scalar() or 0
    res = await db.execute(
        select(User).order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    items = [UserItem.model_validate(u) for u in res.scalars().all()]
    return UserListResponse(items=items, total=int(total), page=page, page_size=page_size)


@router.patch("/users/{user_id}", response_model=UserItem, summary="Block or deactivate a user")
async def update_user_status(
    user_id: int,
    data: UserStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    if await UserService.get_by_id(db, user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    if data.is_blocked is not None:
        await UserService.set_blocked(db, user_id, data.is_blocked)
    if data.is_active is not None:
        await UserService.set_active(db, user_id, data.is_active)
    db.expire_all()
    user = await UserService.get_by_id(db, user_id)
    return UserItem.model_validate(user)


@router.get("/users/{user_id}/conversations", response_model=list[ConversationItem], summary="Conversation history")
async def get_user_conversations(
    user_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
):
    if await UserService.get_by_id(db, user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    rows = await conversation_log.history(db, user_id, limit=limit)
    return [ConversationItem.model_validate(r) for r in rows]


@router.get("/feedback", response_model=list[FeedbackItem], summary="Recent feedback")
async def list_feedback(
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
):
    res = await db.execute(
        select(FeedbackRecord, User.contact_id)
        .join(User, User.id == FeedbackRecord.user_id)
        .order_by(FeedbackRecord.created_at.desc(), FeedbackRecord.id.desc())
        .limit(limit)
    )
    out: list[FeedbackItem] = []
    for record, contact_id in res.all():
        item = FeedbackItem.model_validate(record)
        item.contact_id = contact_id
        out.append(item)
    return out
