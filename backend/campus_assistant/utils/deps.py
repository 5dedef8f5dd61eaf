"""Dependency injection"""
import hmac
import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from ..config import Settings, get_settings
from ..services.message_router import MessageRouter
from .turn_dispatcher import TurnDispatcher

logger = logging.getLogger(__name__)


async def require_admin(
    settings: Annotated[Settings, Depends(get_settings)],
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Admin endpoints need X-Admin-Token matching ADMIN_API_TOKEN"""
    expected = str(settings.admin_api_token or "")
    if not expected:
        logger.info("admin: ADMIN_API_TOKEN not configured")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin API disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        logger.info("admin: bad token")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")


def get_message_router(request: Request) -> MessageRouter:
    router = getattr(request.app.state, "message_router", None)
    if router is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Not ready")
    return router


def get_dispatcher(request: Request) -> TurnDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Not ready")
    return dispatcher
