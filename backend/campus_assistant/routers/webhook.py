"""WhatsApp webhook"""
import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from ..config import Settings, get_settings
from ..schemas.message import WhatsAppWebhookPayload
from ..services.message_router import MessageRouter
from ..utils.deps import get_dispatcher, get_message_router
from ..utils.turn_dispatcher import TurnDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["Webhook"])


@router.get("", summary="Webhook verification")
async def verify_webhook(
    settings: Annotated[Settings, Depends(get_settings)],
    mode: Annotated[str | None, Query(alias="hub.mode")] = None,
    token: Annotated[str | None, Query(alias="hub.verify_token")] = None,
    challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
):
    expected = str(settings.whatsapp_verify_token or "")
    if mode == "subscribe" and expected and token and hmac.compare_digest(token, expected):
        logger.info("Webhook verified successfully")
        return PlainTextResponse(challenge or "")
    logger.warning("Webhook verification failed mode=%s", mode)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("", summary="Receive messages")
async def receive_webhook(
    payload: WhatsAppWebhookPayload,
    message_router: Annotated[MessageRouter, Depends(get_message_router)],
    dispatcher: Annotated[TurnDispatcher, Depends(get_dispatcher)],
):
    """Acknowledge right away; every text message becomes its own background turn"""
    messages = payload.inbound_messages()
    for msg in messages:
        _ = dispatcher.submit(message_router.handle(msg), name=f"turn:{msg.message_id or msg.sender}")
    if messages:
        logger.info("Webhook accepted %s message(s)", len(messages))
    return {"status": "received", "accepted": len(messages)}
