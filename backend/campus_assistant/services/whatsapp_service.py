from __future__ import annotations

import logging
from typing import Protocol, cast

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    pass


class MessageSender(Protocol):
    async def send_text(self, to: str, text: str) -> str | None: ...

    async def mark_as_read(self, message_id: str) -> None: ...


class WhatsAppService:
    """WhatsApp Cloud API client for outbound text and read receipts"""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self._http_client = http_client

    @property
    def messages_url(self) -> str:
        base = str(self.settings.whatsapp_api_base_url).rstrip("/")
        return f"{base}/{self.settings.whatsapp_api_version}/{self.settings.whatsapp_phone_number_id}/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.whatsapp_api_token}",
            "Content-Type": "application/json",
        }

    async def _post(self, payload: dict[str, object]) -> dict[str, object]:
        try:
            if self._http_client is not None:
                res = await self._http_client.post(self.messages_url, headers=self._headers(), json=payload)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(15.0)) as client:
                    res = await client.post(self.messages_url, headers=self._headers(), json=payload)
            _ = res.raise_for_status()
            data: object = cast(object, res.json())
        except httpx.HTTPStatusError as e:
            body = str(getattr(e.response, "text", "") or "")[:500]
            raise DeliveryError(f"WhatsApp API status={e.response.status_code} body={body}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise DeliveryError(f"WhatsApp API request failed: {e}") from e
        return cast(dict[str, object], data) if isinstance(data, dict) else {}

    async def send_text(self, to: str, text: str) -> str | None:
        if not self.settings.whatsapp_configured:
            logger.warning("WhatsApp is not configured, dropping reply to=%s", to)
            return None

        payload: dict[str, object] = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": str(to),
            "type": "text",
            "text": {"preview_url": True, "body": str(text)},
        }
        data = await self._post(payload)

        message_id: str | None = None
        messages = data.get("messages")
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            raw_id = cast(dict[str, object], messages[0]).get("id")
            message_id = str(raw_id) if raw_id else None
        logger.info("WhatsApp message sent to=%s id=%s", to, message_id)
        return message_id

    async def mark_as_read(self, message_id: str) -> None:
        if not self.settings.whatsapp_configured or not message_id:
            return
        payload: dict[str, object] = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": str(message_id),
        }
        _ = await self._post(payload)
