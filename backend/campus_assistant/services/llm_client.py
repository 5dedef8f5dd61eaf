from __future__ import annotations

import logging
from typing import cast

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)


class OracleError(Exception):
    """Classifier or answer generator unavailable, misconfigured or returned garbage"""


class ChatCompletionsClient:
    """Minimal OpenAI-compatible chat completions caller"""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return bool(self.settings.ai_api_key and self.settings.ai_base_url and self.settings.ai_model)

    def _url(self) -> str:
        return str(self.settings.ai_base_url).rstrip("/") + "/chat/completions"

    async def complete(self, messages: list[dict[str, str]], *, temperature: float = 0.2) -> str:
        if not self.configured:
            raise OracleError("AI_API_KEY is not configured")

        headers = {
            "Authorization": f"Bearer {self.settings.ai_api_key}",
            "Content-Type": "application/json",
        }
        payload: dict[str, object] = {
            "model": self.settings.ai_model,
            "messages": messages,
            "temperature": float(temperature),
        }

        try:
            if self._http_client is not None:
                res = await self._http_client.post(self._url(), headers=headers, json=payload)
            else:
                timeout = httpx.Timeout(float(self.settings.oracle_timeout_seconds))
                async with httpx.AsyncClient(timeout=timeout) as client:
                    res = await client.post(self._url(), headers=headers, json=payload)
            _ = res.raise_for_status()
            data_obj: object = cast(object, res.json())
        except httpx.HTTPStatusError as e:
            raise OracleError(f"chat completion failed: status={e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise OracleError(f"chat completion failed: {e}") from e

        if not isinstance(data_obj, dict):
            raise OracleError("chat completion returned a non-object body")
        data = cast(dict[str, object], data_obj)

        choices_obj = data.get("choices")
        if not isinstance(choices_obj, list) or not choices_obj:
            raise OracleError("chat completion returned no choices")
        first_obj = cast(list[object], choices_obj)[0]
        if not isinstance(first_obj, dict):
            raise OracleError("chat completion choice is malformed")
        msg_any = cast(dict[str, object], first_obj).get("message")
        if not isinstance(msg_any, dict):
            raise OracleError("chat completion message is malformed")
        content_any = cast(dict[str, object], msg_any).get("content")
        if not isinstance(content_any, str) or not content_any.strip():
            raise OracleError("chat completion content is empty")
        return content_any.strip()
