from __future__ import annotations

import logging
from typing import Protocol

import httpx

from ..config import Settings
from .llm_client import ChatCompletionsClient, OracleError

logger = logging.getLogger(__name__)


class AnswerGenerator(Protocol):
    async def answer(self, question: str, context: str = "") -> str: ...


ANSWER_PROMPT = """You are a helpful assistant for the University of Education, Winneba (UEW).

{context_block}User question: {question}

Provide a helpful, accurate answer. If you're not certain about something, say so.
Keep the response concise and friendly and suitable for a chat message.
If you don't have the answer, say "I don't have specific information about that"
and suggest the user contact the university directly.

Response:"""


class LLMAnswerGenerator:
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self.client = ChatCompletionsClient(settings, http_client)

    async def answer(self, question: str, context: str = "") -> str:
        q = str(question or "").strip()
        if not q:
            raise OracleError("empty question")
        ctx = str(context or "").strip()
        context_block = f"Context from knowledge base:\n{ctx}\n\n" if ctx else ""
        prompt = ANSWER_PROMPT.format(context_block=context_block, question=q)
        text = await self.client.complete([{"role": "user", "content": prompt}], temperature=0.4)
        logger.info("Answer generated chars=%s", len(text))
        return text


class UnavailableAnswerGenerator:
    """Used when no LLM is configured; every call fails so the router falls back"""

    async def answer(self, question: str, context: str = "") -> str:
        raise OracleError("answer generator is not configured")


def build_answer_generator(settings: Settings, http_client: httpx.AsyncClient | None = None) -> AnswerGenerator:
    if settings.ai_configured:
        return LLMAnswerGenerator(settings, http_client)
    return UnavailableAnswerGenerator()
