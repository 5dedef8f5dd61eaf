from __future__ import annotations

import json
import logging
import re
from typing import Protocol, cast

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..schemas.ai import Classification, Entities, Intent
from .llm_client import ChatCompletionsClient

logger = logging.getLogger(__name__)


class IntentClassifier(Protocol):
    async def classify(self, text: str) -> Classification: ...


_json_re = re.compile(r"\{[\s\S]*\}")


def parse_classification(raw: str | None) -> Classification:
    """Validate classifier output; anything unusable becomes the fallback result"""
    m = _json_re.search(str(raw or ""))
    if not m:
        logger.warning("Classifier output has no JSON object")
        return Classification.fallback()
    try:
        data_obj: object = cast(object, json.loads(m.group(0)))
    except ValueError:
        logger.warning("Classifier output is not valid JSON")
        return Classification.fallback()
    if not isinstance(data_obj, dict) or "intent" not in data_obj:
        logger.warning("Classifier output is missing the intent field")
        return Classification.fallback()
    try:
        return Classification.model_validate(data_obj)
    except ValidationError:
        logger.warning("Classifier output failed validation")
        return Classification.fallback()


CLASSIFY_PROMPT = """You are an intent classifier for a university campus assistant chatbot.

User message: "{message}"

Classify the message into ONE of these intents:
1. NAVIGATION - User wants directions or location info (e.g., "How do I get to...", "Where is...", "I'm at X, need to go to Y")
2. FAQ - General questions about the university (departments, facilities, schedules, admission, etc.)
3. WEBSITE_SEARCH - Questions about recent news, announcements, or specific information from the university website
4. GREETING - General greetings like hi, hello, good morning
5. HELP - User asks for help or doesn't know what to do
6. OTHER - Anything else

Also extract relevant entities:
- For NAVIGATION: extract origin and destination locations
- For FAQ: extract the topic being asked about
- For WEBSITE_SEARCH: extract search keywords

Respond ONLY with valid JSON in this exact format:
{{
  "intent": "NAVIGATION|FAQ|WEBSITE_SEARCH|GREETING|HELP|OTHER",
  "confidence": 0.0-1.0,
  "entities": {{
    "origin": "location name or null",
    "destination": "location name or null",
    "topic": "topic name or null",
    "keywords": ["keyword1", "keyword2"]
  }}
}}"""


class LLMIntentClassifier:
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self.client = ChatCompletionsClient(settings, http_client)

    async def classify(self, text: str) -> Classification:
        prompt = CLASSIFY_PROMPT.format(message=str(text or "").replace('"', "'"))
        raw = await self.client.complete([{"role": "user", "content": prompt}], temperature=0.0)
        result = parse_classification(raw)
        logger.info("Intent classified intent=%s confidence=%.2f", result.intent.value, result.confidence)
        return result


class RuleBasedIntentClassifier:
    """Keyword and pattern classifier used when no LLM is configured.

    Good enough for the common phrasings ("how do I get to X", "where is X",
    "I'm at X, need to go to Y"); everything it cannot place is OTHER.
    """

    _greeting_re = re.compile(
        r"^\s*(hi+|hello+|hey+|hiya|howdy|yo|good\s+(morning|afternoon|evening|day)|greetings)\b[\s!.,]*\w{0,12}[\s!.]*$",
        re.IGNORECASE,
    )
    _help_re = re.compile(
        r"\b(help|menu|what can you do|how does this work|how do i use|commands|options)\b", re.IGNORECASE
    )
    _at_to_re = re.compile(
        r"\bi(?:'m|’m|\s+am)\s+(?:at|in|near|by)\s+(?P<origin>[^,;.]+?)\s*(?:[,;.]|\b(?:and|need|want|how)\b)"
        r".{0,80}?\b(?:go|get|walk|head)\s+to\s+(?P<dest>.+)",
        re.IGNORECASE,
    )
    _from_to_re = re.compile(r"\bfrom\s+(?P<origin>.+?)\s+to\s+(?P<dest>.+)", re.IGNORECASE)
    _dest_re = re.compile(
        r"\b(?:get|go|walk|head|directions?|way|route|take\s+me)\s+to\s+(?P<dest>.+)", re.IGNORECASE
    )
    _where_re = re.compile(r"\bwhere(?:'s|’s|\s+is|\s+are|\s+can\s+i\s+find)\s+(?P<dest>.+)", re.IGNORECASE)
    _locations_re = re.compile(r"\b(what|which|list|show)\b.*\b(locations|places)\b", re.IGNORECASE)
    _website_re = re.compile(
        r"\b(news|announcements?|latest|updates?|events?|notices?|website|deadline)\b", re.IGNORECASE
    )
    _faq_re = re.compile(
        r"\b(admissions?|apply|application|departments?|faculty|fees?|tuition|hostels?|semester|exams?|"
        r"registration|register|courses?|programmes?|programs?|library|opening|hours|close|open|scholarships?|"
        r"graduation|transcript|calendar)\b",
        re.IGNORECASE,
    )
    _question_re = re.compile(r"^\s*(what|when|who|which|how|why|is|are|can|does|do|tell me)\b|\?\s*$", re.IGNORECASE)
    _word_re = re.compile(r"[a-zA-Z][a-zA-Z'-]{2,}")

    # longer texts are classified on their head only
    MAX_TEXT_LENGTH: int = 500

    STOPWORDS: frozenset[str] = frozenset(
        {
            "the", "and", "for", "are", "what", "when", "who", "which", "how", "why", "about",
            "tell", "with", "from", "that", "this", "there", "any", "does", "can", "you", "your",
            "uew", "university", "please", "latest", "is", "me",
        }
    )

    @staticmethod
    def _clean_place(value: str | None) -> str | None:
        s = str(value or "").strip()
        s = re.sub(r"[?!.,;:]+$", "", s).strip()
        s = re.sub(r"\s+please$", "", s, flags=re.IGNORECASE).strip()
        s = re.sub(r"^(?:the)\s+", "", s, flags=re.IGNORECASE).strip()
        return s or None

    def _keywords(self, text: str) -> list[str]:
        out: list[str] = []
        for w in self._word_re.findall(text):
            lw = w.lower()
            if lw in self.STOPWORDS or lw in out:
                continue
            out.append(lw)
        return out[:8]

    def classify_sync(self, text: str) -> Classification:
        s = str(text or "").strip()[: self.MAX_TEXT_LENGTH]
        if not s:
            return Classification.fallback()

        if self._greeting_re.match(s):
            return Classification(intent=Intent.GREETING, confidence=0.9)

        for pattern in (self._at_to_re, self._from_to_re):
            m = pattern.search(s)
            if m:
                entities = Entities(
                    origin=self._clean_place(m.group("origin")),
                    destination=self._clean_place(m.group("dest")),
                )
                return Classification(intent=Intent.NAVIGATION, confidence=0.85, entities=entities)

        for pattern in (self._dest_re, self._where_re):
            m = pattern.search(s)
            if m:
                entities = Entities(destination=self._clean_place(m.group("dest")))
                return Classification(intent=Intent.NAVIGATION, confidence=0.8, entities=entities)

        if self._locations_re.search(s):
            return Classification(intent=Intent.NAVIGATION, confidence=0.7, entities=Entities(topic="locations"))

        if self._help_re.search(s):
            return Classification(intent=Intent.HELP, confidence=0.8)

        if self._website_re.search(s):
            return Classification(
                intent=Intent.WEBSITE_SEARCH,
                confidence=0.7,
                entities=Entities(keywords=self._keywords(s)),
            )

        faq = self._faq_re.search(s)
        if faq or self._question_re.search(s):
            topic = faq.group(1).lower() if faq else None
            return Classification(
                intent=Intent.FAQ,
                confidence=0.7 if faq else 0.55,
                entities=Entities(topic=topic, keywords=self._keywords(s)),
            )

        return Classification(intent=Intent.OTHER, confidence=0.5)

    async def classify(self, text: str) -> Classification:
        return self.classify_sync(text)


def build_intent_classifier(settings: Settings, http_client: httpx.AsyncClient | None = None) -> IntentClassifier:
    if settings.ai_configured:
        return LLMIntentClassifier(settings, http_client)
    logger.info("AI_API_KEY not set, using the rule-based intent classifier")
    return RuleBasedIntentClassifier()
