"""Classification schemas"""
from __future__ import annotations

import enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Intent(str, enum.Enum):
    """Fixed intent label set"""
    NAVIGATION = "NAVIGATION"
    FAQ = "FAQ"
    WEBSITE_SEARCH = "WEBSITE_SEARCH"
    GREETING = "GREETING"
    HELP = "HELP"
    OTHER = "OTHER"


FALLBACK_CONFIDENCE = 0.3

_NULL_STRINGS = {"", "null", "none", "n/a", "unknown"}


def _clean_optional(value: object) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if s.lower() in _NULL_STRINGS:
        return None
    return s


class Entities(BaseModel):
    """Entities extracted from a message"""
    origin: str | None = None
    destination: str | None = None
    topic: str | None = None
    keywords: list[str] = Field(default_factory=list)

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    @field_validator("origin", "destination", "topic", mode="before")
    @classmethod
    def _parse_optional(cls, value: object):
        return _clean_optional(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _parse_keywords(cls, value: object):
        if value is None:
            return []
        if isinstance(value, str):
            value = [p for p in value.split(",")]
        if not isinstance(value, (list, tuple)):
            return []
        out: list[str] = []
        for item in value:
            s = _clean_optional(item)
            if s and s not in out:
                out.append(s)
        return out

    def as_metadata(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True, exclude_defaults=True)


class Classification(BaseModel):
    """Validated classifier output"""
    intent: Intent = Intent.OTHER
    confidence: float = Field(default=FALLBACK_CONFIDENCE, ge=0.0, le=1.0)
    entities: Entities = Field(default_factory=Entities)
    is_fallback: bool = False

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    @field_validator("intent", mode="before")
    @classmethod
    def _parse_intent(cls, value: object):
        s = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return Intent(s)
        except ValueError:
            return Intent.OTHER

    @field_validator("confidence", mode="before")
    @classmethod
    def _parse_confidence(cls, value: object):
        try:
            v = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return FALLBACK_CONFIDENCE
        if v != v:
            return FALLBACK_CONFIDENCE
        return min(1.0, max(0.0, v))

    @field_validator("entities", mode="before")
    @classmethod
    def _parse_entities(cls, value: object):
        if isinstance(value, Entities):
            return value
        if not isinstance(value, dict):
            return {}
        return value

    @classmethod
    def fallback(cls) -> "Classification":
        return cls(intent=Intent.OTHER, confidence=FALLBACK_CONFIDENCE, is_fallback=True)
