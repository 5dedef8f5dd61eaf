"""Application settings"""
import sys
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator, model_validator
from functools import lru_cache
from typing import ClassVar, cast


def _running_tests() -> bool:
    return "pytest" in sys.modules


class Settings(BaseSettings):
    """Settings loaded from the environment (or .env outside tests)"""
    # Application
    app_name: str = "UEW Campus Assistant"
    debug: bool = Field(default_factory=_running_tests)

    # Storage
    database_url: str = "sqlite+aiosqlite:///./data/campus_assistant.db"
    redis_url: str = ""

    # Credits
    initial_credits: int = Field(default=5, ge=0)
    credits_per_feedback: int = Field(default=3, ge=0)
    credits_per_query: int = Field(default=1, ge=0)
    charge_greeting_and_help: bool = False

    # Feedback
    min_feedback_length: int = Field(default=10, ge=0)
    min_feedback_rating: int = 1
    max_feedback_rating: int = 5

    # Oracles
    ai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("AI_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY"),
    )
    ai_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    ai_model: str = "gemini-2.5-flash"
    oracle_timeout_seconds: float = Field(default=15.0, gt=0)

    # WhatsApp Cloud API
    whatsapp_api_token: str = ""
    whatsapp_phone_number_id: str = ""
    whatsapp_verify_token: str = ""
    whatsapp_api_version: str = "v22.0"
    whatsapp_api_base_url: str = "https://graph.facebook.com"

    message_dedup_ttl_seconds: int = Field(default=86400, ge=1)

    admin_api_token: str = ""

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    model_config: ClassVar[SettingsConfigDict] = cast(
        SettingsConfigDict,
        cast(
            object,
            {
                "env_file": None if _running_tests() else ".env",
                "extra": "ignore",
                "populate_by_name": True,
            },
        ),
    )

    @field_validator("debug", mode="before")
    @classmethod
    def _parse_debug(cls, value: object):
        if value is None:
            return bool(_running_tests())
        if isinstance(value, bool):
            return bool(value)
        if isinstance(value, int):
            return bool(int(value))
        if isinstance(value, str):
            s = value.strip().lower()
            if not s:
                return bool(_running_tests())
            if s in {"1", "true", "yes", "y", "on"}:
                return True
            if s in {"0", "false", "no", "n", "off"}:
                return False
            return True
        return bool(_running_tests())

    @field_validator("log_level", mode="before")
    @classmethod
    def _parse_log_level(cls, value: object):
        s = str(value or "").strip().upper()
        return s or "INFO"

    @model_validator(mode="after")
    def _validate_feedback_bounds(self):
        if not (1 <= self.min_feedback_rating <= self.max_feedback_rating <= 5):
            raise ValueError("MIN_FEEDBACK_RATING/MAX_FEEDBACK_RATING must satisfy 1 <= min <= max <= 5")
        return self

    @model_validator(mode="after")
    def _validate_security(self):
        if _running_tests():
            return self
        if not self.debug:
            if not self.whatsapp_verify_token:
                raise ValueError("WHATSAPP_VERIFY_TOKEN must be set when DEBUG is False")
            if len(self.admin_api_token) < 16:
                raise ValueError("ADMIN_API_TOKEN must be set to a secure value when DEBUG is False")
        return self

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.whatsapp_api_token and self.whatsapp_phone_number_id)

    @property
    def ai_configured(self) -> bool:
        return bool(self.ai_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance"""
    return Settings()
