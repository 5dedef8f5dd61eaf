from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..models.feedback import FeedbackRecord
from ..models.user import User
from .credit_ledger import CreditLedger, credit_ledger
from .user_service import UserService

logger = logging.getLogger(__name__)

STAR_GLYPHS = ("⭐", "\U0001f31f", "★")

_star_re = re.compile("[" + "".join(STAR_GLYPHS) + "]")
_variation_re = re.compile("\ufe0f")
_rating_pattern_re = re.compile(r"\b[1-5]\s*(?:stars?\b|/\s*5\b|out\s+of\s+5\b)", re.IGNORECASE)
_numeric_rating_re = re.compile(r"\b(\d+)\s*(?:/\s*5\b|out\s+of\s+5\b|stars?\b)", re.IGNORECASE)
_keyword_re = re.compile(r"\b(?:feedback|rating)\b", re.IGNORECASE)
_keyword_strip_re = re.compile(r"\b(?:feedback|rating)\b\s*[:\-]?", re.IGNORECASE)
_space_re = re.compile(r"\s+")


@dataclass(frozen=True)
class ParsedFeedback:
    rating: int | None
    comment: str


class InvalidFeedbackError(Exception):
    """Feedback rejected; reason is one of missing_rating, rating_out_of_range, comment_too_short"""

    def __init__(self, reason: str) -> None:
        self.reason = str(reason)
        super().__init__(self.reason)


def is_feedback(text: str) -> bool:
    s = str(text or "")
    if _star_re.search(s):
        return True
    if _rating_pattern_re.search(s):
        return True
    return bool(_keyword_re.search(s))


def parse(text: str) -> ParsedFeedback:
    s = _variation_re.sub("", str(text or ""))

    rating: int | None = None
    stars = len(_star_re.findall(s))
    if stars > 0:
        rating = min(stars, 5)
    else:
        m = _numeric_rating_re.search(s)
        if m:
            rating = int(m.group(1))

    comment = _star_re.sub(" ", s)
    comment = _numeric_rating_re.sub(" ", comment)
    comment = _keyword_strip_re.sub(" ", comment)
    comment = _space_re.sub(" ", comment).strip().strip("-:,").strip()
    return ParsedFeedback(rating=rating, comment=comment)


class FeedbackService:
    def __init__(
        self,
        settings: Settings | None = None,
        ledger: CreditLedger | None = None,
        users: UserService | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.ledger = ledger or credit_ledger
        self.users = users or UserService(self.settings.initial_credits)

    def validate(self, rating: int | None, comment: str) -> None:
        if rating is None:
            raise InvalidFeedbackError("missing_rating")
        if not (self.settings.min_feedback_rating <= int(rating) <= self.settings.max_feedback_rating):
            raise InvalidFeedbackError("rating_out_of_range")
        if len(str(comment or "").strip()) < int(self.settings.min_feedback_length):
            raise InvalidFeedbackError("comment_too_short")

    async def accept(
        self,
        db: AsyncSession,
        user: User,
        rating: int | None,
        comment: str,
        *,
        conversation_id: int | None = None,
    ) -> FeedbackRecord:
        """Store the feedback and award credits in one transaction"""
        self.validate(rating, comment)

        award = int(self.settings.credits_per_feedback)
        record = FeedbackRecord(
            user_id=int(user.id),
            conversation_id=conversation_id,
            rating=int(rating),  # type: ignore[arg-type]
            comment=str(comment).strip(),
            feedback_type="general",
            credits_awarded=award,
            is_processed=True,
        )
        db.add(record)
        try:
            await db.flush()
            new_balance = await self.ledger.credit(db, int(user.id), award, commit=False)
            await self.users.increment_feedback_count(db, int(user.id), commit=False)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(record)
        logger.info(
            "Feedback saved user=%s rating=%s awarded=%s balance=%s",
            user.id,
            record.rating,
            award,
            new_balance,
        )
        return record
