from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass

import httpx
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..database import AsyncSessionLocal
from ..models.user import User, UserState
from ..schemas.ai import Classification, Intent
from ..schemas.message import InboundMessage
from ..utils.user_locks import UserLockRegistry
from . import feedback_service as feedback_parser
from . import replies
from .ai_intent import IntentClassifier, build_intent_classifier
from .answer_service import AnswerGenerator, build_answer_generator
from .cache_service import CacheService, cache_service
from .conversation_log import ConversationLog
from .credit_ledger import CreditLedger, InsufficientCreditsError
from .feedback_service import FeedbackService, InvalidFeedbackError
from .location_service import LocationService
from .user_service import UserService
from .whatsapp_service import MessageSender, WhatsAppService

logger = logging.getLogger(__name__)

_list_locations_re = re.compile(
    r"\b(what|which|list|show|all)\b.*\b(locations|places|buildings)\b", re.IGNORECASE
)


class TurnStatus:
    DUPLICATE = "duplicate"
    DROPPED = "dropped"
    ONBOARDING = "onboarding"
    FEEDBACK = "feedback"
    FEEDBACK_REJECTED = "feedback_rejected"
    NO_CREDITS = "no_credits"
    ANSWERED = "answered"
    FAILED = "failed"


@dataclass
class TurnOutcome:
    status: str
    reply: str | None = None
    intent: str | None = None
    confidence: float | None = None
    credits_charged: int = 0
    balance: int | None = None


@dataclass
class _TurnState:
    started: float
    silent: bool = False


class MessageRouter:
    """Turns one inbound message into at most one reply plus the matching state changes.

    Turns for the same sender are serialised by ``locks``; each turn works in
    its own session from ``session_factory``. A credit is only ever debited in
    the same commit that records the outbound reply, so a failed turn is never
    charged.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        classifier: IntentClassifier,
        answer_generator: AnswerGenerator,
        sender: MessageSender,
        *,
        ledger: CreditLedger | None = None,
        users: UserService | None = None,
        conversation_log: ConversationLog | None = None,
        feedback: FeedbackService | None = None,
        locations: LocationService | None = None,
        locks: UserLockRegistry | None = None,
        cache: CacheService | None = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.classifier = classifier
        self.answer_generator = answer_generator
        self.sender = sender
        self.ledger = ledger or CreditLedger()
        self.users = users or UserService(settings.initial_credits)
        self.log = conversation_log or ConversationLog()
        self.feedback = feedback or FeedbackService(settings, self.ledger, self.users)
        self.locations = locations or LocationService()
        self.locks = locks or UserLockRegistry()
        self.cache = cache or CacheService()

    async def handle(self, message: InboundMessage) -> TurnOutcome:
        state = _TurnState(started=time.perf_counter())

        if message.message_id:
            claimed = await self.cache.claim(
                f"inbound:{message.message_id}", int(self.settings.message_dedup_ttl_seconds)
            )
            if not claimed:
                logger.info("Duplicate message skipped id=%s", message.message_id)
                return TurnOutcome(status=TurnStatus.DUPLICATE)

        async with self.locks.hold(message.sender):
            try:
                outcome = await self._run_turn(message, state)
            except Exception:
                logger.exception("Turn failed sender=%s id=%s", message.sender, message.message_id)
                if state.silent:
                    return TurnOutcome(status=TurnStatus.FAILED)
                _ = await self._deliver(message.sender, replies.APOLOGY)
                return TurnOutcome(status=TurnStatus.FAILED, reply=replies.APOLOGY)

        logger.info(
            "Turn done sender=%s status=%s intent=%s charged=%s balance=%s",
            message.sender,
            outcome.status,
            outcome.intent,
            outcome.credits_charged,
            outcome.balance,
        )
        return outcome

    def _elapsed_ms(self, state: _TurnState) -> int:
        return int((time.perf_counter() - state.started) * 1000)

    async def _run_turn(self, message: InboundMessage, state: _TurnState) -> TurnOutcome:
        async with self.session_factory() as db:
            user, created = await self.users.get_or_create(db, message.sender, message.display_name)
            user_id = int(user.id)
            lifecycle = self.users.lifecycle_state(user, created=created)

            if lifecycle == UserState.BLOCKED:
                state.silent = True
                if not await self._persist_inbound(db, user_id, message, touch=False):
                    return TurnOutcome(status=TurnStatus.DUPLICATE)
                logger.info("Dropped message from blocked or inactive user=%s", user_id)
                return TurnOutcome(status=TurnStatus.DROPPED)

            if not await self._persist_inbound(db, user_id, message, touch=True):
                return TurnOutcome(status=TurnStatus.DUPLICATE)
            if message.message_id:
                await self._mark_read(message.message_id)

            if lifecycle in (UserState.NEW, UserState.ONBOARDING):
                return await self._onboard(db, user_id, message, state)

            if feedback_parser.is_feedback(message.text):
                return await self._handle_feedback(db, user, message, state)

            cost = int(self.settings.credits_per_query)
            balance = await self.ledger.balance(db, user_id)
            if balance < cost:
                return await self._reply_no_credits(db, user_id, message, state, balance)

            classification = await self._classify(message.text)
            reply, charge = await self._dispatch(db, classification, message.text, balance)
            return await self._charge_and_reply(db, user_id, message, state, classification, reply, charge)

    async def _persist_inbound(self, db: AsyncSession, user_id: int, message: InboundMessage, *, touch: bool) -> bool:
        """Write the inbound entry; False when the message id was already recorded"""
        if message.message_id and await self.log.has_message(db, message.message_id):
            logger.info("Message already recorded id=%s", message.message_id)
            return False
        try:
            _ = await self.log.append_inbound(db, user_id, message.text, message_id=message.message_id, commit=False)
            if touch:
                await self.users.touch(db, user_id, commit=False)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info("Message already recorded id=%s", message.message_id)
            return False
        return True

    async def _onboard(
        self, db: AsyncSession, user_id: int, message: InboundMessage, state: _TurnState
    ) -> TurnOutcome:
        balance = await self.ledger.balance(db, user_id)
        reply = replies.welcome(balance, int(self.settings.credits_per_query))
        _ = await self.users.complete_onboarding(db, user_id, commit=False)
        _ = await self.log.append_outbound(
            db,
            user_id,
            reply,
            response_time_ms=self._elapsed_ms(state),
            metadata={"flow": "onboarding"},
            commit=False,
        )
        await db.commit()
        _ = await self._deliver(message.sender, reply)
        return TurnOutcome(status=TurnStatus.ONBOARDING, reply=reply, balance=balance)

    async def _handle_feedback(
        self, db: AsyncSession, user: User, message: InboundMessage, state: _TurnState
    ) -> TurnOutcome:
        user_id = int(user.id)
        parsed = feedback_parser.parse(message.text)
        last_bot = await self.log.last_bot_entry(db, user_id)

        try:
            record = await self.feedback.accept(
                db,
                user,
                parsed.rating,
                parsed.comment,
                conversation_id=int(last_bot.id) if last_bot is not None else None,
            )
        except InvalidFeedbackError as e:
            min_length = int(self.settings.min_feedback_length) if e.reason == "comment_too_short" else None
            reply = replies.feedback_prompt(min_length)
            _ = await self.log.append_outbound(
                db,
                user_id,
                reply,
                response_time_ms=self._elapsed_ms(state),
                metadata={"flow": "feedback", "rejected": e.reason},
            )
            _ = await self._deliver(message.sender, reply)
            return TurnOutcome(status=TurnStatus.FEEDBACK_REJECTED, reply=reply)

        balance = await self.ledger.balance(db, user_id)
        reply = replies.feedback_thanks(int(record.rating or 0), int(record.credits_awarded), balance)
        _ = await self.log.append_outbound(
            db,
            user_id,
            reply,
            response_time_ms=self._elapsed_ms(state),
            metadata={"flow": "feedback", "feedback_id": int(record.id)},
        )
        _ = await self._deliver(message.sender, reply)
        return TurnOutcome(status=TurnStatus.FEEDBACK, reply=reply, balance=balance)

    async def _reply_no_credits(
        self, db: AsyncSession, user_id: int, message: InboundMessage, state: _TurnState, balance: int
    ) -> TurnOutcome:
        reply = replies.no_credits(int(self.settings.credits_per_feedback))
        _ = await self.log.append_outbound(
            db,
            user_id,
            reply,
            response_time_ms=self._elapsed_ms(state),
            metadata={"flow": "no_credits"},
        )
        _ = await self._deliver(message.sender, reply)
        return TurnOutcome(status=TurnStatus.NO_CREDITS, reply=reply, balance=balance)

    async def _classify(self, text: str) -> Classification:
        try:
            result: object = await asyncio.wait_for(
                self.classifier.classify(text), timeout=float(self.settings.oracle_timeout_seconds)
            )
        except asyncio.TimeoutError:
            logger.warning("Intent classifier timed out after %ss", self.settings.oracle_timeout_seconds)
            return Classification.fallback()
        except Exception as e:
            logger.warning("Intent classifier failed: %s", e)
            return Classification.fallback()

        if isinstance(result, Classification):
            return result
        try:
            return Classification.model_validate(result)
        except ValidationError:
            logger.warning("Intent classifier returned an unusable result: %r", result)
            return Classification.fallback()

    async def _answer(self, question: str) -> str | None:
        try:
            answer = await asyncio.wait_for(
                self.answer_generator.answer(question), timeout=float(self.settings.oracle_timeout_seconds)
            )
        except asyncio.TimeoutError:
            logger.warning("Answer generator timed out after %ss", self.settings.oracle_timeout_seconds)
            return None
        except Exception as e:
            logger.warning("Answer generator failed: %s", e)
            return None
        text = str(answer or "").strip()
        return text or None

    async def _dispatch(
        self, db: AsyncSession, classification: Classification, text: str, balance: int
    ) -> tuple[str, int]:
        """Reply text and credit cost for a classified message"""
        cost = int(self.settings.credits_per_query)
        intent = classification.intent
        entities = classification.entities

        if intent == Intent.NAVIGATION:
            if entities.destination:
                reply = await self.locations.build_reply(db, entities.origin, entities.destination)
            elif entities.topic == "locations" or _list_locations_re.search(text):
                reply = await self.locations.list_locations(db)
            else:
                reply = replies.NAVIGATION_PROMPT
            return reply, cost

        if intent in (Intent.FAQ, Intent.WEBSITE_SEARCH):
            answer = await self._answer(text)
            if answer is None:
                return replies.ANSWER_UNAVAILABLE, 0
            return answer, cost

        if intent in (Intent.GREETING, Intent.HELP):
            charge = cost if self.settings.charge_greeting_and_help else 0
            if intent == Intent.GREETING:
                return replies.greeting(max(0, balance - charge)), charge
            return replies.help_text(cost), charge

        return replies.FALLBACK_OTHER, cost

    async def _charge_and_reply(
        self,
        db: AsyncSession,
        user_id: int,
        message: InboundMessage,
        state: _TurnState,
        classification: Classification,
        reply: str,
        charge: int,
    ) -> TurnOutcome:
        metadata = classification.entities.as_metadata()
        if classification.is_fallback:
            metadata["fallback"] = True

        try:
            if charge > 0:
                balance = await self.ledger.debit(db, user_id, charge, commit=False)
            else:
                balance = await self.ledger.balance(db, user_id)
            _ = await self.log.append_outbound(
                db,
                user_id,
                reply,
                intent=classification.intent.value,
                confidence=classification.confidence,
                credits_used=charge,
                response_time_ms=self._elapsed_ms(state),
                metadata=metadata,
                commit=False,
            )
            await db.commit()
        except InsufficientCreditsError as e:
            await db.rollback()
            logger.info("Credit drained before charge user=%s", user_id)
            return await self._reply_no_credits(db, user_id, message, state, int(e.balance or 0))
        except Exception:
            await db.rollback()
            raise

        _ = await self._deliver(message.sender, reply)
        return TurnOutcome(
            status=TurnStatus.ANSWERED,
            reply=reply,
            intent=classification.intent.value,
            confidence=classification.confidence,
            credits_charged=charge,
            balance=balance,
        )

    async def _deliver(self, to: str, text: str) -> bool:
        try:
            _ = await self.sender.send_text(to, text)
        except Exception as e:
            logger.warning("Reply delivery failed to=%s: %s", to, e)
            return False
        return True

    async def _mark_read(self, message_id: str) -> None:
        try:
            await self.sender.mark_as_read(message_id)
        except Exception as e:
            logger.warning("mark_as_read failed id=%s: %s", message_id, e)


def build_message_router(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    http_client: httpx.AsyncClient | None = None,
    *,
    cache: CacheService | None = None,
) -> MessageRouter:
    settings = settings or get_settings()
    return MessageRouter(
        settings,
        session_factory or AsyncSessionLocal,
        classifier=build_intent_classifier(settings, http_client),
        answer_generator=build_answer_generator(settings, http_client),
        sender=WhatsAppService(settings, http_client),
        cache=cache or cache_service,
    )
