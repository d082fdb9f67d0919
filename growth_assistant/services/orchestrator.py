from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Sequence, Tuple

from langsmith import traceable

from ..config import Settings
from ..models import BusinessProfile, ConversationTurn, FlowMarker, IntentResult
from ..utils.logging import get_request_logger
from .action_dispatcher import ActionDispatcher
from .conversation_store import HistoryStoreAdapter
from .error_handling import new_trace_id
from .intent_classifier import fallback_intent_result
from .interfaces import IntentClassifier, ProfileStore
from .metrics import MetricsService, get_metrics_service
from .onboarding import OnboardingGate
from .response_helpers import (
    CLASSIFIER_FAILURE_QUESTION,
    DEFAULT_CLARIFICATION_QUESTION,
    FATAL_FALLBACK_REPLY,
)
from .session_lock import UserTurnLock
from .turn_logger import TurnLogger

logger = logging.getLogger(__name__)


class ConversationEngine:
    """Single entry point for a chat turn.

    ``process_message`` always resolves to reply text and always logs the
    user/assistant pair, including when the pipeline itself fails.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        classifier: IntentClassifier,
        profile_store: ProfileStore,
        history: HistoryStoreAdapter,
        onboarding: OnboardingGate,
        dispatcher: ActionDispatcher,
        turn_logger: TurnLogger | None = None,
        turn_lock: UserTurnLock | None = None,
        metrics: MetricsService | None = None,
    ) -> None:
        self._settings = settings
        self._classifier = classifier
        self._profile_store = profile_store
        self._history = history
        self._onboarding = onboarding
        self._dispatcher = dispatcher
        self._turn_logger = turn_logger or TurnLogger(history)
        self._turn_lock = turn_lock or UserTurnLock()
        self._metrics = metrics or get_metrics_service()

    @traceable(run_type="chain", name="process_message")
    async def process_message(self, user_id: str, message: str) -> str:
        trace_id = new_trace_id() if self._settings.enable_request_tracing else None
        started = time.perf_counter()
        self._metrics.record_turn()
        async with self._turn_lock.acquire(user_id):
            reply, flow = await self._run_pipeline(user_id, message, trace_id)
            await self._turn_logger.log_pair(user_id, message, reply, flow)
        self._metrics.record_response_latency((time.perf_counter() - started) * 1000)
        return reply

    async def _run_pipeline(
        self,
        user_id: str,
        message: str,
        trace_id: Optional[str],
    ) -> Tuple[str, FlowMarker]:
        request_logger = get_request_logger(logger, trace_id=trace_id, user_id=user_id)
        try:
            history, profile = await asyncio.gather(
                self._history.recent(user_id, self._settings.history_context_limit),
                self._profile_store.get_profile(user_id),
            )
            if profile is None:
                request_logger.info("No profile, routing to onboarding")
                return await self._onboarding.handle(user_id, message), FlowMarker()

            result = await self._classify(message, history, profile, trace_id)
            self._metrics.record_intent(result.intent.value)
            request_logger.info(
                "Classified intent=%s confidence=%.2f needs_clarification=%s",
                result.intent.value,
                result.confidence,
                result.needs_clarification,
            )
            if result.needs_clarification or result.confidence < self._settings.assistant_min_confidence:
                self._metrics.record_clarification()
                question = result.clarification_question or DEFAULT_CLARIFICATION_QUESTION
                return question, FlowMarker()

            outcome = await self._dispatcher.dispatch(
                user_id, result, profile, history, message, trace_id=trace_id
            )
            return outcome.text, outcome.flow
        except Exception:
            request_logger.exception("Conversation pipeline failed")
            self._metrics.record_fatal_error()
            return FATAL_FALLBACK_REPLY, FlowMarker()

    async def _classify(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        profile: BusinessProfile,
        trace_id: Optional[str],
    ) -> IntentResult:
        try:
            return await self._classifier.classify(message, history, profile)
        except Exception:
            get_request_logger(logger, trace_id=trace_id, user_id=profile.user_id).exception(
                "Intent classifier raised"
            )
            self._metrics.record_classifier_fallback()
            return fallback_intent_result(CLASSIFIER_FAILURE_QUESTION)
