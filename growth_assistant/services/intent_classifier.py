from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI
from langsmith import traceable
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..config import Settings
from ..intents import IntentType, intent_descriptions, parse_intent
from ..models import BusinessProfile, ConversationTurn, IntentResult, build_entities
from ..prompts.intent_prompt import build_intent_prompt
from .flow_state import last_assistant_turn
from .interfaces import IntentClassifier
from .metrics import MetricsService, get_metrics_service
from .response_helpers import CLASSIFIER_FAILURE_QUESTION, DEFAULT_CLARIFICATION_QUESTION
from .rule_classifier import RuleBasedIntentClassifier

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class RawIntentPayload(BaseModel):
    """Shape of the JSON object a classifier backend must return."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    intent: str
    entities: Dict[str, Any] = Field(default_factory=dict)
    needs_clarification: bool = Field(
        default=False,
        validation_alias=AliasChoices("needs_clarification", "needsClarification"),
    )
    clarification_question: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("clarification_question", "clarificationQuestion"),
    )
    confidence: float = Field(ge=0.0, le=1.0)


def fallback_intent_result(question: str = DEFAULT_CLARIFICATION_QUESTION) -> IntentResult:
    return IntentResult(
        intent=IntentType.UNKNOWN,
        needs_clarification=True,
        clarification_question=question,
        confidence=0.0,
    )


def try_parse_intent_payload(raw: Any) -> Optional[IntentResult]:
    """Validate a backend reply into an IntentResult, or return None if it is unusable."""

    if raw is None:
        return None
    if isinstance(raw, str):
        text = _CODE_FENCE.sub("", raw.strip()).strip()
        if not text:
            return None
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            return None
    if not isinstance(raw, dict):
        return None
    if raw.get("entities") is None:
        raw = {**raw, "entities": {}}
    try:
        payload = RawIntentPayload.model_validate(raw)
    except ValidationError:
        return None
    intent = parse_intent(payload.intent)
    if intent is None:
        return None
    try:
        entities = build_entities(intent, payload.entities)
    except ValidationError:
        return None
    question = payload.clarification_question
    if payload.needs_clarification and not (question and question.strip()):
        question = DEFAULT_CLARIFICATION_QUESTION
    return IntentResult(
        intent=intent,
        entities=entities,
        needs_clarification=payload.needs_clarification,
        clarification_question=question,
        confidence=payload.confidence,
    )


def parse_intent_payload(raw: Any) -> IntentResult:
    """Total parser: any malformed reply degrades to UNKNOWN with a clarifying question."""

    result = try_parse_intent_payload(raw)
    if result is None:
        logger.warning("intent.parse_failed raw=%.200r", raw)
        return fallback_intent_result()
    return result


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return "" if content is None else str(content)


def _profile_context(profile: Optional[BusinessProfile]) -> str:
    if profile is None:
        return "No business profile found yet."
    services = ", ".join(service.name for service in profile.services) or "Not provided"
    return (
        "Business Profile:\n"
        f"- Name: {profile.business_name}\n"
        f"- Industry: {profile.industry}\n"
        f"- Services: {services}\n"
        f"- Location: {profile.location.city or '-'}, {profile.location.state or '-'}\n"
        f"- Address: {profile.location.address or 'Not provided'}\n"
        f"- Phone: {profile.contact_info.phone or 'Not provided'}\n"
        f"- Email: {profile.contact_info.email or 'Not provided'}"
    )


def configure_langsmith(settings: Settings) -> bool:
    """Export LangSmith settings for ``traceable``; returns True when tracing is on."""

    if not (settings.langsmith_api_key and settings.langsmith_tracing_v2):
        return False
    os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
    os.environ.setdefault("LANGSMITH_API_KEY", settings.langsmith_api_key)
    os.environ.setdefault("LANGSMITH_PROJECT", settings.langsmith_project or "growth-assistant")
    if settings.langsmith_endpoint:
        os.environ.setdefault("LANGSMITH_ENDPOINT", settings.langsmith_endpoint)
    return True


class LangchainIntentClassifier:
    """LLM-backed classifier: prompt | chat model, JSON reply validated with pydantic."""

    def __init__(
        self,
        settings: Settings,
        *,
        llm: BaseChatModel | None = None,
        metrics: MetricsService | None = None,
    ) -> None:
        if llm is None:
            if not settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for LangChain mode")
            llm = ChatOpenAI(
                model=settings.openai_model,
                api_key=settings.openai_api_key,
                temperature=settings.openai_temperature,
                timeout=settings.http_timeout_seconds,
                base_url=settings.openai_base_url,
            )
        self._history_limit = settings.classifier_history_limit
        self._metrics = metrics or get_metrics_service()
        self._chain = (build_intent_prompt() | llm).with_retry(stop_after_attempt=2)
        self._intent_catalog = "\n".join(
            f"- {name}: {description}" for name, description in intent_descriptions().items()
        )

    def _build_payload(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        profile: Optional[BusinessProfile],
    ) -> Dict[str, str]:
        recent = list(history)[-self._history_limit:] if self._history_limit > 0 else []
        last_assistant = last_assistant_turn(history)
        last_assistant_context = ""
        if last_assistant is not None:
            last_assistant_context = (
                "Last message displayed to user:\n"
                f"{last_assistant.content}\n"
                "The user may be answering it or correcting information in it."
            )
        return {
            "intent_catalog": self._intent_catalog,
            "profile_context": _profile_context(profile),
            "last_assistant_context": last_assistant_context,
            "history": "\n".join(f"{turn.role}: {turn.content}" for turn in recent) or "(none)",
            "message": message,
        }

    @traceable(run_type="chain", name="classify_intent")
    async def classify(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        profile: Optional[BusinessProfile],
    ) -> IntentResult:
        payload = self._build_payload(message, history, profile)
        try:
            reply = await self._chain.ainvoke(payload)
        except Exception:
            logger.exception("intent.llm_failed")
            self._metrics.record_classifier_fallback()
            return fallback_intent_result(CLASSIFIER_FAILURE_QUESTION)

        result = try_parse_intent_payload(_message_text(reply))
        if result is None:
            logger.warning("intent.llm_unparseable reply=%.200r", _message_text(reply))
            self._metrics.record_classifier_fallback()
            return fallback_intent_result()
        logger.info(
            "intent.classified intent=%s confidence=%.2f clarification=%s",
            result.intent.value,
            result.confidence,
            result.needs_clarification,
        )
        return result


def build_intent_classifier(
    settings: Settings,
    *,
    metrics: MetricsService | None = None,
) -> IntentClassifier:
    """LLM classifier when an API key is configured, deterministic rules otherwise."""

    if settings.use_langchain and settings.openai_api_key:
        return LangchainIntentClassifier(settings, metrics=metrics)
    logger.info("intent.classifier backend=rules (no OPENAI_API_KEY or USE_LANGCHAIN=false)")
    return RuleBasedIntentClassifier()
