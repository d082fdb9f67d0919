"""Shared pytest fixtures for all tests."""

from __future__ import annotations

from collections import deque
from typing import Any, Dict, List, Optional, Sequence

import pytest

from growth_assistant.config import Settings
from growth_assistant.intents import IntentType
from growth_assistant.models import (
    BusinessProfile,
    ConversationTurn,
    FlowMarker,
    IntentResult,
    ProfileUpdate,
    build_entities,
)
from growth_assistant.services.action_dispatcher import ActionDispatcher
from growth_assistant.services.container import AssistantServices, build_services
from growth_assistant.services.conversation_store import ConversationStore
from growth_assistant.services.errors import StorageError
from growth_assistant.services.flow_state import FlowStateInferencer
from growth_assistant.services.metrics import MetricsService

USER_ID = "user-test"


def make_result(
    intent: IntentType,
    entities: Optional[Dict[str, Any]] = None,
    *,
    confidence: float = 0.9,
    needs_clarification: bool = False,
    question: Optional[str] = None,
) -> IntentResult:
    return IntentResult(
        intent=intent,
        entities=build_entities(intent, entities),
        confidence=confidence,
        needs_clarification=needs_clarification,
        clarification_question=question,
    )


def assistant_turn(content: str, flow: Optional[FlowMarker] = None, user_id: str = USER_ID) -> ConversationTurn:
    return ConversationTurn(user_id=user_id, role="assistant", content=content, flow=flow)


def user_turn(content: str, user_id: str = USER_ID) -> ConversationTurn:
    return ConversationTurn(user_id=user_id, role="user", content=content)


class ScriptedClassifier:
    """Returns queued results in order and records every call."""

    def __init__(self, *results: IntentResult) -> None:
        self.results = deque(results)
        self.calls: List[tuple[str, List[ConversationTurn], Optional[BusinessProfile]]] = []

    def push(self, *results: IntentResult) -> None:
        self.results.extend(results)

    async def classify(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        profile: Optional[BusinessProfile],
    ) -> IntentResult:
        self.calls.append((message, list(history), profile))
        if not self.results:
            return make_result(
                IntentType.UNKNOWN,
                confidence=0.2,
                needs_clarification=True,
                question="Could you say that another way?",
            )
        return self.results.popleft()


class RaisingClassifier:
    async def classify(self, message, history, profile) -> IntentResult:
        raise RuntimeError("classifier exploded")


class StubScraper:
    def __init__(self, result: ProfileUpdate | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.urls: List[str] = []

    async def scrape_profile_from_url(self, url: str) -> ProfileUpdate:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.result or ProfileUpdate()


class FlakyHistoryStore(ConversationStore):
    """Conversation store whose reads or writes can be switched to fail."""

    def __init__(self, *, fail_reads: bool = False, fail_writes: bool = False) -> None:
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def append(self, turn: ConversationTurn) -> None:
        if self.fail_writes:
            raise StorageError(reason="history database unavailable")
        await super().append(turn)

    async def recent(self, user_id: str, limit: int) -> List[ConversationTurn]:
        if self.fail_reads:
            raise StorageError(reason="history database unavailable")
        return await super().recent(user_id, limit)


async def seed_profile(services: AssistantServices, user_id: str = USER_ID, **fields: Any) -> BusinessProfile:
    data = {"business_name": "Acme Plumbing", "industry": "Plumbing", **fields}
    return await services.profile_store.create_profile(user_id, ProfileUpdate.model_validate(data))


@pytest.fixture
def settings() -> Settings:
    """Default settings for tests: no LLM, rule-based classifier."""
    return Settings(openai_api_key="", use_langchain=False)


@pytest.fixture
def metrics() -> MetricsService:
    return MetricsService()


@pytest.fixture
def classifier() -> ScriptedClassifier:
    return ScriptedClassifier()


@pytest.fixture
def scraper() -> StubScraper:
    return StubScraper(ProfileUpdate(business_name="Acme Plumbing", industry="Plumbing"))


@pytest.fixture
def services(
    settings: Settings,
    classifier: ScriptedClassifier,
    scraper: StubScraper,
    metrics: MetricsService,
) -> AssistantServices:
    """Fully wired in-memory services driven by a scripted classifier."""
    return build_services(settings, classifier=classifier, scraper=scraper, metrics=metrics)


@pytest.fixture
def rule_services(settings: Settings, scraper: StubScraper, metrics: MetricsService) -> AssistantServices:
    """Fully wired in-memory services using the YAML rule classifier."""
    return build_services(settings, scraper=scraper, metrics=metrics)


@pytest.fixture
def dispatcher(services: AssistantServices, metrics: MetricsService) -> ActionDispatcher:
    return ActionDispatcher(
        profile_store=services.profile_store,
        pages=services.website,
        legal_pages=services.website,
        analytics=services.analytics,
        suggestions=services.suggestions,
        billing=services.billing,
        action_queue=services.action_queue,
        flow_inferencer=FlowStateInferencer(),
        metrics=metrics,
    )
