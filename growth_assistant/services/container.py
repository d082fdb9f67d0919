"""Wires the conversation engine to its collaborators.

``build_services`` uses the in-memory implementations for anything not
passed in, so the dev server and the tests run the full pipeline without
external systems.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from langchain_openai import ChatOpenAI

from ..config import Settings, get_settings
from .action_dispatcher import ActionDispatcher
from .action_queue import ActionQueue
from .conversation_store import ConversationStore, HistoryStoreAdapter
from .intent_classifier import build_intent_classifier
from .interfaces import IntentClassifier, ProfileScraper
from .metrics import MetricsService, get_metrics_service
from .mock_platform import InMemoryAnalyticsService, InMemoryWebsiteService, StaticBillingAssistant
from .onboarding import OnboardingGate
from .orchestrator import ConversationEngine
from .profile_store import InMemoryProfileStore
from .scraper import WebsiteProfileScraper
from .session_lock import UserTurnLock
from .suggestion_engine import SuggestionEngine

logger = logging.getLogger(__name__)


@dataclass
class AssistantServices:
    settings: Settings
    engine: ConversationEngine
    history: HistoryStoreAdapter
    profile_store: InMemoryProfileStore
    website: InMemoryWebsiteService
    analytics: InMemoryAnalyticsService
    billing: StaticBillingAssistant
    suggestions: SuggestionEngine
    action_queue: ActionQueue
    metrics: MetricsService


def _default_scraper(settings: Settings) -> WebsiteProfileScraper:
    llm = None
    if settings.use_langchain and settings.openai_api_key:
        llm = ChatOpenAI(
            model=settings.openai_model,
            api_key=settings.openai_api_key,
            temperature=settings.openai_temperature,
            timeout=settings.http_timeout_seconds,
            base_url=settings.openai_base_url,
        )
    return WebsiteProfileScraper(settings, llm=llm)


def build_services(
    settings: Settings | None = None,
    *,
    classifier: IntentClassifier | None = None,
    scraper: ProfileScraper | None = None,
    history_store: ConversationStore | None = None,
    metrics: MetricsService | None = None,
) -> AssistantServices:
    settings = settings or get_settings()
    metrics = metrics or get_metrics_service()
    history = HistoryStoreAdapter(history_store or ConversationStore(), metrics=metrics)
    profile_store = InMemoryProfileStore()
    website = InMemoryWebsiteService(max_pages=settings.max_pages_per_site)
    analytics = InMemoryAnalyticsService()
    billing = StaticBillingAssistant()
    suggestions = SuggestionEngine(
        profile_store,
        website,
        dedup_hours=settings.suggestion_dedup_hours,
    )
    action_queue = ActionQueue()

    dispatcher = ActionDispatcher(
        profile_store=profile_store,
        pages=website,
        legal_pages=website,
        analytics=analytics,
        suggestions=suggestions,
        billing=billing,
        action_queue=action_queue,
        metrics=metrics,
    )
    engine = ConversationEngine(
        settings,
        classifier=classifier or build_intent_classifier(settings, metrics=metrics),
        profile_store=profile_store,
        history=history,
        onboarding=OnboardingGate(
            profile_store,
            scraper or _default_scraper(settings),
            metrics=metrics,
        ),
        dispatcher=dispatcher,
        turn_lock=UserTurnLock(),
        metrics=metrics,
    )
    logger.info("Assistant services built (env=%s)", settings.env)
    return AssistantServices(
        settings=settings,
        engine=engine,
        history=history,
        profile_store=profile_store,
        website=website,
        analytics=analytics,
        billing=billing,
        suggestions=suggestions,
        action_queue=action_queue,
        metrics=metrics,
    )


@lru_cache(maxsize=1)
def get_services() -> AssistantServices:
    return build_services()
