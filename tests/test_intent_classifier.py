from __future__ import annotations

import pytest
from langchain_core.language_models import FakeListChatModel

from growth_assistant.config import Settings
from growth_assistant.intents import IntentType, parse_intent
from growth_assistant.services.intent_classifier import (
    LangchainIntentClassifier,
    build_intent_classifier,
    parse_intent_payload,
)
from growth_assistant.services.metrics import MetricsService
from growth_assistant.services.response_helpers import DEFAULT_CLARIFICATION_QUESTION
from growth_assistant.services.rule_classifier import RuleBasedIntentClassifier

from conftest import assistant_turn, user_turn


def test_parse_payload_in_code_fence() -> None:
    raw = '```json\n{"intent": "RENAME_PAGE", "entities": {"pageSlug": "about", "newTitle": "Our Story"}, "confidence": 0.82}\n```'

    result = parse_intent_payload(raw)

    assert result.intent == IntentType.RENAME_PAGE
    assert result.entities.slug == "about"
    assert result.entities.new_title == "Our Story"
    assert result.confidence == pytest.approx(0.82)


def test_parse_payload_normalises_intent_tag() -> None:
    result = parse_intent_payload(
        {"intent": "delete-page", "entities": {"slug": "/contact", "confirmed": True}, "confidence": 0.9}
    )

    assert result.intent == IntentType.DELETE_PAGE
    assert result.entities.slug == "/contact"
    assert result.entities.confirmed is True


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "",
        None,
        '{"intent": "ORDER_PIZZA", "confidence": 0.9}',
        '{"intent": "GET_ANALYTICS", "confidence": 1.7}',
        '{"intent": "GET_ANALYTICS"}',
        '["GET_ANALYTICS"]',
    ],
)
def test_malformed_payload_degrades_to_unknown(raw) -> None:
    result = parse_intent_payload(raw)

    assert result.intent == IntentType.UNKNOWN
    assert result.needs_clarification
    assert result.clarification_question == DEFAULT_CLARIFICATION_QUESTION
    assert result.confidence == 0.0


def test_clarification_without_question_gets_default() -> None:
    result = parse_intent_payload(
        {"intent": "CREATE_PAGE", "needsClarification": True, "clarificationQuestion": " ", "confidence": 0.4}
    )

    assert result.intent == IntentType.CREATE_PAGE
    assert result.clarification_question == DEFAULT_CLARIFICATION_QUESTION


def test_parse_intent_tags() -> None:
    assert parse_intent("get analytics") == IntentType.GET_ANALYTICS
    assert parse_intent(IntentType.ADD_EMBED) == IntentType.ADD_EMBED
    assert parse_intent("nope") is None
    assert parse_intent(None) is None


@pytest.mark.asyncio
async def test_langchain_classifier_parses_model_reply() -> None:
    llm = FakeListChatModel(
        responses=['{"intent": "ADD_EMBED", "entities": {"page": "contact"}, "confidence": 0.88}']
    )
    classifier = LangchainIntentClassifier(Settings(openai_api_key=""), llm=llm, metrics=MetricsService())

    result = await classifier.classify("put the calendar on the contact page", [], None)

    assert result.intent == IntentType.ADD_EMBED
    assert result.entities.page == "contact"


@pytest.mark.asyncio
async def test_langchain_classifier_unparseable_reply() -> None:
    metrics = MetricsService()
    llm = FakeListChatModel(responses=["Sure! The user wants analytics."])
    classifier = LangchainIntentClassifier(Settings(openai_api_key=""), llm=llm, metrics=metrics)

    result = await classifier.classify("how many visitors?", [], None)

    assert result.intent == IntentType.UNKNOWN
    assert result.needs_clarification
    assert metrics.snapshot().classifier_fallbacks == 1


def test_prompt_payload_includes_last_assistant_turn() -> None:
    llm = FakeListChatModel(responses=["{}"])
    settings = Settings(openai_api_key="", classifier_history_limit=1)
    classifier = LangchainIntentClassifier(settings, llm=llm, metrics=MetricsService())
    history = [user_turn("delete the contact page"), assistant_turn("Please confirm the delete")]

    payload = classifier._build_payload("yes", history, None)

    assert "Please confirm the delete" in payload["last_assistant_context"]
    assert payload["history"] == "assistant: Please confirm the delete"
    assert "No business profile" in payload["profile_context"]


def test_langchain_mode_requires_api_key() -> None:
    with pytest.raises(ValueError):
        LangchainIntentClassifier(Settings(openai_api_key=""))


def test_rules_used_without_api_key(settings) -> None:
    assert isinstance(build_intent_classifier(settings), RuleBasedIntentClassifier)
