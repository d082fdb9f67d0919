from __future__ import annotations

import asyncio

import pytest

from growth_assistant.intents import IntentType
from growth_assistant.models import FlowMarker, FlowStep, ProfileUpdate, SeoOpportunity
from growth_assistant.services.container import build_services
from growth_assistant.services.errors import ScrapeError
from growth_assistant.services.response_helpers import (
    CLASSIFIER_FAILURE_QUESTION,
    CONFIRM_DELETE,
    DEFAULT_CLARIFICATION_QUESTION,
    FAQ_DETAILS_QUESTION,
    FATAL_FALLBACK_REPLY,
    ONBOARDING_ASK_WEBSITE,
    ONBOARDING_MANUAL_SETUP,
    ONBOARDING_PROFILE_CREATED,
    ONBOARDING_SCRAPE_FAILED,
)

from conftest import (
    USER_ID,
    FlakyHistoryStore,
    RaisingClassifier,
    ScriptedClassifier,
    StubScraper,
    make_result,
    seed_profile,
)


async def _history(services, user_id: str = USER_ID):
    return await services.history.recent(user_id, 50)


# -------------------------------------------------------------------------
# Onboarding
# -------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_new_user_is_asked_for_website(services, classifier) -> None:
    reply = await services.engine.process_message(USER_ID, "hello")

    assert reply == ONBOARDING_ASK_WEBSITE
    assert classifier.calls == []
    turns = await _history(services)
    assert [turn.role for turn in turns] == ["user", "assistant"]
    assert turns[1].flow == FlowMarker()


@pytest.mark.asyncio
async def test_onboarding_creates_profile_from_website(services, scraper, metrics) -> None:
    reply = await services.engine.process_message(
        USER_ID, "Sure, our site is https://acme.example.com."
    )

    assert reply == ONBOARDING_PROFILE_CREATED.format(business_name="Acme Plumbing")
    assert scraper.urls == ["https://acme.example.com"]
    profile = await services.profile_store.get_profile(USER_ID)
    assert profile.industry == "Plumbing"
    assert metrics.snapshot().onboarding_outcomes == {"profile_created": 1}


@pytest.mark.asyncio
async def test_onboarding_scrape_failure_falls_back_to_manual(settings, classifier, metrics) -> None:
    scraper = StubScraper(error=ScrapeError(reason="Website blocked scraping attempt."))
    services = build_services(settings, classifier=classifier, scraper=scraper, metrics=metrics)

    reply = await services.engine.process_message(USER_ID, "https://blocked.example.com")

    assert reply == ONBOARDING_SCRAPE_FAILED
    assert await services.profile_store.get_profile(USER_ID) is None


@pytest.mark.asyncio
async def test_onboarding_without_business_name(settings, classifier, metrics) -> None:
    scraper = StubScraper(ProfileUpdate(industry="Plumbing"))
    services = build_services(settings, classifier=classifier, scraper=scraper, metrics=metrics)

    reply = await services.engine.process_message(USER_ID, "https://acme.example.com")

    assert reply == ONBOARDING_MANUAL_SETUP
    assert await services.profile_store.get_profile(USER_ID) is None


@pytest.mark.asyncio
async def test_onboarding_business_mention_without_url(services, scraper) -> None:
    reply = await services.engine.process_message(USER_ID, "I run a small bakery business")

    assert reply == ONBOARDING_MANUAL_SETUP
    assert scraper.urls == []


# -------------------------------------------------------------------------
# Classification gate
# -------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_low_confidence_asks_default_question(services, classifier, metrics) -> None:
    await seed_profile(services)
    classifier.push(make_result(IntentType.CREATE_PAGE, {"title": "Pricing"}, confidence=0.3))

    reply = await services.engine.process_message(USER_ID, "pricing maybe")

    assert reply == DEFAULT_CLARIFICATION_QUESTION
    assert "pricing" not in [page.slug for page in await services.website.list_pages(USER_ID)]
    assert metrics.snapshot().clarifications == 1


@pytest.mark.asyncio
async def test_clarification_question_from_classifier(services, classifier) -> None:
    await seed_profile(services)
    classifier.push(
        make_result(
            IntentType.UNKNOWN,
            confidence=0.8,
            needs_clarification=True,
            question="Do you mean your website or your profile?",
        )
    )

    reply = await services.engine.process_message(USER_ID, "update it")

    assert reply == "Do you mean your website or your profile?"


@pytest.mark.asyncio
async def test_classifier_exception_degrades_to_question(settings, scraper, metrics) -> None:
    services = build_services(
        settings, classifier=RaisingClassifier(), scraper=scraper, metrics=metrics
    )
    await seed_profile(services)

    reply = await services.engine.process_message(USER_ID, "make me a page")

    assert reply == CLASSIFIER_FAILURE_QUESTION
    assert metrics.snapshot().classifier_fallbacks == 1
    assert len(await _history(services)) == 2


@pytest.mark.asyncio
async def test_classifier_sees_history_and_profile(services, classifier) -> None:
    await seed_profile(services)
    await services.engine.process_message(USER_ID, "first")
    await services.engine.process_message(USER_ID, "second")

    message, history, profile = classifier.calls[-1]
    assert message == "second"
    assert [turn.content for turn in history][0] == "first"
    assert len(history) == 2
    assert profile.business_name == "Acme Plumbing"


# -------------------------------------------------------------------------
# Turn logging
# -------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_flow_marker_is_stored_on_assistant_turn(services, classifier) -> None:
    await seed_profile(services)
    classifier.push(make_result(IntentType.DELETE_PAGE, {"slug": "contact"}))

    reply = await services.engine.process_message(USER_ID, "delete the contact page")

    assert reply == CONFIRM_DELETE.format(title="Contact", slug="contact")
    assistant = (await _history(services))[-1]
    assert assistant.role == "assistant"
    assert assistant.flow.awaiting == FlowStep.DELETE_CONFIRMATION


@pytest.mark.asyncio
async def test_pipeline_failure_still_logs_pair(services, metrics, monkeypatch) -> None:
    async def broken_get_profile(user_id):
        raise RuntimeError("profile database down")

    monkeypatch.setattr(services.profile_store, "get_profile", broken_get_profile)

    reply = await services.engine.process_message(USER_ID, "hi there")

    assert reply == FATAL_FALLBACK_REPLY
    turns = await _history(services)
    assert [(turn.role, turn.content) for turn in turns] == [
        ("user", "hi there"),
        ("assistant", FATAL_FALLBACK_REPLY),
    ]
    assert metrics.snapshot().fatal_errors == 1


@pytest.mark.asyncio
async def test_history_read_failure_returns_fallback(settings, classifier, scraper, metrics) -> None:
    store = FlakyHistoryStore(fail_reads=True)
    services = build_services(
        settings, classifier=classifier, scraper=scraper, history_store=store, metrics=metrics
    )

    reply = await services.engine.process_message(USER_ID, "hello")

    assert reply == FATAL_FALLBACK_REPLY
    assert store.count(USER_ID) == 2


@pytest.mark.asyncio
async def test_history_write_failure_does_not_block_reply(settings, classifier, scraper, metrics) -> None:
    store = FlakyHistoryStore(fail_writes=True)
    services = build_services(
        settings, classifier=classifier, scraper=scraper, history_store=store, metrics=metrics
    )

    reply = await services.engine.process_message(USER_ID, "hello")

    assert reply == ONBOARDING_ASK_WEBSITE
    assert metrics.snapshot().history_write_failures == 2


# -------------------------------------------------------------------------
# Concurrency
# -------------------------------------------------------------------------
class SlowClassifier(ScriptedClassifier):
    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.max_active = 0

    async def classify(self, message, history, profile):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return await super().classify(message, history, profile)


@pytest.mark.asyncio
async def test_turns_for_one_user_are_serialized(settings, scraper, metrics) -> None:
    classifier = SlowClassifier()
    services = build_services(settings, classifier=classifier, scraper=scraper, metrics=metrics)
    await seed_profile(services)

    await asyncio.gather(
        services.engine.process_message(USER_ID, "one"),
        services.engine.process_message(USER_ID, "two"),
        services.engine.process_message(USER_ID, "three"),
    )

    assert classifier.max_active == 1
    roles = [turn.role for turn in await _history(services)]
    assert roles == ["user", "assistant"] * 3


@pytest.mark.asyncio
async def test_different_users_run_concurrently(settings, scraper, metrics) -> None:
    classifier = SlowClassifier()
    services = build_services(settings, classifier=classifier, scraper=scraper, metrics=metrics)
    await seed_profile(services, "user-a")
    await seed_profile(services, "user-b")

    await asyncio.gather(
        services.engine.process_message("user-a", "hello"),
        services.engine.process_message("user-b", "hello"),
    )

    assert classifier.max_active == 2


# -------------------------------------------------------------------------
# Page suggestions with the rule classifier
# -------------------------------------------------------------------------
async def _offer_faq_page(services) -> None:
    await seed_profile(services)
    services.suggestions.add_seo_opportunity(
        USER_ID, SeoOpportunity(id="faq1", title="Customer FAQ", keyword="plumbing questions")
    )


@pytest.mark.asyncio
async def test_new_request_abandons_open_page_details_question(rule_services) -> None:
    await _offer_faq_page(rule_services)
    engine = rule_services.engine

    assert await engine.process_message(USER_ID, "Yes, let's create the FAQ page") == FAQ_DETAILS_QUESTION
    reply = await engine.process_message(USER_ID, "How many visitors did my website get last month?")

    assert not reply.startswith("Done!")
    slugs = [page.slug for page in await rule_services.website.list_pages(USER_ID)]
    assert "faq" not in slugs


@pytest.mark.asyncio
async def test_bare_yes_accepts_offered_page(rule_services) -> None:
    await _offer_faq_page(rule_services)
    engine = rule_services.engine

    assert await engine.process_message(USER_ID, "yes let's do it") == FAQ_DETAILS_QUESTION
    reply = await engine.process_message(USER_ID, "Do you offer weekend service?")

    assert reply.startswith("Done!")
    assert rule_services.website.get_page(USER_ID, "faq") is not None
