from __future__ import annotations

import logging
from enum import StrEnum

from .errors import AssistantError
from .interfaces import ProfileScraper, ProfileStore
from .metrics import MetricsService, get_metrics_service
from .response_helpers import (
    ONBOARDING_ASK_WEBSITE,
    ONBOARDING_MANUAL_SETUP,
    ONBOARDING_PROFILE_CREATED,
    ONBOARDING_SCRAPE_FAILED,
)
from .text_extraction import find_url

logger = logging.getLogger(__name__)

_BUSINESS_WORDS = ("business", "company")


class OnboardingOutcome(StrEnum):
    PROFILE_CREATED = "profile_created"
    SCRAPE_FAILED = "scrape_failed"
    NO_BUSINESS_NAME = "no_business_name"
    ASKED_FOR_WEBSITE = "asked_for_website"
    MANUAL_SETUP = "manual_setup"


class OnboardingGate:
    """First contact for users without a profile. Every call produces exactly one reply."""

    def __init__(
        self,
        profile_store: ProfileStore,
        scraper: ProfileScraper,
        *,
        metrics: MetricsService | None = None,
    ) -> None:
        self._profile_store = profile_store
        self._scraper = scraper
        self._metrics = metrics or get_metrics_service()

    async def handle(self, user_id: str, message: str) -> str:
        outcome, reply = await self._resolve(user_id, message)
        self._metrics.record_onboarding(outcome.value)
        logger.info("onboarding.outcome user_id=%s outcome=%s", user_id, outcome.value)
        return reply

    async def _resolve(self, user_id: str, message: str) -> tuple[OnboardingOutcome, str]:
        url = find_url(message)
        if url:
            try:
                scraped = await self._scraper.scrape_profile_from_url(url)
            except AssistantError as exc:
                logger.warning("onboarding.scrape_failed url=%s reason=%s", url, exc.reason)
                return OnboardingOutcome.SCRAPE_FAILED, ONBOARDING_SCRAPE_FAILED
            except Exception:
                logger.exception("onboarding.scrape_failed url=%s", url)
                return OnboardingOutcome.SCRAPE_FAILED, ONBOARDING_SCRAPE_FAILED

            if not (scraped.business_name and scraped.business_name.strip()):
                return OnboardingOutcome.NO_BUSINESS_NAME, ONBOARDING_MANUAL_SETUP

            try:
                profile = await self._profile_store.create_profile(user_id, scraped)
            except AssistantError as exc:
                logger.warning("onboarding.create_failed user_id=%s reason=%s", user_id, exc.reason)
                return OnboardingOutcome.SCRAPE_FAILED, ONBOARDING_SCRAPE_FAILED
            except Exception:
                logger.exception("onboarding.create_failed user_id=%s", user_id)
                return OnboardingOutcome.SCRAPE_FAILED, ONBOARDING_SCRAPE_FAILED
            return (
                OnboardingOutcome.PROFILE_CREATED,
                ONBOARDING_PROFILE_CREATED.format(business_name=profile.business_name),
            )

        lowered = message.lower()
        if not any(word in lowered for word in _BUSINESS_WORDS):
            return OnboardingOutcome.ASKED_FOR_WEBSITE, ONBOARDING_ASK_WEBSITE
        return OnboardingOutcome.MANUAL_SETUP, ONBOARDING_MANUAL_SETUP
