"""Collaborator contracts consumed by the conversation pipeline.

Every implementation is injected through constructors; the in-memory
versions in this package satisfy these protocols and back the dev server
and the tests.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from ..models import (
    AnalyticsSummary,
    BusinessProfile,
    ConversationTurn,
    EmbedResult,
    IntentResult,
    PageDiff,
    PageGenerationOptions,
    PageSummary,
    ProfileUpdate,
    Suggestion,
)


class IntentClassifier(Protocol):
    async def classify(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        profile: Optional[BusinessProfile],
    ) -> IntentResult: ...


class ProfileStore(Protocol):
    async def get_profile(self, user_id: str) -> Optional[BusinessProfile]: ...

    async def create_profile(self, user_id: str, data: ProfileUpdate) -> BusinessProfile: ...

    async def update_profile(self, user_id: str, update: ProfileUpdate) -> BusinessProfile: ...


class HistoryStore(Protocol):
    """Raw turn storage. ``recent`` returns newest first."""

    async def append(self, turn: ConversationTurn) -> None: ...

    async def recent(self, user_id: str, limit: int) -> List[ConversationTurn]: ...


class ProfileScraper(Protocol):
    async def scrape_profile_from_url(self, url: str) -> ProfileUpdate: ...


class PageService(Protocol):
    async def list_pages(self, user_id: str) -> List[PageSummary]: ...

    async def create_page(
        self,
        user_id: str,
        title: str,
        profile: BusinessProfile,
        options: Optional[PageGenerationOptions] = None,
    ) -> PageDiff: ...

    async def rename_page(self, user_id: str, slug: str, new_title: str) -> PageDiff: ...

    async def delete_page(self, user_id: str, slug: str) -> PageDiff: ...

    async def add_embed(self, user_id: str, slug: str, html: str) -> EmbedResult: ...


class LegalPageService(Protocol):
    async def generate_legal_pages(self, user_id: str, profile: BusinessProfile) -> None: ...

    async def has_legal_pages(self, user_id: str) -> bool: ...


class AnalyticsService(Protocol):
    async def get_analytics_summary(self, user_id: str) -> AnalyticsSummary: ...


class SuggestionService(Protocol):
    async def get_open_suggestions(self, user_id: str) -> List[Suggestion]: ...

    async def mark_suggestion_used(self, user_id: str, suggestion_id: str) -> None: ...


class BillingAssistant(Protocol):
    async def handle_billing_question(self, user_id: str, message: str) -> str: ...
