"""Proactive suggestions: aha moment, profile gaps, goals and SEO opportunities.

Generated suggestions are stored per user. A candidate whose text was already
suggested inside the dedup window is not generated again, and stored
suggestions stay "open" for the same window until marked used.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Dict, List, Optional, Set

from ..models import (
    BusinessProfile,
    SeoInsight,
    SeoOpportunity,
    Suggestion,
    SuggestionCategory,
    SuggestionMetadata,
    SuggestionPriority,
)
from .interfaces import LegalPageService, ProfileStore

logger = logging.getLogger(__name__)

AHA_WINDOW = timedelta(minutes=5)
ELIGIBLE_OPPORTUNITY_STATUSES = {"open", "approved"}

AHA_MOMENT_TEXT = "Awesome news! Your profile's set. Want me to generate 3 social post ideas now?"
LEGAL_PAGES_TEXT = (
    "I noticed your website doesn't have a Privacy Policy or Terms of Service yet. These pages "
    "are important for building trust and legal compliance. Would you like me to add them?"
)
GOAL_TEXTS = (
    (
        "Ready to establish your online presence? I can create a professional website for your business.",
        SuggestionPriority.HIGH,
    ),
    (
        "Want to attract more customers? I can help you create blog content that showcases your expertise.",
        SuggestionPriority.MEDIUM,
    ),
    (
        "Let's grow your social media presence! I can create engaging posts for your business.",
        SuggestionPriority.MEDIUM,
    ),
)

_PRIORITY_ORDER = {
    SuggestionPriority.HIGH: 0,
    SuggestionPriority.MEDIUM: 1,
    SuggestionPriority.LOW: 2,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _short_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def profile_gaps(profile: BusinessProfile) -> List[str]:
    gaps: List[str] = []
    if not profile.hours:
        gaps.append("business hours")
    if not profile.contact_info.phone or not profile.contact_info.email:
        gaps.append("complete contact information")
    if not profile.services:
        gaps.append("detailed services information")
    if not profile.target_audience.strip():
        gaps.append("target audience description")
    return gaps


def infer_page_type(opportunity: SeoOpportunity) -> str:
    """Guess which kind of page an opportunity asks for from its wording."""

    title = opportunity.title.lower()
    description = opportunity.description.lower()
    if "faq" in title or "faq" in description or "question" in description:
        return "faq"
    if "testimonial" in title or "review" in title or "review" in description:
        return "testimonial"
    if "blog" in title or "content" in title or "post" in title:
        return "blog"
    return "page"


def format_opportunity(opportunity: SeoOpportunity) -> Optional[str]:
    if not opportunity.title and not opportunity.description:
        return None
    title = opportunity.title or "SEO improvement opportunity"
    description = f"{opportunity.description} " if opportunity.description else ""
    lowered = title.lower()
    if "faq" in lowered:
        return (
            f"I noticed an SEO opportunity: {title}. {description}"
            "Would you like me to create an FAQ page for your website?"
        )
    if "testimonial" in lowered or "review" in lowered:
        return (
            f"Here's an SEO opportunity: {title}. {description}"
            "Would you like me to add a testimonials section to your website?"
        )
    if "blog" in lowered or "content" in lowered:
        return (
            f"I found an SEO opportunity: {title}. {description}"
            "Would you like me to write a blog post about this?"
        )
    return (
        f"I discovered an SEO opportunity: {title}. {description}"
        "Would you like me to help you implement this?"
    )


def format_insight(insight: SeoInsight) -> Optional[str]:
    if not insight.keyword:
        return None
    competitor = insight.competitor_name or "a competitor"
    return (
        f'I learned that {competitor} ranks for "{insight.keyword}". '
        "Would you like me to create content targeting this keyword?"
    )


class SuggestionEngine:
    def __init__(
        self,
        profile_store: ProfileStore,
        legal_pages: LegalPageService | None = None,
        *,
        dedup_hours: int = 24,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._profile_store = profile_store
        self._legal_pages = legal_pages
        self._dedup_window = timedelta(hours=dedup_hours)
        self._clock = clock
        self._lock = Lock()
        self._suggestions: Dict[str, List[Suggestion]] = {}
        self._used: Dict[str, Set[str]] = {}
        self._opportunities: Dict[str, List[SeoOpportunity]] = {}
        self._insights: Dict[str, List[SeoInsight]] = {}

    # -------------------------------------------------------------------------
    # SEO inputs
    # -------------------------------------------------------------------------
    def add_seo_opportunity(self, user_id: str, opportunity: SeoOpportunity) -> None:
        with self._lock:
            self._opportunities.setdefault(user_id, []).append(opportunity)

    def add_seo_insight(self, user_id: str, insight: SeoInsight) -> None:
        with self._lock:
            self._insights.setdefault(user_id, []).append(insight)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------
    def _recent(self, user_id: str) -> List[Suggestion]:
        cutoff = self._clock() - self._dedup_window
        with self._lock:
            return [item for item in self._suggestions.get(user_id, []) if item.created_at >= cutoff]

    def _aha_moment(self, profile: BusinessProfile, now: datetime) -> List[Suggestion]:
        if now - profile.updated_at >= AHA_WINDOW:
            return []
        return [
            Suggestion(
                id=_short_id("aha"),
                text=AHA_MOMENT_TEXT,
                category=SuggestionCategory.AHA_MOMENT,
                priority=SuggestionPriority.HIGH,
                created_at=now,
            )
        ]

    def _gap_analysis(self, profile: BusinessProfile, now: datetime) -> List[Suggestion]:
        gaps = profile_gaps(profile)
        if not gaps:
            return []
        return [
            Suggestion(
                id=_short_id("gap"),
                text=f"I noticed you're missing {' and '.join(gaps)}. "
                "Would you like me to help you add that information?",
                category=SuggestionCategory.GAP_ANALYSIS,
                created_at=now,
            )
        ]

    async def _legal_pages_gap(self, user_id: str, now: datetime) -> List[Suggestion]:
        if self._legal_pages is None:
            return []
        try:
            has_pages = await self._legal_pages.has_legal_pages(user_id)
        except Exception:
            logger.warning("suggestions.legal_check_failed user_id=%s", user_id, exc_info=True)
            return []
        if has_pages:
            return []
        return [
            Suggestion(
                id=_short_id("legal_pages"),
                text=LEGAL_PAGES_TEXT,
                category=SuggestionCategory.GAP_ANALYSIS,
                created_at=now,
                metadata=SuggestionMetadata(page_type="legal"),
            )
        ]

    def _goal_framing(self, now: datetime) -> List[Suggestion]:
        return [
            Suggestion(
                id=_short_id("goal"),
                text=text,
                category=SuggestionCategory.GOAL_FRAMING,
                priority=priority,
                created_at=now,
            )
            for text, priority in GOAL_TEXTS
        ]

    def _seo(self, user_id: str, now: datetime) -> List[Suggestion]:
        with self._lock:
            opportunities = list(self._opportunities.get(user_id, []))
            insights = list(self._insights.get(user_id, []))
        suggestions: List[Suggestion] = []
        for opportunity in reversed(opportunities):
            if opportunity.status not in ELIGIBLE_OPPORTUNITY_STATUSES:
                continue
            text = format_opportunity(opportunity)
            if not text:
                continue
            suggestions.append(
                Suggestion(
                    id=f"seo_opp_{opportunity.id}",
                    text=text,
                    category=SuggestionCategory.SEO_OPPORTUNITY,
                    priority=(
                        SuggestionPriority.HIGH
                        if opportunity.priority == SuggestionPriority.HIGH
                        else SuggestionPriority.MEDIUM
                    ),
                    created_at=now,
                    metadata=SuggestionMetadata(
                        seo_opportunity_id=opportunity.id,
                        page_type=infer_page_type(opportunity),
                        keyword=opportunity.keyword,
                    ),
                )
            )
        for insight in reversed(insights):
            text = format_insight(insight)
            if not text:
                continue
            suggestions.append(
                Suggestion(
                    id=f"seo_insight_{insight.id}",
                    text=text,
                    category=SuggestionCategory.SEO_OPPORTUNITY,
                    created_at=now,
                    metadata=SuggestionMetadata(
                        seo_insight_id=insight.id,
                        page_type="blog",
                        keyword=insight.keyword,
                    ),
                )
            )
        return suggestions

    async def generate(
        self,
        user_id: str,
        profile: Optional[BusinessProfile] = None,
    ) -> List[Suggestion]:
        """Generate and store new suggestions, skipping texts seen within the dedup window."""

        if profile is None:
            profile = await self._profile_store.get_profile(user_id)
        if profile is None:
            return []

        now = self._clock()
        recent_texts = {item.text for item in self._recent(user_id)}

        def fresh(candidates: List[Suggestion], limit: int) -> List[Suggestion]:
            return [item for item in candidates if item.text not in recent_texts][:limit]

        suggestions: List[Suggestion] = []
        suggestions.extend(fresh(self._aha_moment(profile, now), 1))
        suggestions.extend(fresh(self._gap_analysis(profile, now), 2))
        suggestions.extend(fresh(await self._legal_pages_gap(user_id, now), 1))
        suggestions.extend(fresh(self._goal_framing(now), 2))
        suggestions.extend(fresh(self._seo(user_id, now), 2))

        if suggestions:
            with self._lock:
                self._suggestions.setdefault(user_id, []).extend(suggestions)
            logger.info("suggestions.generated user_id=%s count=%d", user_id, len(suggestions))
        return suggestions

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    async def get_open_suggestions(self, user_id: str) -> List[Suggestion]:
        """Actionable suggestions from the dedup window that have not been used, best first."""

        await self.generate(user_id)
        with self._lock:
            used = set(self._used.get(user_id, ()))
        open_items = [
            item for item in self._recent(user_id) if item.actionable and item.id not in used
        ]
        return sorted(open_items, key=lambda item: _PRIORITY_ORDER[item.priority])

    async def mark_suggestion_used(self, user_id: str, suggestion_id: str) -> None:
        with self._lock:
            self._used.setdefault(user_id, set()).add(suggestion_id)
            for opportunity in self._opportunities.get(user_id, []):
                if suggestion_id == f"seo_opp_{opportunity.id}":
                    opportunity.status = "completed"
        logger.info("suggestions.used user_id=%s suggestion_id=%s", user_id, suggestion_id)
