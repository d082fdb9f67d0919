from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Sequence

from ..models import (
    AnalyticsSummary,
    BusinessProfile,
    EmbedResult,
    PageDiff,
    PageGenerationOptions,
    PageSection,
    PageSummary,
    WebsitePage,
)
from .errors import (
    AnalyticsUnavailableError,
    OperationNotAllowedError,
    PageNotFoundError,
    QuotaExceededError,
    ValidationError,
)
from .text_extraction import normalize_page_key, slugify

logger = logging.getLogger(__name__)

DEFAULT_PAGES = ("Home", "About", "Services", "Contact")

LEGAL_DISCLAIMER = (
    "**IMPORTANT LEGAL DISCLAIMER**\n\nThis document is a template and is not legal advice. "
    "Please consult with a legal professional to ensure it meets your specific needs.\n\n---\n\n"
)
PRIVACY_POLICY_TEMPLATE = (
    "# Privacy Policy\n\nLast Updated: {date}\n\n"
    "{business_name} respects your privacy. This policy explains what personal information we "
    "collect when you visit our website or use our services, how we use it, and the choices you have.\n\n"
    "## Contact\n\nQuestions about this policy can be sent to {email}."
)
TERMS_OF_SERVICE_TEMPLATE = (
    "# Terms of Service\n\nLast Updated: {date}\n\n"
    "By using the {business_name} website you agree to these terms. Services are provided as "
    "described on this site and may change without notice.\n\n"
    "## Contact\n\nQuestions about these terms can be sent to {email}."
)
LEGAL_SLUGS = ("privacy-policy", "terms-of-service")


@dataclass
class _Website:
    user_id: str
    pages: List[WebsitePage] = field(default_factory=list)
    footer_links: List[str] = field(default_factory=list)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _new_id() -> str:
    return uuid.uuid4().hex


def _labels(pages: Sequence[WebsitePage]) -> List[str]:
    return [PageSummary(slug=page.slug, title=page.title).label for page in pages]


def unique_slug(pages: Sequence[WebsitePage], title: str) -> str:
    base = slugify(title)
    existing = {page.slug for page in pages}
    candidate = base
    suffix = 2
    while candidate in existing:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def _populate_legal_template(template: str, profile: BusinessProfile) -> str:
    today = date.today().strftime("%B %d, %Y")
    email = profile.contact_info.email or "the email address listed on our website"
    return LEGAL_DISCLAIMER + template.format(
        date=today, business_name=profile.business_name, email=email
    )


class InMemoryWebsiteService:
    """Draft websites kept in memory: pages, legal pages and embeds.

    A user's website is created lazily with ``default_pages`` on first access.
    """

    def __init__(
        self,
        *,
        max_pages: int = 10,
        default_pages: Sequence[str] = DEFAULT_PAGES,
    ) -> None:
        self._max_pages = max_pages
        self._default_pages = tuple(default_pages)
        self._websites: Dict[str, _Website] = {}
        self._lock = Lock()

    # -------------------------------------------------------------------------
    # Generic helpers
    # -------------------------------------------------------------------------
    def _ensure_website(self, user_id: str) -> _Website:
        website = self._websites.get(user_id)
        if website is None:
            website = _Website(user_id=user_id)
            for title in self._default_pages:
                website.pages.append(
                    WebsitePage(id=_new_id(), slug=unique_slug(website.pages, title), title=title)
                )
            self._websites[user_id] = website
        return website

    def _find_page(self, website: _Website, slug: str) -> Optional[WebsitePage]:
        key = normalize_page_key(slug)
        for page in website.pages:
            if page.slug == key:
                return page
        return None

    def get_page(self, user_id: str, slug: str) -> Optional[WebsitePage]:
        with self._lock:
            page = self._find_page(self._ensure_website(user_id), slug)
            return page.model_copy(deep=True) if page else None

    def set_pages(self, user_id: str, titles: Sequence[str]) -> None:
        """Replace a user's pages, used to seed fixtures."""
        with self._lock:
            website = self._ensure_website(user_id)
            website.pages = []
            for title in titles:
                website.pages.append(
                    WebsitePage(id=_new_id(), slug=unique_slug(website.pages, title), title=title)
                )

    # -------------------------------------------------------------------------
    # Page operations
    # -------------------------------------------------------------------------
    async def list_pages(self, user_id: str) -> List[PageSummary]:
        with self._lock:
            website = self._ensure_website(user_id)
            return [PageSummary(slug=page.slug, title=page.title) for page in website.pages]

    async def create_page(
        self,
        user_id: str,
        title: str,
        profile: BusinessProfile,
        options: Optional[PageGenerationOptions] = None,
    ) -> PageDiff:
        if not title.strip():
            raise ValidationError(reason="a page needs a title")
        with self._lock:
            website = self._ensure_website(user_id)
            if len(website.pages) >= self._max_pages:
                raise QuotaExceededError(
                    reason=f"You have reached your plan limit of {self._max_pages} pages."
                )
            before = _labels(website.pages)
            page = self._generate_page(website.pages, title.strip(), profile, options)
            website.pages.append(page)
            website.updated_at = datetime.now(timezone.utc)
            after = _labels(website.pages)
        logger.info(
            "website.page_created user_id=%s slug=%s schema=%s", user_id, page.slug, page.schema_type
        )
        return PageDiff(before=before, after=after)

    def _generate_page(
        self,
        pages: Sequence[WebsitePage],
        title: str,
        profile: BusinessProfile,
        options: Optional[PageGenerationOptions],
    ) -> WebsitePage:
        options = options or PageGenerationOptions()
        intro = f"{title} | {profile.business_name}"
        if options.keyword:
            intro += f"\n\nEverything you need to know about {options.keyword}."
        sections = [PageSection(id=_new_id(), type="text", content=intro)]
        if options.additional_context:
            sections.append(PageSection(id=_new_id(), type="text", content=options.additional_context))
        return WebsitePage(
            id=_new_id(),
            slug=unique_slug(pages, title),
            title=title,
            schema_type=options.schema_type,
            sections=sections,
        )

    async def rename_page(self, user_id: str, slug: str, new_title: str) -> PageDiff:
        if not new_title.strip():
            raise ValidationError(reason="the new title can't be empty")
        with self._lock:
            website = self._ensure_website(user_id)
            page = self._find_page(website, slug)
            if page is None:
                raise PageNotFoundError(reason=f'Page with slug "{slug}" not found')
            before = _labels(website.pages)
            page.title = new_title.strip()
            website.updated_at = datetime.now(timezone.utc)
            after = _labels(website.pages)
        return PageDiff(before=before, after=after)

    async def delete_page(self, user_id: str, slug: str) -> PageDiff:
        with self._lock:
            website = self._ensure_website(user_id)
            page = self._find_page(website, slug)
            if page is None:
                raise PageNotFoundError(reason=f'Page with slug "{slug}" not found')
            if len(website.pages) <= 1:
                raise OperationNotAllowedError(reason="You cannot delete the last remaining page.")
            before = _labels(website.pages)
            website.pages = [item for item in website.pages if item.slug != page.slug]
            website.updated_at = datetime.now(timezone.utc)
            after = _labels(website.pages)
        logger.info("website.page_deleted user_id=%s slug=%s", user_id, page.slug)
        return PageDiff(before=before, after=after)

    async def add_embed(self, user_id: str, slug: str, html: str) -> EmbedResult:
        if not html or not html.strip():
            raise ValidationError(reason="HTML embed code is required")
        with self._lock:
            website = self._ensure_website(user_id)
            page = self._find_page(website, slug)
            if page is None:
                raise PageNotFoundError(reason=f'Page with slug "{slug}" not found')
            section = PageSection(id=_new_id(), type="embed", content=html.strip())
            page.sections.append(section)
            website.updated_at = datetime.now(timezone.utc)
        return EmbedResult(page_title=page.title, section_id=section.id)

    # -------------------------------------------------------------------------
    # Legal pages
    # -------------------------------------------------------------------------
    async def has_legal_pages(self, user_id: str) -> bool:
        with self._lock:
            website = self._ensure_website(user_id)
            slugs = {page.slug for page in website.pages}
            return all(slug in slugs for slug in LEGAL_SLUGS)

    async def generate_legal_pages(self, user_id: str, profile: BusinessProfile) -> None:
        """Add or refresh the privacy policy and terms pages and link them in the footer."""

        documents = {
            "privacy-policy": ("Privacy Policy", PRIVACY_POLICY_TEMPLATE),
            "terms-of-service": ("Terms of Service", TERMS_OF_SERVICE_TEMPLATE),
        }
        with self._lock:
            website = self._ensure_website(user_id)
            for slug, (title, template) in documents.items():
                content = _populate_legal_template(template, profile)
                page = self._find_page(website, slug)
                if page is None:
                    website.pages.append(
                        WebsitePage(
                            id=_new_id(),
                            slug=slug,
                            title=title,
                            sections=[PageSection(id=_new_id(), type="text", content=content)],
                        )
                    )
                else:
                    page.sections = [PageSection(id=_new_id(), type="text", content=content)]
                if slug not in website.footer_links:
                    website.footer_links.append(slug)
            website.updated_at = datetime.now(timezone.utc)
        logger.info("website.legal_pages_generated user_id=%s", user_id)


class InMemoryAnalyticsService:
    """Analytics summaries set per user; users without one are treated as unconfigured."""

    def __init__(self) -> None:
        self._summaries: Dict[str, AnalyticsSummary] = {}
        self._lock = Lock()

    def set_summary(self, user_id: str, summary: AnalyticsSummary) -> None:
        with self._lock:
            self._summaries[user_id] = summary

    async def get_analytics_summary(self, user_id: str) -> AnalyticsSummary:
        with self._lock:
            summary = self._summaries.get(user_id)
        if summary is None:
            raise AnalyticsUnavailableError(
                reason="analytics aren't connected yet, and your website needs to be published first"
            )
        return summary


@dataclass
class Subscription:
    plan: str
    status: str  # trialing, active, canceled, past_due
    renews_on: Optional[date] = None
    trial_ends_on: Optional[date] = None


class StaticBillingAssistant:
    """Answers billing questions from the subscription record without an LLM."""

    PORTAL_HINT = (
        "You can update your payment method, view invoices, or cancel any time with the "
        "\"Manage Billing\" button in your dashboard."
    )

    def __init__(self) -> None:
        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = Lock()

    def set_subscription(self, user_id: str, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions[user_id] = subscription

    async def handle_billing_question(self, user_id: str, message: str) -> str:
        with self._lock:
            subscription = self._subscriptions.get(user_id)
        if subscription is None:
            return f"I don't see an active subscription on your account yet. {self.PORTAL_HINT}"

        lowered = message.lower()
        if "trial" in lowered and subscription.trial_ends_on:
            answer = (
                f"Your free trial of the {subscription.plan} plan ends on "
                f"{subscription.trial_ends_on:%B %d, %Y}. After that your subscription starts automatically."
            )
        elif any(word in lowered for word in ("renew", "next bill", "charged", "invoice")) and subscription.renews_on:
            answer = f"Your {subscription.plan} plan renews on {subscription.renews_on:%B %d, %Y}."
        else:
            answer = f"You're on the {subscription.plan} plan and your subscription is {subscription.status}."
        return f"{answer} {self.PORTAL_HINT}"
