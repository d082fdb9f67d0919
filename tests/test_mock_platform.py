from __future__ import annotations

from datetime import date

import pytest

from growth_assistant.models import AnalyticsSummary, BusinessProfile, ContactInfo, PageGenerationOptions, SchemaType
from growth_assistant.services.errors import (
    AnalyticsUnavailableError,
    OperationNotAllowedError,
    PageNotFoundError,
    QuotaExceededError,
    ValidationError,
)
from growth_assistant.services.mock_platform import (
    LEGAL_DISCLAIMER,
    InMemoryAnalyticsService,
    InMemoryWebsiteService,
    StaticBillingAssistant,
    Subscription,
)

PROFILE = BusinessProfile(
    user_id="u1",
    business_name="Acme Plumbing",
    industry="Plumbing",
    contact_info=ContactInfo(email="hello@acme.com"),
)


@pytest.mark.asyncio
async def test_website_starts_with_default_pages() -> None:
    website = InMemoryWebsiteService()

    pages = await website.list_pages("u1")

    assert [page.slug for page in pages] == ["home", "about", "services", "contact"]
    assert pages[0].label == "Home (/home)"


@pytest.mark.asyncio
async def test_create_page_gets_unique_slug_and_diff() -> None:
    website = InMemoryWebsiteService()

    diff = await website.create_page(
        "u1",
        "Services",
        PROFILE,
        PageGenerationOptions(schema_type=SchemaType.FAQ_PAGE, keyword="drain cleaning"),
    )

    assert len(diff.after) == len(diff.before) + 1
    assert diff.after[-1] == "Services (/services-2)"
    page = website.get_page("u1", "services-2")
    assert page.schema_type == SchemaType.FAQ_PAGE
    assert "drain cleaning" in page.sections[0].content
    assert "Before:" in diff.render()


@pytest.mark.asyncio
async def test_page_quota() -> None:
    website = InMemoryWebsiteService(max_pages=4)

    with pytest.raises(QuotaExceededError):
        await website.create_page("u1", "Gallery", PROFILE)
    assert len(await website.list_pages("u1")) == 4


@pytest.mark.asyncio
async def test_rename_page() -> None:
    website = InMemoryWebsiteService()

    diff = await website.rename_page("u1", "/About", "Our Story")

    assert "Our Story (/about)" in diff.after
    with pytest.raises(PageNotFoundError):
        await website.rename_page("u1", "gallery", "Photos")
    with pytest.raises(ValidationError):
        await website.rename_page("u1", "about", "  ")


@pytest.mark.asyncio
async def test_last_page_cannot_be_deleted() -> None:
    website = InMemoryWebsiteService()
    website.set_pages("u1", ["Home", "Contact"])

    diff = await website.delete_page("u1", "contact")
    assert diff.after == ["Home (/home)"]

    with pytest.raises(OperationNotAllowedError):
        await website.delete_page("u1", "home")
    with pytest.raises(PageNotFoundError):
        await website.delete_page("u1", "contact")


@pytest.mark.asyncio
async def test_add_embed() -> None:
    website = InMemoryWebsiteService()

    result = await website.add_embed("u1", "contact", " <iframe src='https://maps.example.com'></iframe> ")

    assert result.page_title == "Contact"
    section = website.get_page("u1", "contact").sections[-1]
    assert (section.id, section.type) == (result.section_id, "embed")
    assert section.content.startswith("<iframe")
    with pytest.raises(ValidationError):
        await website.add_embed("u1", "contact", "   ")


@pytest.mark.asyncio
async def test_legal_pages_are_idempotent() -> None:
    website = InMemoryWebsiteService()
    assert await website.has_legal_pages("u1") is False

    await website.generate_legal_pages("u1", PROFILE)
    await website.generate_legal_pages("u1", PROFILE)

    slugs = [page.slug for page in await website.list_pages("u1")]
    assert slugs.count("privacy-policy") == 1
    assert slugs.count("terms-of-service") == 1
    assert await website.has_legal_pages("u1") is True
    content = website.get_page("u1", "privacy-policy").sections[0].content
    assert content.startswith(LEGAL_DISCLAIMER)
    assert "Acme Plumbing" in content
    assert "hello@acme.com" in content


@pytest.mark.asyncio
async def test_analytics_requires_summary() -> None:
    analytics = InMemoryAnalyticsService()

    with pytest.raises(AnalyticsUnavailableError):
        await analytics.get_analytics_summary("u1")

    analytics.set_summary("u1", AnalyticsSummary(visitors=120, page_views=300))
    assert (await analytics.get_analytics_summary("u1")).visitors == 120


@pytest.mark.asyncio
async def test_billing_answers() -> None:
    billing = StaticBillingAssistant()
    assert "don't see an active subscription" in await billing.handle_billing_question("u1", "what plan am I on?")

    billing.set_subscription(
        "u1",
        Subscription(
            plan="Growth",
            status="trialing",
            renews_on=date(2026, 12, 1),
            trial_ends_on=date(2026, 11, 15),
        ),
    )

    trial = await billing.handle_billing_question("u1", "When does my trial end?")
    renew = await billing.handle_billing_question("u1", "when will I be charged next?")
    plan = await billing.handle_billing_question("u1", "what plan am I on?")

    assert "November 15, 2026" in trial
    assert "December 01, 2026" in renew
    assert "subscription is trialing" in plan
    assert all("Manage Billing" in answer for answer in (trial, renew, plan))
