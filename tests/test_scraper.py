from __future__ import annotations

import httpx
import pytest
from langchain_core.language_models import FakeListChatModel

from growth_assistant.config import Settings
from growth_assistant.services.errors import ScrapeError
from growth_assistant.services.scraper import (
    WebsiteProfileScraper,
    extract_profile_from_html,
    guess_industry,
    robots_disallows,
)

SITE_HTML = """
<html>
  <head>
    <title>Acme Plumbing | Austin's trusted plumber</title>
    <meta name="description" content="Emergency plumbing and drain cleaning in Austin.">
  </head>
  <body>
    <nav>Home About Contact</nav>
    <main>
      <h1>Welcome to Acme Plumbing</h1>
      <p>
        We are a family owned plumbing company serving Austin since 1998. Our licensed plumber
        team handles drain cleaning, water heater installs and emergency leak repairs every day.
      </p>
      <a href="mailto:hello@acme.com?subject=Quote">Email us</a>
      <a href="tel:+15125550100">Call us</a>
    </main>
  </body>
</html>
"""


def _client(pages: dict[str, httpx.Response | Exception]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        outcome = pages.get(request.url.path, httpx.Response(404))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _scraper(pages, llm=None) -> WebsiteProfileScraper:
    return WebsiteProfileScraper(Settings(openai_api_key=""), client=_client(pages), llm=llm)


def test_extract_profile_from_html() -> None:
    profile = extract_profile_from_html(SITE_HTML, "https://acme.example.com")

    assert profile.business_name == "Acme Plumbing"
    assert profile.industry == "Plumbing"
    assert profile.contact_info.email == "hello@acme.com"
    assert profile.contact_info.phone == "+15125550100"
    assert profile.contact_info.website == "https://acme.example.com"
    assert profile.custom_attributes[0].value == "Emergency plumbing and drain cleaning in Austin."


def test_business_name_prefers_og_site_name() -> None:
    html = '<html><head><meta property="og:site_name" content="Bright Smiles Dental"><title>Home - BSD</title></head></html>'

    assert extract_profile_from_html(html, "https://bsd.example.com").business_name == "Bright Smiles Dental"


def test_guess_industry_defaults() -> None:
    assert guess_industry("We serve the best cuisine, see our menu") == "Restaurant"
    assert guess_industry("We do many things") == "General Business"


def test_robots_rules() -> None:
    robots = "User-agent: *\nDisallow: /private\n\nUser-agent: OtherBot\nDisallow: /"

    assert robots_disallows(robots, "/private/page")
    assert not robots_disallows(robots, "/")
    assert robots_disallows("User-agent: GrowthAssistantBot\nDisallow: /", "/")


def test_robots_allow_lines() -> None:
    robots = "User-agent: *\nAllow: /public\nDisallow: /"

    assert not robots_disallows(robots, "/public/prices")
    assert robots_disallows(robots, "/")


@pytest.mark.asyncio
async def test_scrape_profile_from_url() -> None:
    scraper = _scraper(
        {
            "/robots.txt": httpx.Response(200, text="User-agent: *\nDisallow: /admin"),
            "/": httpx.Response(200, text=SITE_HTML),
        }
    )

    profile = await scraper.scrape_profile_from_url("https://acme.example.com/")

    assert profile.business_name == "Acme Plumbing"
    assert profile.contact_info.website == "https://acme.example.com/"


@pytest.mark.parametrize(
    "pages, reason",
    [
        ({"/": httpx.Response(403)}, "Website blocked scraping attempt."),
        ({"/": httpx.Response(500)}, "Could not reach the provided website URL. Status: 500"),
        (
            {"/": httpx.Response(200, text="<html><body><div id='root'></div></body></html>")},
            "Website content appears to be empty or heavily JavaScript-reliant.",
        ),
        (
            {"/robots.txt": httpx.Response(200, text="User-agent: *\nDisallow: /"), "/": httpx.Response(200, text=SITE_HTML)},
            "Website disallows scraping via robots.txt.",
        ),
        ({"/": httpx.ConnectTimeout("timed out")}, "Website request timed out."),
    ],
)
@pytest.mark.asyncio
async def test_scrape_failures(pages, reason) -> None:
    with pytest.raises(ScrapeError) as exc_info:
        await _scraper(pages).scrape_profile_from_url("https://acme.example.com/")

    assert exc_info.value.reason == reason


@pytest.mark.asyncio
async def test_non_http_url_is_rejected() -> None:
    with pytest.raises(ScrapeError):
        await _scraper({}).scrape_profile_from_url("ftp://acme.example.com")


@pytest.mark.asyncio
async def test_llm_enrichment_merges_over_heuristics() -> None:
    llm = FakeListChatModel(
        responses=[
            '{"businessName": "Acme Plumbing Co.", "services": ["Drain cleaning", "Water heaters"],'
            ' "contactInfo": {"phone": ""}, "targetAudience": "Austin homeowners"}'
        ]
    )
    scraper = _scraper({"/": httpx.Response(200, text=SITE_HTML)}, llm=llm)

    profile = await scraper.scrape_profile_from_url("https://acme.example.com/")

    assert profile.business_name == "Acme Plumbing Co."
    assert [service.name for service in profile.services] == ["Drain cleaning", "Water heaters"]
    assert profile.contact_info.phone == "+15125550100"
    assert profile.target_audience == "Austin homeowners"


@pytest.mark.asyncio
async def test_unusable_llm_reply_keeps_heuristics() -> None:
    llm = FakeListChatModel(responses=["I could not find anything useful."])
    scraper = _scraper({"/": httpx.Response(200, text=SITE_HTML)}, llm=llm)

    profile = await scraper.scrape_profile_from_url("https://acme.example.com/")

    assert profile.business_name == "Acme Plumbing"
