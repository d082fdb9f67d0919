"""Website scraper used by onboarding to bootstrap a business profile from a URL."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx
from bs4 import BeautifulSoup
from langchain_core.language_models import BaseChatModel
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings, get_settings
from ..models import ProfileUpdate
from ..prompts.profile_prompt import build_profile_extraction_prompt
from .errors import ScrapeError
from .text_extraction import EMAIL_PATTERN, PHONE_PATTERN

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; GrowthAssistantBot/1.0)"
ROBOTS_AGENT = "GrowthAssistantBot"
MAX_CONTENT_CHARS = 20000
MIN_CONTENT_CHARS = 100

MAIN_SELECTORS = ["main", "article", ".content", ".main-content", ".post-content", ".entry-content", "#content", "#main"]

INDUSTRY_KEYWORDS: Dict[str, List[str]] = {
    "Plumbing": ["plumbing", "plumber", "drain", "water heater"],
    "Landscaping": ["landscaping", "lawn", "garden", "yard"],
    "Restaurant": ["restaurant", "menu", "dine", "cuisine", "reservations"],
    "Dental": ["dental", "dentist", "teeth", "orthodont"],
    "Fitness": ["fitness", "gym", "personal training", "yoga", "pilates"],
    "Beauty & Wellness": ["salon", "spa", "beauty", "massage", "nails"],
    "Legal Services": ["attorney", "lawyer", "law firm", "legal"],
    "Real Estate": ["real estate", "realtor", "homes for sale", "property"],
    "Construction": ["construction", "contractor", "remodel", "roofing"],
    "Automotive": ["auto repair", "mechanic", "car service", "tires"],
}
DEFAULT_INDUSTRY = "General Business"

_TITLE_SEPARATORS = re.compile(r"\s+[|\-–—:]\s+")


def _clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def main_content(soup: BeautifulSoup) -> str:
    for element in soup.find_all(["script", "style", "nav", "header", "footer", "aside", "noscript"]):
        element.decompose()
    for selector in MAIN_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            text = _clean_text(node.get_text(" "))
            if text:
                return text[:MAX_CONTENT_CHARS]
    body = soup.body or soup
    return _clean_text(body.get_text(" "))[:MAX_CONTENT_CHARS]


def guess_industry(text: str) -> str:
    lowered = text.lower()
    best, best_hits = DEFAULT_INDUSTRY, 0
    for industry, keywords in INDUSTRY_KEYWORDS.items():
        hits = sum(lowered.count(keyword) for keyword in keywords)
        if hits > best_hits:
            best, best_hits = industry, hits
    return best


def _business_name(soup: BeautifulSoup) -> Optional[str]:
    site_name = soup.find("meta", attrs={"property": "og:site_name"})
    if site_name and site_name.get("content", "").strip():
        return site_name["content"].strip()
    title_tag = soup.find("title")
    if title_tag:
        title = title_tag.get_text(strip=True)
        if title:
            return _TITLE_SEPARATORS.split(title)[0].strip() or None
    h1_tag = soup.find("h1")
    if h1_tag:
        return h1_tag.get_text(strip=True) or None
    return None


def extract_profile_from_html(html: str, url: str) -> ProfileUpdate:
    """Heuristic extraction: name from og:site_name, <title> or <h1>; contacts from links or text."""

    soup = BeautifulSoup(html, "html.parser")
    name = _business_name(soup)

    email = None
    phone = None
    mailto = soup.find("a", href=re.compile(r"^mailto:", re.IGNORECASE))
    if mailto:
        email = mailto["href"].split(":", 1)[1].split("?")[0].strip() or None
    tel = soup.find("a", href=re.compile(r"^tel:", re.IGNORECASE))
    if tel:
        phone = tel["href"].split(":", 1)[1].strip() or None

    description_tag = soup.find("meta", attrs={"name": "description"})
    description = description_tag.get("content", "") if description_tag else ""
    text = main_content(soup)

    if email is None:
        match = EMAIL_PATTERN.search(text)
        email = match.group(0) if match else None
    if phone is None:
        match = PHONE_PATTERN.search(text)
        phone = match.group(0).strip() if match else None

    contact: Dict[str, Any] = {"website": url}
    if email:
        contact["email"] = email
    if phone:
        contact["phone"] = phone

    data: Dict[str, Any] = {
        "industry": guess_industry(f"{description} {text}"),
        "contact_info": contact,
    }
    if name:
        data["business_name"] = name
    if description:
        data["custom_attributes"] = [{"label": "Website description", "value": description.strip()}]
    return ProfileUpdate.model_validate(data)


def robots_disallows(robots_txt: str, path: str) -> bool:
    parser = RobotFileParser()
    parser.parse(robots_txt.splitlines())
    return not parser.can_fetch(ROBOTS_AGENT, path or "/")


class WebsiteProfileScraper:
    """Fetches a site with httpx and extracts a ProfileUpdate.

    When a chat model is supplied the page text is sent through a profile
    extraction prompt; the heuristic extraction fills in anything the model
    leaves out and is used alone when the model reply is unusable.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        llm: BaseChatModel | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._chain = (build_profile_extraction_prompt() | llm) if llm is not None else None

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.scraper_timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    async def scrape_profile_from_url(self, url: str) -> ProfileUpdate:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ScrapeError(reason="Invalid URL protocol. Only HTTP and HTTPS are supported.")

        if self._client is not None:
            html = await self._fetch(self._client, url)
        else:
            async with self._new_client() as client:
                html = await self._fetch(client, url)

        profile = extract_profile_from_html(html, url)
        if self._chain is not None:
            profile = await self._enrich_with_llm(html, profile)
        logger.info(
            "scraper.extracted url=%s name=%s industry=%s",
            url,
            profile.business_name,
            profile.industry,
        )
        return profile

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> str:
        parsed = urlparse(url)
        await self._check_robots(client, f"{parsed.scheme}://{parsed.netloc}/robots.txt", parsed.path or "/")
        try:
            response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise ScrapeError(reason="Website request timed out.") from exc
        except httpx.HTTPError as exc:
            raise ScrapeError(reason=f"Could not reach the provided website URL. {exc}") from exc

        if response.status_code == 403:
            raise ScrapeError(reason="Website blocked scraping attempt.")
        if response.status_code >= 400:
            raise ScrapeError(
                reason=f"Could not reach the provided website URL. Status: {response.status_code}"
            )
        html = response.text
        if len(main_content(BeautifulSoup(html, "html.parser"))) < MIN_CONTENT_CHARS:
            raise ScrapeError(reason="Website content appears to be empty or heavily JavaScript-reliant.")
        return html

    async def _check_robots(self, client: httpx.AsyncClient, robots_url: str, path: str) -> None:
        try:
            response = await client.get(robots_url)
        except httpx.HTTPError as exc:
            logger.info("scraper.robots_unavailable url=%s error=%s", robots_url, exc)
            return
        if response.status_code == 200 and robots_disallows(response.text, path):
            raise ScrapeError(reason="Website disallows scraping via robots.txt.")

    async def _enrich_with_llm(self, html: str, heuristic: ProfileUpdate) -> ProfileUpdate:
        content = main_content(BeautifulSoup(html, "html.parser"))
        try:
            reply = await self._chain.ainvoke({"content": content})
            text = str(getattr(reply, "content", reply)).strip()
            text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text)
            extracted = ProfileUpdate.model_validate(json.loads(text))
        except (json.JSONDecodeError, PydanticValidationError):
            logger.warning("scraper.llm_unparseable", exc_info=True)
            return heuristic
        except Exception:
            logger.exception("scraper.llm_failed")
            return heuristic

        merged = heuristic.model_dump(exclude_none=True)
        for key, value in extracted.model_dump(exclude_unset=True, exclude_none=True).items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **{k: v for k, v in value.items() if v}}
            elif value:
                merged[key] = value
        return ProfileUpdate.model_validate(merged)
