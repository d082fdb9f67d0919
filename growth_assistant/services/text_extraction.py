"""Regex helpers for pulling URLs, embed markup and page references out of chat text."""

from __future__ import annotations

import re
from typing import Optional

AFFIRMATIVE_PATTERN = re.compile(
    r"\b(yes|yeah|yep|yup|sure|ok(?:ay)?|confirm(?:ed)?|go ahead|do it|absolutely|please do)\b",
    re.IGNORECASE,
)
CANCEL_PATTERN = re.compile(
    r"\b(no|nope|cancel|never ?mind|stop|forget it|don'?t)\b",
    re.IGNORECASE,
)
EXPLICIT_CANCEL_PATTERN = re.compile(r"\b(cancel|never ?mind|stop|forget it)\b", re.IGNORECASE)
URL_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s().-]{8,}\d")

_IFRAME_PATTERN = re.compile(r"<iframe\b.*?</iframe>", re.IGNORECASE | re.DOTALL)
_SCRIPT_PATTERN = re.compile(r"<script\b.*?</script>", re.IGNORECASE | re.DOTALL)
_EMBED_DIV_PATTERN = re.compile(
    r"<div\b[^>]*class=[\"'][^\"']*\bembed[^\"']*[\"'][^>]*>.*?</div>",
    re.IGNORECASE | re.DOTALL,
)
_HTML_HINT_PATTERN = re.compile(r"<\s*(iframe|script|div)\b", re.IGNORECASE)

_PRONOUNS = {"it", "this", "that", "this one", "that one", "them", "there"}
_TRAILING_PUNCTUATION = ".,;:!?)]}'\""


def find_url(text: str) -> Optional[str]:
    """Return the first http(s) URL in the text with trailing punctuation stripped."""

    match = URL_PATTERN.search(text or "")
    if not match:
        return None
    return match.group(0).rstrip(_TRAILING_PUNCTUATION)


def contains_html(text: str) -> bool:
    stripped = (text or "").strip()
    return bool(_HTML_HINT_PATTERN.search(stripped)) or stripped.startswith("<")


def extract_embed_html(text: str) -> str:
    """Pick the embed markup out of a message.

    Preference order: an iframe, then a script block, then a div with an
    ``embed`` class; otherwise the whole trimmed message.
    """

    for pattern in (_IFRAME_PATTERN, _SCRIPT_PATTERN, _EMBED_DIV_PATTERN):
        match = pattern.search(text or "")
        if match:
            return match.group(0).strip()
    return (text or "").strip()


def is_affirmative(text: str | None) -> bool:
    return bool(text) and bool(AFFIRMATIVE_PATTERN.search(text))


def is_cancellation(text: str | None, *, explicit_only: bool = False) -> bool:
    pattern = EXPLICIT_CANCEL_PATTERN if explicit_only else CANCEL_PATTERN
    return bool(text) and bool(pattern.search(text))


def clean_page_reference(text: str | None) -> Optional[str]:
    """Turn "the Contact page" or "/contact." into a bare page reference."""

    if not text:
        return None
    value = text.strip().strip(_TRAILING_PUNCTUATION).strip()
    value = re.sub(r"^please\s+|,?\s+please$", "", value, flags=re.IGNORECASE)
    value = re.sub(r"^(?:on|to|into|onto)\s+", "", value, flags=re.IGNORECASE)
    value = re.sub(r"^(?:the|my|our)\s+", "", value, flags=re.IGNORECASE)
    value = re.sub(r"\s+page$", "", value, flags=re.IGNORECASE)
    value = value.strip().strip("\"'").strip()
    if not value or value.lower() in _PRONOUNS:
        return None
    return value


def normalize_page_key(value: str) -> str:
    return value.strip().lstrip("/").strip().lower()


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "page"


def word_count(text: str) -> int:
    return len([token for token in re.split(r"\s+", (text or "").strip()) if token])
