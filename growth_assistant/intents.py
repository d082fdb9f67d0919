from __future__ import annotations

from enum import StrEnum


class IntentType(StrEnum):
    """List of intents supported by the assistant."""

    UPDATE_PROFILE = "UPDATE_PROFILE"
    USER_CORRECTION = "USER_CORRECTION"
    CREATE_WEBSITE = "CREATE_WEBSITE"
    WRITE_BLOG = "WRITE_BLOG"
    GET_SUGGESTIONS = "GET_SUGGESTIONS"
    CREATE_PAGE = "CREATE_PAGE"
    DELETE_PAGE = "DELETE_PAGE"
    RENAME_PAGE = "RENAME_PAGE"
    UPDATE_PAGE_CONTENT = "UPDATE_PAGE_CONTENT"
    GENERATE_LEGAL_PAGES = "GENERATE_LEGAL_PAGES"
    GET_ANALYTICS = "GET_ANALYTICS"
    ADD_EMBED = "ADD_EMBED"
    BILLING_QUESTION = "BILLING_QUESTION"
    UNKNOWN = "UNKNOWN"


# Intents whose handlers may span several turns and read the flow state.
MULTI_TURN_INTENTS: set[IntentType] = {
    IntentType.CREATE_PAGE,
    IntentType.DELETE_PAGE,
    IntentType.ADD_EMBED,
}

# Intents acknowledged and handed to the background action log.
QUEUED_ACTION_INTENTS: set[IntentType] = {
    IntentType.CREATE_WEBSITE,
    IntentType.WRITE_BLOG,
    IntentType.UPDATE_PAGE_CONTENT,
}


def parse_intent(value: str | IntentType | None) -> IntentType | None:
    """Map a loose intent tag to the enum, or None when it is not recognised."""

    if value is None:
        return None
    if isinstance(value, IntentType):
        return value
    normalized = str(value).strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return IntentType(normalized)
    except ValueError:
        return None


def intent_descriptions() -> dict[str, str]:
    """Human readable descriptions shipped to the LLM to improve grounding."""

    return {
        IntentType.UPDATE_PROFILE.value: (
            "The user shares or changes business details: name, industry, phone, email, "
            "address, hours, services, brand voice, target audience."
        ),
        IntentType.USER_CORRECTION.value: (
            "The user says something the assistant did or said is wrong. "
            "Put the corrected field values into entities when they are given."
        ),
        IntentType.CREATE_WEBSITE.value: "Build or launch the whole website.",
        IntentType.WRITE_BLOG.value: "Write a blog post or article. Entities: topic.",
        IntentType.GET_SUGGESTIONS.value: "The user asks for ideas, advice or what to do next.",
        IntentType.CREATE_PAGE.value: (
            "Add a single new page. Entities: title, pageType (faq, blog, testimonial, page), "
            "keyword. Also use it when the user accepts a suggestion to create a page "
            "(\"yes, let's do it\"), and when the user answers a question about what a new page "
            "should contain: then set clarificationProvided=true."
        ),
        IntentType.DELETE_PAGE.value: (
            "Remove a page. Entities: slug (page slug or title), confirmed (true only when the "
            "user explicitly confirms the deletion), confirmation (the confirming words)."
        ),
        IntentType.RENAME_PAGE.value: "Rename a page. Entities: slug (current slug or title), newTitle.",
        IntentType.UPDATE_PAGE_CONTENT.value: "Change text or sections on an existing page. Entities: page.",
        IntentType.GENERATE_LEGAL_PAGES.value: "Create a privacy policy and terms of service.",
        IntentType.GET_ANALYTICS.value: "Visitors, traffic, page views, referrers.",
        IntentType.ADD_EMBED.value: (
            "Add an embed or widget (booking calendar, map, video, form). Entities: page, html. "
            "Also use it when the user answers which page the embed goes on, or pastes embed code."
        ),
        IntentType.BILLING_QUESTION.value: "Plans, subscription, trial, invoices, payment.",
        IntentType.UNKNOWN.value: "Use when the request does not map to any intent above.",
    }
