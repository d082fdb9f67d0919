from __future__ import annotations

from langchain_core.prompts import ChatPromptTemplate


def build_profile_extraction_prompt() -> ChatPromptTemplate:
    """Prompt that turns scraped website text into a partial business profile as JSON."""

    system_message = (
        "You are a data extraction expert. Extract business information from website content "
        "and return it as valid JSON."
    )

    user_template = (
        "Extract business profile information from the website content below and return a JSON "
        "object with any of these fields:\n"
        "{{\n"
        '  "businessName": "string",\n'
        '  "industry": "string",\n'
        '  "location": {{"address": "", "city": "", "state": "", "zipCode": "", "country": ""}},\n'
        '  "contactInfo": {{"phone": "", "email": "", "website": ""}},\n'
        '  "services": [{{"name": "", "description": "", "price": ""}}],\n'
        '  "hours": [{{"day": "", "open": "", "close": ""}}],\n'
        '  "brandVoice": "friendly | professional | witty | formal",\n'
        '  "targetAudience": "string"\n'
        "}}\n"
        "Include only information clearly present in the content and omit everything else. "
        "Return only JSON.\n\n"
        "Website content:\n{content}"
    )

    return ChatPromptTemplate.from_messages(
        [
            ("system", system_message),
            ("user", user_template),
        ]
    )
