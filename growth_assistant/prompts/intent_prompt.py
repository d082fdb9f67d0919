from __future__ import annotations

from langchain_core.prompts import ChatPromptTemplate


def build_intent_prompt() -> ChatPromptTemplate:
    """Return ChatPromptTemplate instructing the LLM to classify one user message as JSON."""

    system_message = (
        "You are the orchestrator of a business growth assistant. Analyze user messages and "
        "determine their intent. Always respond with a single valid JSON object and nothing else."
    )

    user_template = (
        "Available intents:\n{intent_catalog}\n\n"
        "{profile_context}\n\n"
        "{last_assistant_context}\n\n"
        "Recent conversation:\n{history}\n\n"
        "Current user message: {message}\n\n"
        "Respond with a JSON object:\n"
        "{{\n"
        '  "intent": "one of the available intents",\n'
        '  "entities": {{"key": "value"}},\n'
        '  "needsClarification": false,\n'
        '  "clarificationQuestion": "only when needsClarification is true",\n'
        '  "confidence": 0.0\n'
        "}}\n"
        "Put every value you extracted into entities using the entity names listed for the "
        "intent. If the intent is unclear, set needsClarification to true and ask a helpful "
        "clarifying question."
    )

    return ChatPromptTemplate.from_messages(
        [
            ("system", system_message),
            ("user", user_template),
        ]
    )
