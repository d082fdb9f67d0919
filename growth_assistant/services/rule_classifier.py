"""
Deterministic intent classifier.

Matches keyword rules from ``config/intent_rules.yaml`` and pulls entities
out with regexes. When the previous assistant turn left a flow open (a
pending embed, page details, delete confirmation) a short follow-up is
read as the continuation of that flow, the way an LLM would use history.
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from langsmith import traceable

from ..intents import IntentType
from ..models import BrandVoice, BusinessProfile, ConversationTurn, FlowStep, IntentResult, build_entities
from .flow_state import FlowState, FlowStateInferencer, get_flow_state_inferencer
from .text_extraction import (
    EMAIL_PATTERN,
    PHONE_PATTERN,
    clean_page_reference,
    contains_html,
    extract_embed_html,
    find_url,
    is_affirmative,
    is_cancellation,
    word_count,
)

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "intent_rules.yaml"

# Replies up to this length may name a page or cancel an open flow.
SHORT_REPLY_WORDS = 6

_TITLE_STOPWORDS = {"a", "an", "the", "new", "another", "one", "my", "our"}

_CREATE_TITLE_PATTERNS = (
    re.compile(r"\bpage\s+(?:called|named|titled)\s+[\"']?(?P<title>[^\"'!?]+?)[\"']?\s*[.!?]*$", re.IGNORECASE),
    re.compile(
        r"\b(?:create|add|make|build|set up)\s+(?:me\s+)?(?:a\s+|an\s+|the\s+)?(?:new\s+)?"
        r"(?P<title>.+?)\s+pages?\b",
        re.IGNORECASE,
    ),
)
_DELETE_PATTERN = re.compile(
    r"\b(?:delete|remove|get rid of)\s+(?P<page>.+?)\s*[.!?]*$",
    re.IGNORECASE,
)
_RENAME_PATTERNS = (
    re.compile(
        r"\brename\s+(?P<page>.+?)\s+(?:to|as)\s+[\"']?(?P<new>[^\"']+?)[\"']?\s*[.!?]*$",
        re.IGNORECASE,
    ),
    re.compile(
        r"\bchange the (?:title|name) of\s+(?P<page>.+?)\s+to\s+[\"']?(?P<new>[^\"']+?)[\"']?\s*[.!?]*$",
        re.IGNORECASE,
    ),
)
_TARGET_PAGE_PATTERN = re.compile(
    r"\b(?:to|on|into|onto|for)\s+(?:the\s+|my\s+|our\s+)?(?P<page>/?[\w/-]+(?:\s+[\w/-]+){0,3}?)\s+page\b"
    r"|\b(?:to|on|into|onto)\s+(?P<slug>/[\w/-]+)",
    re.IGNORECASE,
)
_BLOG_TOPIC_PATTERN = re.compile(
    r"\b(?:blog post|blog|article)\s+(?:about|on)\s+(?P<topic>[^.!?]+)",
    re.IGNORECASE,
)
_PROFILE_PATTERNS = {
    "business_name": re.compile(
        r"\b(?:business|company)(?:'s)?\s+name\s+(?:is|to|should be)\s+[\"']?(?P<value>[^\"'.,!?]+)",
        re.IGNORECASE,
    ),
    "industry": re.compile(r"\bindustry\s+(?:is|to|should be)\s+(?P<value>[^.,!?]+)", re.IGNORECASE),
    "target_audience": re.compile(
        r"\b(?:target\s+)?audience\s+(?:is|are|to|should be)\s+(?P<value>[^.!?]+)",
        re.IGNORECASE,
    ),
    "address": re.compile(r"\baddress\s+(?:is|to|should be)\s+(?P<value>[^!?]+?)\s*\.?$", re.IGNORECASE),
}


@dataclass
class IntentRule:
    """Keyword rule for one intent."""

    intent: IntentType
    triggers: List[str] = field(default_factory=list)
    requires_any: List[str] = field(default_factory=list)
    negative_triggers: List[str] = field(default_factory=list)
    priority: int = 50
    confidence: float = 0.8


@dataclass
class RuleConfig:
    rules: List[IntentRule]
    page_types: Dict[str, List[str]]
    continuation_confidence: float
    unknown_question: str
    cancel_reply: str
    affirmative_intent: IntentType = IntentType.CREATE_PAGE
    affirmative_confidence: float = 0.7


def _has_phrase(text: str, phrase: str) -> bool:
    if not phrase.strip(" /"):
        return phrase in text
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


def _tidy_title(raw: str | None) -> Optional[str]:
    if not raw:
        return None
    title = raw.strip().strip("\"'").strip()
    title = re.sub(r"\s+(?:to|on|for)\s+(?:my|our|the)\s+(?:website|site)$", "", title, flags=re.IGNORECASE)
    if not title or title.lower() in _TITLE_STOPWORDS:
        return None
    if title.lower() == "faq":
        return "FAQ"
    if title == title.lower():
        return " ".join(word.capitalize() for word in title.split())
    return title


class RuleBasedIntentClassifier:
    """Keyword/regex classifier backed by a YAML rule file."""

    def __init__(
        self,
        config_path: Path = CONFIG_PATH,
        *,
        flow_inferencer: FlowStateInferencer | None = None,
    ) -> None:
        self._config = self._load_config(config_path)
        self._rules = sorted(self._config.rules, key=lambda rule: rule.priority, reverse=True)
        self._flow_inferencer = flow_inferencer or get_flow_state_inferencer()

    @traceable(run_type="chain", name="classify_intent_rules")
    async def classify(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        profile: Optional[BusinessProfile],
    ) -> IntentResult:
        text = (message or "").strip()
        if not text:
            return self._unknown()

        rule = self.match_rule(text)
        flow = self._flow_inferencer.infer(history)
        continued = self._continue_flow(text, flow, rule)
        if continued is not None:
            logger.debug("rules.continuation awaiting=%s intent=%s", flow.awaiting, continued.intent)
            return continued
        if rule is None:
            if self._is_bare_affirmative(text):
                # may accept an open page suggestion; the dispatcher decides
                intent = self._config.affirmative_intent
                return IntentResult(
                    intent=intent,
                    entities=build_entities(intent, {}),
                    confidence=self._config.affirmative_confidence,
                )
            return self._unknown()

        entities = self.extract_entities(rule.intent, text)
        logger.debug("rules.matched intent=%s entities=%s", rule.intent.value, entities)
        return IntentResult(
            intent=rule.intent,
            entities=build_entities(rule.intent, entities),
            confidence=rule.confidence,
        )

    def match_rule(self, text: str) -> Optional[IntentRule]:
        if contains_html(text):
            return self._rule_for(IntentType.ADD_EMBED)
        normalized = text.lower()
        for rule in self._rules:
            if not any(_has_phrase(normalized, trigger) for trigger in rule.triggers):
                continue
            if rule.requires_any and not any(_has_phrase(normalized, word) for word in rule.requires_any):
                continue
            if any(_has_phrase(normalized, word) for word in rule.negative_triggers):
                continue
            return rule
        return None

    def _rule_for(self, intent: IntentType) -> IntentRule:
        for rule in self._rules:
            if rule.intent == intent:
                return rule
        return IntentRule(intent=intent)

    # -------------------------------------------------------------------------
    # Multi-turn continuation
    # -------------------------------------------------------------------------
    def _continue_flow(
        self,
        text: str,
        flow: FlowState,
        rule: Optional[IntentRule],
    ) -> Optional[IntentResult]:
        step = flow.awaiting
        if step is None:
            return None
        marker = flow.marker
        short_reply = word_count(text) <= SHORT_REPLY_WORDS
        matched_intent = rule.intent if rule else None

        # "no, you suggest some" is still an answer to a page-details question
        explicit_only = step == FlowStep.PAGE_DETAILS
        if short_reply and is_cancellation(text, explicit_only=explicit_only) and not is_affirmative(text):
            if matched_intent is None or step == FlowStep.DELETE_CONFIRMATION:
                return IntentResult(
                    intent=IntentType.UNKNOWN,
                    needs_clarification=True,
                    clarification_question=self._config.cancel_reply,
                    confidence=self._config.continuation_confidence,
                )

        if step == FlowStep.DELETE_CONFIRMATION:
            if is_affirmative(text) and matched_intent in (None, IntentType.DELETE_PAGE):
                return self._continuation(
                    IntentType.DELETE_PAGE,
                    {"slug": marker.page, "confirmed": True, "confirmation": text},
                )
            return None

        if step in (FlowStep.EMBED_PAGE, FlowStep.EMBED_HTML):
            if contains_html(text):
                page = marker.page if step == FlowStep.EMBED_HTML else None
                return self._continuation(
                    IntentType.ADD_EMBED,
                    {"page": page, "html": extract_embed_html(text)},
                )
            if matched_intent is None and short_reply:
                return self._continuation(IntentType.ADD_EMBED, {"page": clean_page_reference(text)})
            return None

        if step == FlowStep.PAGE_DETAILS:
            if matched_intent not in (None, IntentType.CREATE_PAGE):
                return None
            return self._continuation(
                IntentType.CREATE_PAGE,
                {
                    "title": marker.title,
                    "page_type": marker.page_type,
                    "keyword": marker.keyword,
                    "clarification": text,
                    "clarification_provided": True,
                },
            )
        return None

    def _continuation(self, intent: IntentType, entities: Dict[str, Any]) -> IntentResult:
        return IntentResult(
            intent=intent,
            entities=build_entities(intent, {k: v for k, v in entities.items() if v is not None}),
            confidence=self._config.continuation_confidence,
        )

    @staticmethod
    def _is_bare_affirmative(text: str) -> bool:
        return (
            word_count(text) <= SHORT_REPLY_WORDS
            and is_affirmative(text)
            and not is_cancellation(text, explicit_only=True)
        )

    def _unknown(self) -> IntentResult:
        return IntentResult(
            intent=IntentType.UNKNOWN,
            needs_clarification=True,
            clarification_question=self._config.unknown_question,
            confidence=0.3,
        )

    # -------------------------------------------------------------------------
    # Entity extraction
    # -------------------------------------------------------------------------
    def extract_entities(self, intent: IntentType, text: str) -> Dict[str, Any]:
        if intent == IntentType.CREATE_PAGE:
            return self._create_page_entities(text)
        if intent == IntentType.DELETE_PAGE:
            match = _DELETE_PATTERN.search(text)
            entities: Dict[str, Any] = {
                "slug": clean_page_reference(match.group("page")) if match else None
            }
            if is_affirmative(text):
                entities["confirmation"] = text
            return entities
        if intent == IntentType.RENAME_PAGE:
            for pattern in _RENAME_PATTERNS:
                match = pattern.search(text)
                if match:
                    return {
                        "slug": clean_page_reference(match.group("page")),
                        "new_title": match.group("new").strip(),
                    }
            return {}
        if intent == IntentType.ADD_EMBED:
            entities = {"page": self._target_page(text)}
            if contains_html(text):
                entities["html"] = extract_embed_html(text)
            return entities
        if intent == IntentType.UPDATE_PAGE_CONTENT:
            return {"page": self._target_page(text)}
        if intent == IntentType.WRITE_BLOG:
            match = _BLOG_TOPIC_PATTERN.search(text)
            return {"topic": match.group("topic").strip()} if match else {}
        if intent in (IntentType.UPDATE_PROFILE, IntentType.USER_CORRECTION):
            return self._profile_entities(text)
        return {}

    def _create_page_entities(self, text: str) -> Dict[str, Any]:
        title = None
        for pattern in _CREATE_TITLE_PATTERNS:
            match = pattern.search(text)
            if match:
                title = _tidy_title(match.group("title"))
                if title:
                    break
        normalized = text.lower()
        page_type = None
        for candidate, keywords in self._config.page_types.items():
            if any(_has_phrase(normalized, keyword) for keyword in keywords):
                page_type = candidate
                break
        return {"title": title, "page_type": page_type}

    @staticmethod
    def _target_page(text: str) -> Optional[str]:
        match = _TARGET_PAGE_PATTERN.search(text)
        if not match:
            return None
        return clean_page_reference(match.group("page") or match.group("slug"))

    @staticmethod
    def _profile_entities(text: str) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        email = EMAIL_PATTERN.search(text)
        if email:
            data["email"] = email.group(0).rstrip(".")
        url = find_url(text)
        if url:
            data["website"] = url
        phone = PHONE_PATTERN.search(text)
        if phone:
            data["phone"] = phone.group(0).strip()
        for key, pattern in _PROFILE_PATTERNS.items():
            match = pattern.search(text)
            if match:
                data[key] = match.group("value").strip()
        normalized = text.lower()
        if "voice" in normalized or "tone" in normalized:
            for voice in BrandVoice:
                if _has_phrase(normalized, voice.value):
                    data["brand_voice"] = voice.value
                    break
        return data

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------
    @staticmethod
    @functools.lru_cache(maxsize=4)
    def _load_config(config_path: Path) -> RuleConfig:
        """Loads and parses the rule file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Intent rules not found at {config_path}")

        with config_path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}

        defaults = data.get("defaults") or {}
        default_confidence = float(defaults.get("confidence", 0.8))
        rules: List[IntentRule] = []
        for intent_name, config in (data.get("intents") or {}).items():
            try:
                intent = IntentType(intent_name)
            except ValueError:
                logger.warning("Unknown intent in rules: %s", intent_name)
                continue
            config = config or {}
            rules.append(
                IntentRule(
                    intent=intent,
                    triggers=[str(t).lower() for t in (config.get("triggers") or [])],
                    requires_any=[str(t).lower() for t in (config.get("requires_any") or [])],
                    negative_triggers=[str(t).lower() for t in (config.get("negative_triggers") or [])],
                    priority=int(config.get("priority", 50)),
                    confidence=float(config.get("confidence", default_confidence)),
                )
            )

        page_types = {
            str(name): [str(keyword).lower() for keyword in keywords or []]
            for name, keywords in (data.get("page_types") or {}).items()
        }
        return RuleConfig(
            rules=rules,
            page_types=page_types,
            continuation_confidence=float(defaults.get("continuation_confidence", 0.9)),
            unknown_question=str(defaults.get("unknown_question") or "Could you tell me a bit more?"),
            cancel_reply=str(defaults.get("cancel_reply") or "Okay, I'll leave things as they are."),
            affirmative_intent=IntentType(defaults.get("affirmative_intent", IntentType.CREATE_PAGE)),
            affirmative_confidence=float(defaults.get("affirmative_confidence", 0.7)),
        )
