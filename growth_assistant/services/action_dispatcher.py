from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from ..intents import MULTI_TURN_INTENTS, QUEUED_ACTION_INTENTS, IntentType
from ..models import (
    AddEmbedEntities,
    AnalyticsSummary,
    BusinessProfile,
    ConversationTurn,
    CreatePageEntities,
    DeletePageEntities,
    FlowMarker,
    FlowStep,
    GenericEntities,
    IntentResult,
    PageDiff,
    PageGenerationOptions,
    PageSummary,
    ProfileEntities,
    RenamePageEntities,
    SchemaType,
    Suggestion,
    SuggestionCategory,
    build_entities,
)
from ..utils.logging import get_request_logger
from .action_queue import ActionCommand, ActionQueue, get_action_queue
from .errors import (
    AnalyticsUnavailableError,
    OperationNotAllowedError,
    PageNotFoundError,
    QuotaExceededError,
    ValidationError,
)
from .flow_state import NO_FLOW, FlowState, FlowStateInferencer, get_flow_state_inferencer
from .interfaces import (
    AnalyticsService,
    BillingAssistant,
    LegalPageService,
    PageService,
    ProfileStore,
    SuggestionService,
)
from .metrics import MetricsService, get_metrics_service
from .response_helpers import (
    ANALYTICS_FAILED,
    ANALYTICS_UNAVAILABLE,
    ASK_CONTENT_PAGE,
    ASK_DELETE_TARGET,
    ASK_EMBED_HTML,
    ASK_EMBED_PAGE,
    ASK_PAGE_TITLE,
    ASK_PROFILE_FIELDS,
    ASK_RENAME_DETAILS,
    CONFIRM_DELETE,
    CONTENT_UPDATE_ACK,
    CORRECTION_APPLIED,
    CORRECTION_ASK_VALUE,
    CREATE_WEBSITE_ACK,
    EMBED_ADDED,
    LEGAL_PAGES_ADDED,
    NO_PAGES_YET,
    NOT_ALLOWED_REPLY,
    PAGE_CREATED,
    PAGE_DELETED,
    PAGE_NOT_FOUND,
    PAGE_RENAMED,
    PROFILE_INVALID,
    PROFILE_UPDATED,
    QUOTA_REPLY,
    SEO_PAGE_CREATED,
    SUGGESTIONS_FALLBACK,
    SUGGESTIONS_HEADER,
    TRANSIENT_FAILURE_REPLY,
    UNKNOWN_INTENT_REPLY,
    WRITE_BLOG_ACK,
    format_field_list,
    format_page_list,
    page_details_question,
)
from .text_extraction import (
    clean_page_reference,
    contains_html,
    extract_embed_html,
    is_affirmative,
    normalize_page_key,
    slugify,
    word_count,
)

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 3
ANALYTICS_TOP_LIMIT = 5
BARE_AFFIRMATIVE_WORDS = 5

_SUGGESTION_ACCEPT_PATTERN = re.compile(
    r"\b(yes|okay|ok|sure|create|add|make|do it|let's|go ahead)\b", re.IGNORECASE
)
_SUGGESTED_PAGE_PATTERN = re.compile(r"create (?:an? )?([a-z]+) page", re.IGNORECASE)

_PAGE_TYPE_WORDS = {
    "faq": ("faq", "question"),
    "blog": ("blog", "post", "write"),
    "testimonial": ("testimonial", "review"),
}

_SCHEMA_BY_PAGE_TYPE = {
    "faq": SchemaType.FAQ_PAGE,
    "blog": SchemaType.BLOG_POSTING,
    "testimonial": SchemaType.REVIEW,
    "review": SchemaType.REVIEW,
}

# Verb phrase used in "I can't ... yet" and apology replies.
_ACTION_PHRASES = {
    IntentType.CREATE_PAGE: "add that page",
    IntentType.DELETE_PAGE: "delete that page",
    IntentType.RENAME_PAGE: "rename that page",
    IntentType.ADD_EMBED: "add that embed",
    IntentType.GENERATE_LEGAL_PAGES: "add the legal pages",
    IntentType.UPDATE_PROFILE: "update your profile",
    IntentType.USER_CORRECTION: "update your profile",
    IntentType.GET_SUGGESTIONS: "load your suggestions",
    IntentType.BILLING_QUESTION: "look up your billing details",
}


@dataclass(frozen=True)
class DispatchOutcome:
    """Reply text plus the flow marker stored on the assistant turn."""

    text: str
    flow: FlowMarker = field(default_factory=FlowMarker)


@dataclass
class _Turn:
    user_id: str
    result: IntentResult
    profile: BusinessProfile
    history: Sequence[ConversationTurn]
    message: str
    flow: FlowState
    trace_id: Optional[str] = None


def schema_for_page_type(page_type: Optional[str]) -> SchemaType:
    return _SCHEMA_BY_PAGE_TYPE.get((page_type or "").lower(), SchemaType.WEB_PAGE)


def default_page_title(page_type: Optional[str], keyword: Optional[str], text: str = "") -> str:
    """Title for a page created from a suggestion when the user gave none."""

    if page_type == "faq":
        return "FAQ"
    if page_type == "blog":
        return keyword[:1].upper() + keyword[1:] if keyword else "Blog Post"
    if page_type == "testimonial":
        return "Testimonials"
    match = _SUGGESTED_PAGE_PATTERN.search(text)
    if match:
        return match.group(1).capitalize()
    return "New Page"


def resolve_page(reference: Optional[str], pages: Sequence[PageSummary]) -> Optional[PageSummary]:
    """Match a page by slug or title, case-insensitively, ignoring a leading slash."""

    if not reference:
        return None
    key = normalize_page_key(reference)
    if not key:
        return None
    for page in pages:
        if page.slug.lower() == key or page.title.lower() == key:
            return page
    slug_key = slugify(key)
    for page in pages:
        if page.slug.lower() == slug_key:
            return page
    return None


def format_analytics(summary: AnalyticsSummary) -> str:
    lines = [
        f"Here's your analytics summary for the last {summary.period}:",
        f"- Visitors: {summary.visitors}",
        f"- Page views: {summary.page_views}",
    ]
    if summary.top_pages:
        lines.append("Top pages:")
        lines.extend(
            f"  - {page.path}: {page.visitors} visitors"
            for page in summary.top_pages[:ANALYTICS_TOP_LIMIT]
        )
    if summary.top_referrers:
        lines.append("Top referrers:")
        lines.extend(
            f"  - {referrer.source}: {referrer.visitors} visitors"
            for referrer in summary.top_referrers[:ANALYTICS_TOP_LIMIT]
        )
    return "\n".join(lines)


def _is_bare_affirmative(message: str) -> bool:
    return is_affirmative(message) and word_count(message) <= BARE_AFFIRMATIVE_WORDS


def _entities(result: IntentResult, model: type):
    if isinstance(result.entities, model):
        return result.entities
    return build_entities(result.intent, result.entities.model_dump(exclude_none=True))


class ActionDispatcher:
    """Runs one classified intent against the owned subsystems.

    Handlers never raise for user-level problems: missing arguments become
    follow-up questions, plan limits become an explanation, and anything else
    becomes an apology with the cause logged.
    """

    def __init__(
        self,
        *,
        profile_store: ProfileStore,
        pages: PageService,
        legal_pages: LegalPageService,
        analytics: AnalyticsService,
        suggestions: SuggestionService,
        billing: BillingAssistant,
        action_queue: ActionQueue | None = None,
        flow_inferencer: FlowStateInferencer | None = None,
        metrics: MetricsService | None = None,
    ) -> None:
        self._profile_store = profile_store
        self._pages = pages
        self._legal_pages = legal_pages
        self._analytics = analytics
        self._suggestions = suggestions
        self._billing = billing
        self._action_queue = action_queue or get_action_queue()
        self._flow_inferencer = flow_inferencer or get_flow_state_inferencer()
        self._metrics = metrics or get_metrics_service()
        self._handlers: Dict[IntentType, Callable[[_Turn], Awaitable[DispatchOutcome]]] = {
            IntentType.UPDATE_PROFILE: self._update_profile,
            IntentType.USER_CORRECTION: self._user_correction,
            IntentType.GET_SUGGESTIONS: self._get_suggestions,
            IntentType.CREATE_PAGE: self._create_page,
            IntentType.DELETE_PAGE: self._delete_page,
            IntentType.RENAME_PAGE: self._rename_page,
            IntentType.GENERATE_LEGAL_PAGES: self._generate_legal_pages,
            IntentType.GET_ANALYTICS: self._get_analytics,
            IntentType.ADD_EMBED: self._add_embed,
            IntentType.BILLING_QUESTION: self._billing_question,
        }
        for queued in QUEUED_ACTION_INTENTS:
            self._handlers[queued] = self._queued_action

    async def dispatch(
        self,
        user_id: str,
        result: IntentResult,
        profile: BusinessProfile,
        history: Sequence[ConversationTurn],
        message: str,
        *,
        trace_id: str | None = None,
    ) -> DispatchOutcome:
        intent = result.intent
        request_logger = get_request_logger(
            logger, trace_id=trace_id, user_id=user_id, intent=intent.value
        )
        flow = NO_FLOW
        if history and intent in MULTI_TURN_INTENTS:
            flow = self._flow_inferencer.infer(history)
        turn = _Turn(
            user_id=user_id,
            result=result,
            profile=profile,
            history=history,
            message=message,
            flow=flow,
            trace_id=trace_id,
        )
        handler = self._handlers.get(intent, self._unknown)
        action = _ACTION_PHRASES.get(intent, "do that")
        try:
            outcome = await handler(turn)
        except QuotaExceededError as exc:
            request_logger.info("Plan limit reached: %s", exc.reason)
            self._metrics.record_quota_rejection()
            return DispatchOutcome(QUOTA_REPLY.format(action=action, reason=exc.reason))
        except OperationNotAllowedError as exc:
            request_logger.info("Operation refused: %s", exc.reason)
            return DispatchOutcome(NOT_ALLOWED_REPLY.format(action=action, reason=exc.reason))
        except PageNotFoundError as exc:
            request_logger.info("Page disappeared during dispatch: %s", exc.reason)
            try:
                pages = await self._pages.list_pages(user_id)
            except Exception:
                request_logger.exception("Page list unavailable")
                self._metrics.record_dispatch_failure(intent.value)
                return DispatchOutcome(TRANSIENT_FAILURE_REPLY.format(action=action))
            return DispatchOutcome(PAGE_NOT_FOUND.format(page_list=format_page_list(pages)))
        except Exception:
            request_logger.exception("Dispatch failed")
            self._metrics.record_dispatch_failure(intent.value)
            return DispatchOutcome(TRANSIENT_FAILURE_REPLY.format(action=action))
        request_logger.info(
            "Dispatched awaiting=%s flow_source=%s",
            outcome.flow.awaiting.value if outcome.flow.awaiting else "-",
            flow.source,
        )
        return outcome

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------
    async def _apply_profile_entities(
        self, turn: _Turn, *, empty_reply: str, success_template: str
    ) -> DispatchOutcome:
        entities: ProfileEntities = _entities(turn.result, ProfileEntities)
        update = entities.to_update()
        if update.is_empty():
            return DispatchOutcome(empty_reply)
        try:
            await self._profile_store.update_profile(turn.user_id, update)
        except ValidationError as exc:
            return DispatchOutcome(PROFILE_INVALID.format(reason=exc.reason))
        return DispatchOutcome(
            success_template.format(fields=format_field_list(update.updated_fields()))
        )

    async def _update_profile(self, turn: _Turn) -> DispatchOutcome:
        return await self._apply_profile_entities(
            turn, empty_reply=ASK_PROFILE_FIELDS, success_template=PROFILE_UPDATED
        )

    async def _user_correction(self, turn: _Turn) -> DispatchOutcome:
        return await self._apply_profile_entities(
            turn, empty_reply=CORRECTION_ASK_VALUE, success_template=CORRECTION_APPLIED
        )

    # -------------------------------------------------------------------------
    # Hand-off actions
    # -------------------------------------------------------------------------
    async def _queued_action(self, turn: _Turn) -> DispatchOutcome:
        intent = turn.result.intent
        entities = turn.result.entities.model_dump(exclude_none=True)
        reply = CREATE_WEBSITE_ACK if intent == IntentType.CREATE_WEBSITE else WRITE_BLOG_ACK
        if intent == IntentType.UPDATE_PAGE_CONTENT:
            generic: GenericEntities = _entities(turn.result, GenericEntities)
            pages = await self._pages.list_pages(turn.user_id)
            page = resolve_page(generic.page, pages)
            if page is None:
                return DispatchOutcome(ASK_CONTENT_PAGE)
            entities["page"] = page.slug
            reply = CONTENT_UPDATE_ACK.format(title=page.title)
        self._action_queue.dispatch(
            ActionCommand(
                action=intent,
                user_id=turn.user_id,
                payload={
                    **entities,
                    "message": turn.message,
                    "profile": {
                        "business_name": turn.profile.business_name,
                        "industry": turn.profile.industry,
                        "services": [service.name for service in turn.profile.services],
                        "city": turn.profile.location.city,
                    },
                },
                trace_id=turn.trace_id,
            )
        )
        return DispatchOutcome(reply)

    # -------------------------------------------------------------------------
    # Suggestions, analytics, billing
    # -------------------------------------------------------------------------
    async def _get_suggestions(self, turn: _Turn) -> DispatchOutcome:
        suggestions = await self._suggestions.get_open_suggestions(turn.user_id)
        actionable = [item for item in suggestions if item.actionable][:SUGGESTION_LIMIT]
        if not actionable:
            return DispatchOutcome(SUGGESTIONS_FALLBACK)
        lines = [SUGGESTIONS_HEADER]
        lines.extend(f"- {item.text}" for item in actionable)
        return DispatchOutcome("\n".join(lines))

    async def _get_analytics(self, turn: _Turn) -> DispatchOutcome:
        try:
            summary = await self._analytics.get_analytics_summary(turn.user_id)
        except AnalyticsUnavailableError as exc:
            return DispatchOutcome(ANALYTICS_UNAVAILABLE.format(reason=exc.reason))
        except Exception:
            logger.exception("analytics.fetch_failed user_id=%s", turn.user_id)
            self._metrics.record_dispatch_failure(IntentType.GET_ANALYTICS.value)
            return DispatchOutcome(ANALYTICS_FAILED)
        return DispatchOutcome(format_analytics(summary))

    async def _billing_question(self, turn: _Turn) -> DispatchOutcome:
        return DispatchOutcome(await self._billing.handle_billing_question(turn.user_id, turn.message))

    async def _unknown(self, turn: _Turn) -> DispatchOutcome:
        return DispatchOutcome(UNKNOWN_INTENT_REPLY)

    # -------------------------------------------------------------------------
    # Page creation
    # -------------------------------------------------------------------------
    async def _match_seo_suggestion(self, user_id: str, message: str) -> Optional[Suggestion]:
        """Find the open SEO suggestion the message accepts, if any."""

        if not _SUGGESTION_ACCEPT_PATTERN.search(message or ""):
            return None
        try:
            suggestions = await self._suggestions.get_open_suggestions(user_id)
        except Exception:
            logger.warning("suggestions.lookup_failed user_id=%s", user_id, exc_info=True)
            return None
        seo = [item for item in suggestions if item.category == SuggestionCategory.SEO_OPPORTUNITY]
        lowered = message.lower()
        for suggestion in seo:
            page_type = suggestion.metadata.page_type or ""
            keyword = (suggestion.metadata.keyword or "").lower()
            if any(word in lowered for word in _PAGE_TYPE_WORDS.get(page_type, ())):
                return suggestion
            if keyword and keyword in lowered:
                return suggestion
        if len(seo) == 1 and _is_bare_affirmative(message):
            return seo[0]
        return None

    async def _create_page(self, turn: _Turn) -> DispatchOutcome:
        entities: CreatePageEntities = _entities(turn.result, CreatePageEntities)

        if turn.flow.is_awaiting(FlowStep.PAGE_DETAILS):
            return await self._create_page_with_details(turn, entities)

        if not entities.clarification_provided:
            suggestion = await self._match_seo_suggestion(turn.user_id, turn.message)
            if suggestion is not None:
                page_type = entities.page_type or suggestion.metadata.page_type or "page"
                keyword = entities.keyword or suggestion.metadata.keyword
                return DispatchOutcome(
                    page_details_question(page_type, keyword),
                    FlowMarker(
                        awaiting=FlowStep.PAGE_DETAILS,
                        page_type=page_type,
                        keyword=keyword,
                        title=entities.title
                        or default_page_title(page_type, keyword, suggestion.text),
                        suggestion_id=suggestion.id,
                    ),
                )

        if not entities.title:
            if (
                not entities.page_type
                and "page" not in turn.message.lower()
                and _is_bare_affirmative(turn.message)
            ):
                return DispatchOutcome(UNKNOWN_INTENT_REPLY)
            return DispatchOutcome(ASK_PAGE_TITLE)

        options = None
        if entities.page_type:
            options = PageGenerationOptions(
                schema_type=schema_for_page_type(entities.page_type),
                additional_context=entities.clarification or "",
                keyword=entities.keyword,
            )
        diff = await self._pages.create_page(turn.user_id, entities.title, turn.profile, options)
        return DispatchOutcome(PAGE_CREATED.format(title=entities.title, diff=diff.render()))

    async def _create_page_with_details(
        self, turn: _Turn, entities: CreatePageEntities
    ) -> DispatchOutcome:
        marker = turn.flow.marker
        page_type = entities.page_type or marker.page_type or "page"
        keyword = entities.keyword or marker.keyword
        title = entities.title or marker.title
        if not title:
            title = default_page_title(page_type, keyword)
        options = PageGenerationOptions(
            schema_type=schema_for_page_type(page_type),
            additional_context=entities.clarification or turn.message,
            keyword=keyword,
        )
        diff = await self._pages.create_page(turn.user_id, title, turn.profile, options)
        if marker.suggestion_id:
            try:
                await self._suggestions.mark_suggestion_used(turn.user_id, marker.suggestion_id)
            except Exception:
                logger.warning(
                    "suggestions.mark_used_failed user_id=%s suggestion_id=%s",
                    turn.user_id,
                    marker.suggestion_id,
                    exc_info=True,
                )
        return DispatchOutcome(SEO_PAGE_CREATED.format(title=title, diff=diff.render()))

    # -------------------------------------------------------------------------
    # Rename / delete / legal
    # -------------------------------------------------------------------------
    async def _rename_page(self, turn: _Turn) -> DispatchOutcome:
        entities: RenamePageEntities = _entities(turn.result, RenamePageEntities)
        if not entities.slug or not entities.new_title:
            return DispatchOutcome(ASK_RENAME_DETAILS)
        pages = await self._pages.list_pages(turn.user_id)
        page = resolve_page(entities.slug, pages)
        if page is None:
            return self._page_not_found(pages)
        diff = await self._pages.rename_page(turn.user_id, page.slug, entities.new_title)
        return DispatchOutcome(PAGE_RENAMED.format(diff=diff.render()))

    def _delete_confirmed(self, turn: _Turn, entities: DeletePageEntities, page: PageSummary) -> bool:
        if entities.confirmed or is_affirmative(entities.confirmation):
            return True
        if not turn.flow.is_awaiting(FlowStep.DELETE_CONFIRMATION):
            return False
        pending = resolve_page(turn.flow.marker.page, [page])
        return pending is not None and is_affirmative(turn.message)

    async def _delete_page(self, turn: _Turn) -> DispatchOutcome:
        entities: DeletePageEntities = _entities(turn.result, DeletePageEntities)
        reference = entities.slug
        if not reference and turn.flow.is_awaiting(FlowStep.DELETE_CONFIRMATION):
            reference = turn.flow.marker.page
        if not reference:
            return DispatchOutcome(ASK_DELETE_TARGET)

        pages = await self._pages.list_pages(turn.user_id)
        if not pages:
            return DispatchOutcome(NO_PAGES_YET)
        page = resolve_page(reference, pages)
        if page is None:
            return self._page_not_found(pages)

        if not self._delete_confirmed(turn, entities, page):
            return DispatchOutcome(
                CONFIRM_DELETE.format(title=page.title, slug=page.slug),
                FlowMarker(
                    awaiting=FlowStep.DELETE_CONFIRMATION,
                    page=page.slug,
                    title=page.title,
                ),
            )
        diff = await self._pages.delete_page(turn.user_id, page.slug)
        return DispatchOutcome(PAGE_DELETED.format(diff=diff.render()))

    async def _generate_legal_pages(self, turn: _Turn) -> DispatchOutcome:
        before = await self._pages.list_pages(turn.user_id)
        await self._legal_pages.generate_legal_pages(turn.user_id, turn.profile)
        after = await self._pages.list_pages(turn.user_id)
        diff = PageDiff(before=[page.label for page in before], after=[page.label for page in after])
        return DispatchOutcome(LEGAL_PAGES_ADDED.format(diff=diff.render()))

    # -------------------------------------------------------------------------
    # Embeds
    # -------------------------------------------------------------------------
    async def _add_embed(self, turn: _Turn) -> DispatchOutcome:
        entities: AddEmbedEntities = _entities(turn.result, AddEmbedEntities)
        html = entities.html
        if not html and contains_html(turn.message):
            html = extract_embed_html(turn.message)
        reference = entities.page
        if not reference and turn.flow.is_awaiting(FlowStep.EMBED_HTML):
            reference = turn.flow.marker.page or turn.flow.marker.title
        if not reference and not html and turn.flow.is_awaiting(FlowStep.EMBED_PAGE):
            reference = clean_page_reference(turn.message)

        pages = await self._pages.list_pages(turn.user_id)
        if not pages:
            return DispatchOutcome(NO_PAGES_YET)
        if not reference:
            return DispatchOutcome(
                ASK_EMBED_PAGE.format(page_list=format_page_list(pages)),
                FlowMarker(awaiting=FlowStep.EMBED_PAGE),
            )
        page = resolve_page(reference, pages)
        if page is None:
            return DispatchOutcome(
                PAGE_NOT_FOUND.format(page_list=format_page_list(pages)),
                FlowMarker(awaiting=FlowStep.EMBED_PAGE),
            )
        if not html:
            return DispatchOutcome(
                ASK_EMBED_HTML.format(title=page.title),
                FlowMarker(awaiting=FlowStep.EMBED_HTML, page=page.slug, title=page.title),
            )
        result = await self._pages.add_embed(turn.user_id, page.slug, html)
        return DispatchOutcome(EMBED_ADDED.format(title=result.page_title))

    def _page_not_found(self, pages: List[PageSummary]) -> DispatchOutcome:
        if not pages:
            return DispatchOutcome(NO_PAGES_YET)
        return DispatchOutcome(PAGE_NOT_FOUND.format(page_list=format_page_list(pages)))
