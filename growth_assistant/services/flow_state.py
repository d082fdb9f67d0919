from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ..models import ConversationTurn, FlowMarker, FlowStep
from .response_helpers import (
    DELETE_CONFIRM_HINTS,
    EMBED_HTML_HINT,
    EMBED_PAGE_HINTS,
    PAGE_DETAILS_HINTS,
)

logger = logging.getLogger(__name__)

_QUOTED_TITLE = re.compile(r'add the embed to "(?P<title>[^"]+)"', re.IGNORECASE)
_SLUG_IN_PARENS = re.compile(r"\(/(?P<slug>[^)\s]+)\)")
_BLOG_KEYWORD = re.compile(r"blog post about '(?P<keyword>[^']+)'", re.IGNORECASE)


@dataclass(frozen=True)
class FlowState:
    """Where the conversation stands relative to an open multi-turn action."""

    marker: FlowMarker
    source: str  # "marker", "text" or "none"

    @property
    def awaiting(self) -> Optional[FlowStep]:
        return self.marker.awaiting

    def is_awaiting(self, step: FlowStep) -> bool:
        return self.marker.awaiting == step


NO_FLOW = FlowState(marker=FlowMarker(), source="none")


def last_assistant_turn(history: Sequence[ConversationTurn]) -> Optional[ConversationTurn]:
    for turn in reversed(history):
        if turn.role == "assistant":
            return turn
    return None


def infer_from_text(content: str) -> FlowMarker:
    """Recover the pending step from the stable prompt phrases alone."""

    lowered = content.lower()
    if all(hint in lowered for hint in EMBED_PAGE_HINTS):
        return FlowMarker(awaiting=FlowStep.EMBED_PAGE)
    if EMBED_HTML_HINT in lowered:
        match = _QUOTED_TITLE.search(content)
        return FlowMarker(
            awaiting=FlowStep.EMBED_HTML,
            page=match.group("title") if match else None,
        )
    if all(hint in lowered for hint in DELETE_CONFIRM_HINTS):
        match = _SLUG_IN_PARENS.search(content)
        return FlowMarker(
            awaiting=FlowStep.DELETE_CONFIRMATION,
            page=match.group("slug") if match else None,
        )
    for hint, page_type in PAGE_DETAILS_HINTS.items():
        if hint in lowered:
            keyword = None
            if page_type == "blog":
                keyword_match = _BLOG_KEYWORD.search(content)
                keyword = keyword_match.group("keyword") if keyword_match else None
            return FlowMarker(awaiting=FlowStep.PAGE_DETAILS, page_type=page_type, keyword=keyword)
    return FlowMarker()


class FlowStateInferencer:
    """Reads the open flow from the most recent assistant turn.

    A structured marker on the turn wins, even an empty one. Turns written
    without a marker fall back to phrase matching.
    """

    def infer(self, history: Sequence[ConversationTurn]) -> FlowState:
        turn = last_assistant_turn(history)
        if turn is None:
            return NO_FLOW
        if turn.flow is not None:
            return FlowState(marker=turn.flow, source="marker")
        marker = infer_from_text(turn.content)
        if marker.awaiting is None:
            return NO_FLOW
        logger.debug("flow_state.text_fallback awaiting=%s", marker.awaiting)
        return FlowState(marker=marker, source="text")


_flow_state_inferencer = FlowStateInferencer()


def get_flow_state_inferencer() -> FlowStateInferencer:
    return _flow_state_inferencer
