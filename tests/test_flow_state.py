from __future__ import annotations

from growth_assistant.models import FlowMarker, FlowStep
from growth_assistant.services.flow_state import FlowStateInferencer, infer_from_text
from growth_assistant.services.response_helpers import (
    ASK_EMBED_HTML,
    ASK_EMBED_PAGE,
    CONFIRM_DELETE,
    FAQ_DETAILS_QUESTION,
    blog_details_question,
)

from conftest import assistant_turn, user_turn


def test_structured_marker_wins() -> None:
    marker = FlowMarker(awaiting=FlowStep.EMBED_HTML, page="contact", title="Contact")
    history = [user_turn("add a map"), assistant_turn("anything", marker), user_turn("ok")]

    state = FlowStateInferencer().infer(history)

    assert state.source == "marker"
    assert state.marker == marker
    assert state.is_awaiting(FlowStep.EMBED_HTML)


def test_empty_marker_closes_flow_even_if_text_matches() -> None:
    text = ASK_EMBED_PAGE.format(page_list='"Home" (/home)')
    history = [assistant_turn(text, FlowMarker())]

    state = FlowStateInferencer().infer(history)

    assert state.awaiting is None
    assert state.source == "marker"


def test_only_latest_assistant_turn_counts() -> None:
    history = [
        assistant_turn("Which page?", FlowMarker(awaiting=FlowStep.EMBED_PAGE)),
        user_turn("Contact"),
        assistant_turn("Done!", FlowMarker()),
    ]

    assert FlowStateInferencer().infer(history).awaiting is None


def test_no_assistant_turn_means_no_flow() -> None:
    state = FlowStateInferencer().infer([user_turn("hello")])

    assert state.awaiting is None
    assert state.source == "none"


def test_text_fallback_for_unmarked_turns() -> None:
    history = [assistant_turn(CONFIRM_DELETE.format(title="Contact", slug="contact"))]

    state = FlowStateInferencer().infer(history)

    assert state.source == "text"
    assert state.marker == FlowMarker(awaiting=FlowStep.DELETE_CONFIRMATION, page="contact")


def test_infer_from_text_prompts() -> None:
    assert infer_from_text(ASK_EMBED_PAGE.format(page_list="")).awaiting == FlowStep.EMBED_PAGE
    assert infer_from_text(ASK_EMBED_HTML.format(title="Contact")) == FlowMarker(
        awaiting=FlowStep.EMBED_HTML, page="Contact"
    )
    assert infer_from_text(FAQ_DETAILS_QUESTION) == FlowMarker(
        awaiting=FlowStep.PAGE_DETAILS, page_type="faq"
    )
    assert infer_from_text(blog_details_question("winter pipe care")) == FlowMarker(
        awaiting=FlowStep.PAGE_DETAILS, page_type="blog", keyword="winter pipe care"
    )
    assert infer_from_text("Thanks! Anything else?") == FlowMarker()
