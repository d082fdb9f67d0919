from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

HistoryRole = Literal["user", "assistant"]


class FlowStep(StrEnum):
    """What the assistant is waiting for after its last turn."""

    EMBED_PAGE = "embed_page"
    EMBED_HTML = "embed_html"
    PAGE_DETAILS = "page_details"
    DELETE_CONFIRMATION = "delete_confirmation"


class FlowMarker(BaseModel):
    """Structured record of an open multi-turn action, stored on the assistant turn."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    awaiting: Optional[FlowStep] = None
    page: Optional[str] = None
    page_type: Optional[str] = None
    keyword: Optional[str] = None
    title: Optional[str] = None
    suggestion_id: Optional[str] = None


class ConversationTurn(BaseModel):
    """One immutable message in a user's conversation log."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    turn_id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    role: HistoryRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    flow: Optional[FlowMarker] = None
