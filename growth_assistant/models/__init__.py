from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .conversation import ConversationTurn, FlowMarker, FlowStep, HistoryRole
from .intent import (
    AddEmbedEntities,
    CreatePageEntities,
    DeletePageEntities,
    GenericEntities,
    IntentEntities,
    IntentResult,
    ProfileEntities,
    RenamePageEntities,
    build_entities,
)
from .profile import (
    BrandVoice,
    BusinessHours,
    BusinessProfile,
    ContactInfo,
    CustomAttribute,
    Location,
    ProfileUpdate,
    Service,
)
from .suggestion import (
    SeoInsight,
    SeoOpportunity,
    Suggestion,
    SuggestionCategory,
    SuggestionMetadata,
    SuggestionPriority,
)
from .website import (
    AnalyticsSummary,
    EmbedResult,
    PageDiff,
    PageGenerationOptions,
    PageSection,
    PageSummary,
    SchemaType,
    TopPage,
    TopReferrer,
    WebsitePage,
)


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    message: str


class ChatReply(BaseModel):
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatResponse(BaseModel):
    success: bool = True
    response: ChatReply


class MessagesResponse(BaseModel):
    messages: List[ConversationTurn] = Field(default_factory=list)


class SuggestionsResponse(BaseModel):
    suggestions: List[Suggestion] = Field(default_factory=list)


__all__ = [
    "AddEmbedEntities",
    "AnalyticsSummary",
    "BrandVoice",
    "BusinessHours",
    "BusinessProfile",
    "ChatReply",
    "ChatRequest",
    "ChatResponse",
    "ContactInfo",
    "ConversationTurn",
    "CreatePageEntities",
    "CustomAttribute",
    "DeletePageEntities",
    "EmbedResult",
    "FlowMarker",
    "FlowStep",
    "GenericEntities",
    "HistoryRole",
    "IntentEntities",
    "IntentResult",
    "Location",
    "MessagesResponse",
    "PageDiff",
    "PageGenerationOptions",
    "PageSection",
    "PageSummary",
    "ProfileEntities",
    "ProfileUpdate",
    "RenamePageEntities",
    "SchemaType",
    "SeoInsight",
    "SeoOpportunity",
    "Service",
    "Suggestion",
    "SuggestionCategory",
    "SuggestionMetadata",
    "SuggestionPriority",
    "SuggestionsResponse",
    "TopPage",
    "TopReferrer",
    "WebsitePage",
    "build_entities",
]
