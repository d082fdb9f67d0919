from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SuggestionCategory(StrEnum):
    AHA_MOMENT = "aha_moment"
    GAP_ANALYSIS = "gap_analysis"
    GOAL_FRAMING = "goal_framing"
    SEO_OPPORTUNITY = "seo_opportunity"


class SuggestionPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SuggestionMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    seo_opportunity_id: Optional[str] = None
    seo_insight_id: Optional[str] = None
    page_type: Optional[str] = None
    keyword: Optional[str] = None


class Suggestion(BaseModel):
    """Proactive idea shown to the user."""

    model_config = ConfigDict(extra="ignore")

    id: str
    text: str
    category: SuggestionCategory
    priority: SuggestionPriority = SuggestionPriority.MEDIUM
    actionable: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: SuggestionMetadata = Field(default_factory=SuggestionMetadata)


class SeoOpportunity(BaseModel):
    """A page idea discovered by keyword research, waiting for the user to accept it."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    description: str = ""
    keyword: str
    page_type: str = "page"
    priority: SuggestionPriority = SuggestionPriority.MEDIUM
    status: str = "open"


class SeoInsight(BaseModel):
    """A keyword a competitor ranks for."""

    model_config = ConfigDict(extra="ignore")

    id: str
    keyword: str
    competitor_name: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
