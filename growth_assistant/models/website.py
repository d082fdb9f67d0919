from __future__ import annotations

from enum import StrEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SchemaType(StrEnum):
    """Schema.org type attached to a generated page."""

    FAQ_PAGE = "FAQPage"
    BLOG_POSTING = "BlogPosting"
    REVIEW = "Review"
    WEB_PAGE = "WebPage"
    LOCAL_BUSINESS = "LocalBusiness"


class PageGenerationOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    schema_type: SchemaType = SchemaType.WEB_PAGE
    additional_context: str = ""
    keyword: Optional[str] = None


class PageSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str = "text"
    content: str = ""


class WebsitePage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    slug: str
    title: str
    schema_type: SchemaType = SchemaType.WEB_PAGE
    sections: List[PageSection] = Field(default_factory=list)


class PageSummary(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    slug: str
    title: str

    @property
    def label(self) -> str:
        return f"{self.title} (/{self.slug})"


class PageDiff(BaseModel):
    """Page composition before and after a mutation."""

    before: List[str]
    after: List[str]

    def render(self) -> str:
        before = ", ".join(self.before) or "(no pages)"
        after = ", ".join(self.after) or "(no pages)"
        return f"Before: {before}\nAfter: {after}"


class EmbedResult(BaseModel):
    page_title: str
    section_id: str


class TopPage(BaseModel):
    path: str
    visitors: int


class TopReferrer(BaseModel):
    source: str
    visitors: int


class AnalyticsSummary(BaseModel):
    period: str = "30d"
    visitors: int = 0
    page_views: int = 0
    top_pages: List[TopPage] = Field(default_factory=list)
    top_referrers: List[TopReferrer] = Field(default_factory=list)
