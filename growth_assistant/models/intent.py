from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..intents import IntentType
from .profile import ProfileUpdate


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class _Entities(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CreatePageEntities(_Entities):
    title: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("title", "pageTitle", "page_title", "name"),
    )
    page_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("page_type", "pageType", "type"),
    )
    keyword: Optional[str] = None
    clarification: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("clarification", "details", "additionalContext"),
    )
    clarification_provided: bool = Field(
        default=False,
        validation_alias=AliasChoices("clarification_provided", "clarificationProvided"),
    )

    @field_validator("title", "page_type", "keyword", "clarification", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("page_type")
    @classmethod
    def _lower(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value


class DeletePageEntities(_Entities):
    slug: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("slug", "pageSlug", "page", "title", "pageTitle"),
    )
    confirmed: bool = False
    confirmation: Optional[str] = None

    @field_validator("slug", "confirmation", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return _blank_to_none(value)


class RenamePageEntities(_Entities):
    slug: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("slug", "pageSlug", "page", "oldTitle", "currentTitle"),
    )
    new_title: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("new_title", "newTitle", "title"),
    )

    @field_validator("slug", "new_title", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return _blank_to_none(value)


class AddEmbedEntities(_Entities):
    page: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("page", "pageSlug", "slug", "pageTitle"),
    )
    html: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("html", "htmlContent", "embedCode", "code"),
    )

    @field_validator("page", "html", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ProfileEntities(ProfileUpdate):
    """Profile fields carried by UPDATE_PROFILE and USER_CORRECTION."""

    def to_update(self) -> ProfileUpdate:
        return ProfileUpdate.model_validate(self.model_dump(exclude_unset=True, exclude_none=True))


class GenericEntities(_Entities):
    """Loose bag for intents without a dedicated entity shape."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    page: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("page", "pageSlug", "slug", "pageTitle"),
    )
    topic: Optional[str] = None


IntentEntities = Union[
    CreatePageEntities,
    DeletePageEntities,
    RenamePageEntities,
    AddEmbedEntities,
    ProfileEntities,
    GenericEntities,
]

ENTITY_MODELS: Dict[IntentType, type[BaseModel]] = {
    IntentType.CREATE_PAGE: CreatePageEntities,
    IntentType.DELETE_PAGE: DeletePageEntities,
    IntentType.RENAME_PAGE: RenamePageEntities,
    IntentType.ADD_EMBED: AddEmbedEntities,
    IntentType.UPDATE_PROFILE: ProfileEntities,
    IntentType.USER_CORRECTION: ProfileEntities,
}


def build_entities(intent: IntentType, raw: Dict[str, Any] | None) -> IntentEntities:
    """Validate loose classifier entities into the typed model for the intent.

    Raises pydantic.ValidationError when the payload cannot be coerced.
    """

    model = ENTITY_MODELS.get(intent, GenericEntities)
    return model.model_validate(raw or {})


class IntentResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    intent: IntentType
    entities: IntentEntities = Field(default_factory=GenericEntities)
    needs_clarification: bool = False
    clarification_question: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
