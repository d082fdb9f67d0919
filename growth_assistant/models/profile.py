from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BrandVoice(StrEnum):
    FRIENDLY = "friendly"
    PROFESSIONAL = "professional"
    WITTY = "witty"
    FORMAL = "formal"


class Location(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = Field(default="", validation_alias=AliasChoices("zip_code", "zipCode", "zip"))
    country: str = ""


class ContactInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    phone: str = ""
    email: str = ""
    website: Optional[str] = None


class Service(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: str = ""
    price: Optional[str] = None


class BusinessHours(BaseModel):
    model_config = ConfigDict(extra="ignore")

    day: str
    open: str
    close: str


class CustomAttribute(BaseModel):
    model_config = ConfigDict(extra="ignore")

    label: str
    value: str


class BusinessProfile(BaseModel):
    """The single business profile a user owns."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str
    business_name: str = Field(validation_alias=AliasChoices("business_name", "businessName"))
    industry: str
    location: Location = Field(default_factory=Location)
    contact_info: ContactInfo = Field(
        default_factory=ContactInfo,
        validation_alias=AliasChoices("contact_info", "contactInfo"),
    )
    services: List[Service] = Field(default_factory=list)
    hours: List[BusinessHours] = Field(default_factory=list)
    brand_voice: BrandVoice = Field(
        default=BrandVoice.PROFESSIONAL,
        validation_alias=AliasChoices("brand_voice", "brandVoice"),
    )
    target_audience: str = Field(
        default="",
        validation_alias=AliasChoices("target_audience", "targetAudience"),
    )
    custom_attributes: List[CustomAttribute] = Field(
        default_factory=list,
        validation_alias=AliasChoices("custom_attributes", "customAttributes"),
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def summary(self) -> str:
        """Short plain-text description used in prompts and suggestions."""

        parts = [f"{self.business_name} ({self.industry})"]
        place = ", ".join(part for part in (self.location.city, self.location.state) if part)
        if place:
            parts.append(f"located in {place}")
        if self.services:
            parts.append("services: " + ", ".join(service.name for service in self.services))
        if self.target_audience:
            parts.append(f"audience: {self.target_audience}")
        parts.append(f"brand voice: {self.brand_voice.value}")
        return "; ".join(parts)


_CONTACT_KEYS = {"phone", "email", "website"}
_LOCATION_KEYS = {"address", "city", "state", "zip_code", "zipCode", "zip", "country"}


class ProfileUpdate(BaseModel):
    """Partial profile used for create, update and scrape results.

    Flat contact and location keys (``phone``, ``city``...) are folded into
    the nested objects so that loosely shaped classifier output validates.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    business_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("business_name", "businessName", "name"),
    )
    industry: Optional[str] = None
    location: Optional[Location] = None
    contact_info: Optional[ContactInfo] = Field(
        default=None,
        validation_alias=AliasChoices("contact_info", "contactInfo", "contact"),
    )
    services: Optional[List[Service]] = None
    hours: Optional[List[BusinessHours]] = None
    brand_voice: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("brand_voice", "brandVoice"),
    )
    target_audience: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("target_audience", "targetAudience"),
    )
    custom_attributes: Optional[List[CustomAttribute]] = Field(
        default=None,
        validation_alias=AliasChoices("custom_attributes", "customAttributes"),
    )

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        contact = {key: data.pop(key) for key in list(data) if key in _CONTACT_KEYS}
        location = {key: data.pop(key) for key in list(data) if key in _LOCATION_KEYS}
        if contact:
            existing = data.get("contact_info") or data.get("contactInfo") or {}
            if isinstance(existing, BaseModel):
                existing = existing.model_dump(exclude_unset=True)
            data.pop("contactInfo", None)
            data["contact_info"] = {**existing, **contact}
        if location:
            existing = data.get("location") or {}
            if isinstance(existing, BaseModel):
                existing = existing.model_dump(exclude_unset=True)
            data["location"] = {**existing, **location}
        return data

    @field_validator("services", mode="before")
    @classmethod
    def _services_from_names(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (str, dict)):
            value = [value]
        return [{"name": item} if isinstance(item, str) else item for item in value]

    def updated_fields(self) -> list[str]:
        """Names of the fields this update carries, in declaration order."""

        return [name for name in type(self).model_fields if getattr(self, name) is not None]

    def is_empty(self) -> bool:
        return not self.updated_fields()
