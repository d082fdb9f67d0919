from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from ..models import (
    BrandVoice,
    BusinessProfile,
    CustomAttribute,
    ProfileUpdate,
    Service,
)
from .errors import ProfileNotFoundError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


def validate_profile_update(update: ProfileUpdate, *, creating: bool = False) -> None:
    """Raise ValidationError with a user-readable reason for the first bad field."""

    if creating or update.business_name is not None:
        if not (update.business_name or "").strip():
            raise ValidationError(reason="the business name can't be empty")
    if creating or update.industry is not None:
        if not (update.industry or "").strip():
            raise ValidationError(reason="the industry can't be empty")

    contact = update.contact_info
    if contact is not None:
        fields_set = contact.model_fields_set
        if "email" in fields_set and contact.email and not EMAIL_PATTERN.match(contact.email.strip()):
            raise ValidationError(reason=f'"{contact.email}" is not a valid email address')
        if "phone" in fields_set and contact.phone:
            digits = re.sub(r"\D", "", contact.phone)
            if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
                raise ValidationError(
                    reason=f'"{contact.phone}" should have {MIN_PHONE_DIGITS}-{MAX_PHONE_DIGITS} digits'
                )

    if update.brand_voice is not None:
        allowed = [voice.value for voice in BrandVoice]
        if update.brand_voice.strip().lower() not in allowed:
            raise ValidationError(
                reason=f'brand voice must be one of {", ".join(allowed)}, not "{update.brand_voice}"'
            )


def _merge_services(existing: List[Service], incoming: List[Service]) -> List[Service]:
    merged = [service.model_copy() for service in existing]
    index = {service.name.strip().lower(): position for position, service in enumerate(merged)}
    for service in incoming:
        key = service.name.strip().lower()
        if key in index:
            current = merged[index[key]]
            changes = service.model_dump(include=service.model_fields_set - {"name"})
            merged[index[key]] = current.model_copy(update=changes)
        else:
            index[key] = len(merged)
            merged.append(service)
    return merged


def _merge_custom_attributes(
    existing: List[CustomAttribute], incoming: List[CustomAttribute]
) -> List[CustomAttribute]:
    by_label: Dict[str, CustomAttribute] = {attr.label.strip().lower(): attr for attr in existing}
    for attr in incoming:
        by_label[attr.label.strip().lower()] = attr
    return list(by_label.values())


def merge_profile(profile: BusinessProfile, update: ProfileUpdate) -> BusinessProfile:
    """Apply a partial update following the profile merge rules."""

    changes: Dict[str, object] = {}
    if update.business_name is not None:
        changes["business_name"] = update.business_name.strip()
    if update.industry is not None:
        changes["industry"] = update.industry.strip()
    if update.target_audience is not None:
        changes["target_audience"] = update.target_audience
    if update.brand_voice is not None:
        changes["brand_voice"] = BrandVoice(update.brand_voice.strip().lower())
    if update.location is not None:
        changes["location"] = profile.location.model_copy(
            update=update.location.model_dump(exclude_unset=True)
        )
    if update.contact_info is not None:
        changes["contact_info"] = profile.contact_info.model_copy(
            update=update.contact_info.model_dump(exclude_unset=True)
        )
    if update.services is not None:
        changes["services"] = _merge_services(profile.services, update.services)
    if update.custom_attributes is not None:
        changes["custom_attributes"] = _merge_custom_attributes(
            profile.custom_attributes, update.custom_attributes
        )
    if update.hours is not None:
        changes["hours"] = list(update.hours)
    changes["updated_at"] = datetime.now(timezone.utc)
    return profile.model_copy(update=changes)


class InMemoryProfileStore:
    """In-memory business profile storage, one profile per user.

    TODO: replace with a persistent storage (DB) shared across instances.
    """

    def __init__(self) -> None:
        self._profiles: Dict[str, BusinessProfile] = {}
        self._lock = Lock()

    async def get_profile(self, user_id: str) -> Optional[BusinessProfile]:
        if not user_id:
            raise ValueError("user_id must be provided to load a profile")
        with self._lock:
            return self._profiles.get(user_id)

    async def create_profile(self, user_id: str, data: ProfileUpdate) -> BusinessProfile:
        if not user_id:
            raise ValueError("user_id must be provided to create a profile")
        validate_profile_update(data, creating=True)
        with self._lock:
            if user_id in self._profiles:
                raise ValidationError(reason="a business profile already exists for this user")
            profile = merge_profile(
                BusinessProfile(
                    user_id=user_id,
                    business_name=data.business_name.strip(),
                    industry=data.industry.strip(),
                ),
                data,
            )
            self._profiles[user_id] = profile
        logger.info("profile.created user_id=%s business_name=%s", user_id, profile.business_name)
        return profile

    async def update_profile(self, user_id: str, update: ProfileUpdate) -> BusinessProfile:
        if not user_id:
            raise ValueError("user_id must be provided to update a profile")
        validate_profile_update(update)
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                raise ProfileNotFoundError(reason="no business profile exists yet")
            profile = merge_profile(profile, update)
            self._profiles[user_id] = profile
        logger.info(
            "profile.updated user_id=%s fields=%s", user_id, ",".join(update.updated_fields())
        )
        return profile

