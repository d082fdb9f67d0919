from __future__ import annotations

from typing import Any

from fastapi import status


class AssistantError(Exception):
    """Base error for the assistant and its collaborators.

    ``reason`` is short, safe to show to the user, and used in logs.
    """

    code: str = "INTERNAL_ERROR"
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: str | None = None,
        http_status: int | None = None,
        debug: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or reason or "")
        self.reason = reason or message or self.code
        if http_status is not None:
            self.http_status = http_status
        self.debug = debug or {}


class BadRequestError(AssistantError):
    code = "BAD_REQUEST"
    http_status = status.HTTP_400_BAD_REQUEST


class ValidationError(BadRequestError):
    """Profile or payload data failed validation."""

    code = "VALIDATION_ERROR"


class ProfileNotFoundError(AssistantError):
    code = "PROFILE_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class PageNotFoundError(AssistantError):
    code = "PAGE_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class OperationNotAllowedError(AssistantError):
    """A subsystem refused an operation by rule (e.g. deleting the last page)."""

    code = "NOT_ALLOWED"
    http_status = status.HTTP_409_CONFLICT


class QuotaExceededError(OperationNotAllowedError):
    """Plan limit reached; retrying will not help."""

    code = "QUOTA_EXCEEDED"
    http_status = status.HTTP_402_PAYMENT_REQUIRED


class StorageError(AssistantError):
    code = "STORAGE_ERROR"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class UpstreamError(AssistantError):
    code = "UPSTREAM_UNAVAILABLE"
    http_status = status.HTTP_502_BAD_GATEWAY


class ScrapeError(UpstreamError):
    code = "SCRAPE_FAILED"


class AnalyticsUnavailableError(AssistantError):
    """Analytics are not configured or the site is not published yet."""

    code = "ANALYTICS_UNAVAILABLE"
    http_status = status.HTTP_404_NOT_FOUND

