from __future__ import annotations

import logging
from typing import Any


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prefixes messages with trace/user/intent context."""

    def process(self, msg: Any, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        trace_id = self.extra.get("trace_id") or "-"
        user_id = self.extra.get("user_id") or "-"
        intent = self.extra.get("intent") or "-"
        prefix = f"trace_id={trace_id} user_id={user_id} intent={intent}"
        return f'{prefix} msg="{msg}"', kwargs


def get_request_logger(
    logger: logging.Logger | str,
    *,
    trace_id: str | None,
    user_id: str | None,
    intent: str | None = None,
) -> RequestLoggerAdapter:
    base_logger = logging.getLogger(logger) if isinstance(logger, str) else logger
    return RequestLoggerAdapter(
        base_logger,
        {
            "trace_id": trace_id or "-",
            "user_id": user_id or "-",
            "intent": intent or "-",
        },
    )
