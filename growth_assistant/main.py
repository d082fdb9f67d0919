from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routers import chat, suggestions
from .services.error_handling import (
    build_error_response,
    log_exception,
    map_exception_to_error_code,
    new_trace_id,
)
from .services.errors import AssistantError
from .services.intent_classifier import configure_langsmith

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Business Growth Assistant",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    async def error_response(request: Request, exc: Exception):
        handled = isinstance(exc, (AssistantError, HTTPException, RequestValidationError))
        trace_id = new_trace_id()
        await log_exception(request=request, exc=exc, trace_id=trace_id, handled=handled)
        error_code, reason, status_code = map_exception_to_error_code(exc)
        debug_payload = {"trace_id": trace_id}
        if isinstance(exc, AssistantError) and exc.debug:
            debug_payload.update(exc.debug)
        return build_error_response(
            error_code=error_code,
            reason=reason,
            status_code=status_code,
            debug_payload=debug_payload,
        )

    for exc_class in (RequestValidationError, HTTPException, AssistantError, Exception):
        app.add_exception_handler(exc_class, error_response)

    app.include_router(chat.router)
    app.include_router(suggestions.router)
    if configure_langsmith(settings):
        logger.info(
            "LangSmith tracing enabled for project=%s",
            settings.langsmith_project or "growth-assistant",
        )
    else:
        logger.info("LangSmith tracing disabled (no API key or flag)")
    logger.info("FastAPI app initialized (env=%s)", settings.env)
    return app


app = create_app()
