from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from ..models import ChatReply, ChatRequest, ChatResponse, MessagesResponse
from ..services.container import AssistantServices, get_services
from ..services.errors import BadRequestError
from ..utils.logging import get_request_logger

router = APIRouter(prefix="/api/chat", tags=["chat"])
logger = logging.getLogger(__name__)


@router.post("/send", response_model=ChatResponse)
async def send_message(
    request: ChatRequest,
    services: AssistantServices = Depends(get_services),
) -> ChatResponse:
    if not request.user_id.strip() or not request.message.strip():
        raise BadRequestError(
            "User ID and message are required",
            reason="user_id and message are required",
        )
    request_logger = get_request_logger(logger, trace_id=None, user_id=request.user_id)
    request_logger.info("Incoming chat message length=%d", len(request.message))
    reply = await services.engine.process_message(request.user_id, request.message)
    return ChatResponse(success=True, response=ChatReply(content=reply))


@router.get("/messages", response_model=MessagesResponse)
async def list_messages(
    user_id: str = Query(..., alias="userId", min_length=1),
    limit: int = Query(50, ge=1, le=200),
    services: AssistantServices = Depends(get_services),
) -> MessagesResponse:
    turns = await services.history.recent(user_id, limit)
    return MessagesResponse(messages=turns)
