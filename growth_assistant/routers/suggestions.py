from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..models import SuggestionsResponse
from ..services.container import AssistantServices, get_services

router = APIRouter(prefix="/api/suggestions", tags=["suggestions"])


@router.get("", response_model=SuggestionsResponse)
async def list_suggestions(
    user_id: str = Query(..., alias="userId", min_length=1),
    services: AssistantServices = Depends(get_services),
) -> SuggestionsResponse:
    suggestions = await services.suggestions.get_open_suggestions(user_id)
    return SuggestionsResponse(suggestions=suggestions)
