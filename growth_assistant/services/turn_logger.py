from __future__ import annotations

import logging
from typing import Optional

from ..models import ConversationTurn, FlowMarker
from .conversation_store import HistoryStoreAdapter

logger = logging.getLogger(__name__)


class TurnLogger:
    """Persists a user message and the reply to it as a pair, user turn first."""

    def __init__(self, history: HistoryStoreAdapter) -> None:
        self._history = history

    async def log_pair(
        self,
        user_id: str,
        message: str,
        reply: str,
        flow: Optional[FlowMarker] = None,
    ) -> bool:
        """Write both turns; returns False if either write failed."""

        user_ok = await self._history.append_turn(
            ConversationTurn(user_id=user_id, role="user", content=message)
        )
        assistant_ok = await self._history.append_turn(
            ConversationTurn(user_id=user_id, role="assistant", content=reply, flow=flow)
        )
        if not (user_ok and assistant_ok):
            logger.warning(
                "turn_logger.partial_write user_id=%s user_ok=%s assistant_ok=%s",
                user_id,
                user_ok,
                assistant_ok,
            )
        return user_ok and assistant_ok
