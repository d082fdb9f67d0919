from __future__ import annotations

import logging
from collections import deque
from threading import Lock
from typing import Deque, Dict, List, Optional

from ..models import ConversationTurn, FlowMarker, HistoryRole
from .interfaces import HistoryStore
from .metrics import MetricsService, get_metrics_service

logger = logging.getLogger(__name__)


class ConversationStore:
    """In-memory append-only turn log, one bounded deque per user."""

    def __init__(self, history_limit: int = 500) -> None:
        self._history_limit = history_limit
        self._store: Dict[str, Deque[ConversationTurn]] = {}
        self._lock = Lock()

    async def append(self, turn: ConversationTurn) -> None:
        with self._lock:
            turns = self._store.setdefault(turn.user_id, deque(maxlen=self._history_limit))
            turns.append(turn)

    async def recent(self, user_id: str, limit: int) -> List[ConversationTurn]:
        """Return up to ``limit`` turns, newest first (like an ORDER BY ... DESC query)."""

        if not user_id or limit <= 0:
            return []
        with self._lock:
            turns = list(self._store.get(user_id, ()))
        return list(reversed(turns[-limit:]))

    def count(self, user_id: str) -> int:
        with self._lock:
            return len(self._store.get(user_id, ()))


class HistoryStoreAdapter:
    """Chronological view over a HistoryStore with best-effort writes."""

    def __init__(
        self,
        store: HistoryStore | None = None,
        *,
        metrics: MetricsService | None = None,
    ) -> None:
        self._store = store or get_conversation_store()
        self._metrics = metrics or get_metrics_service()

    async def append_turn(self, turn: ConversationTurn) -> bool:
        """Persist a turn. Failures are logged and counted, never raised."""

        try:
            await self._store.append(turn)
        except Exception:
            logger.exception(
                "history.append_failed user_id=%s role=%s", turn.user_id, turn.role
            )
            self._metrics.record_history_write_failure()
            return False
        return True

    async def append(
        self,
        user_id: str,
        role: HistoryRole,
        content: str,
        flow: Optional[FlowMarker] = None,
    ) -> None:
        await self.append_turn(
            ConversationTurn(user_id=user_id, role=role, content=content, flow=flow)
        )

    async def recent(self, user_id: str, limit: int) -> List[ConversationTurn]:
        """Return up to ``limit`` turns oldest first. Read failures propagate."""

        turns = await self._store.recent(user_id, limit)
        return list(reversed(turns))


_conversation_store = ConversationStore()


def get_conversation_store() -> ConversationStore:
    return _conversation_store
