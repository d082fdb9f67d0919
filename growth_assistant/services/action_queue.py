"""
Action log for requests the assistant acknowledges but hands off.

Website generation, blog writing and page content rewrites run outside the
conversation; the dispatcher records an ``ActionCommand`` here and replies
with an acknowledgement.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

from ..intents import IntentType

logger = logging.getLogger(__name__)


@dataclass
class ActionCommand:
    """A queued unit of work for a downstream worker."""

    action: IntentType
    user_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    trace_id: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class ActionQueue:
    """Bounded in-process queue; every dispatched command is also logged as JSON."""

    def __init__(self, max_items: int = 1000) -> None:
        self._items: Deque[ActionCommand] = deque(maxlen=max_items)
        self._lock = Lock()

    def dispatch(self, command: ActionCommand) -> None:
        with self._lock:
            self._items.append(command)
        logger.info("action.dispatched %s", command.to_json())

    def pending(self, user_id: Optional[str] = None) -> List[ActionCommand]:
        with self._lock:
            items = list(self._items)
        if user_id is None:
            return items
        return [item for item in items if item.user_id == user_id]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


_action_queue = ActionQueue()


def get_action_queue() -> ActionQueue:
    return _action_queue
