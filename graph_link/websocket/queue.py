"""
Outbound frames waiting for the WebSocket to become ready.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .core_models import QueuedMessage


class OutgoingQueue:
    """FIFO buffer of id-tagged frames."""

    def __init__(self) -> None:
        self._messages: Deque[QueuedMessage] = deque()

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)

    def enqueue(self, frame: Dict[str, Any]) -> QueuedMessage:
        message = QueuedMessage(frame=frame)
        self._messages.append(message)
        return message

    def peek(self) -> Optional[QueuedMessage]:
        return self._messages[0] if self._messages else None

    def drain_all(self) -> List[QueuedMessage]:
        """Return every queued message in submission order and empty the queue."""
        messages = list(self._messages)
        self._messages.clear()
        return messages

    def discard(self, operation_id: str) -> int:
        """Drop queued frames tagged with an operation id; returns how many."""
        kept = deque(m for m in self._messages if m.id != operation_id)
        dropped = len(self._messages) - len(kept)
        self._messages = kept
        return dropped
