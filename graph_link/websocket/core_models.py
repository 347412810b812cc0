"""
Core WebSocket data models.

This module contains the connection states and the records tracked by the
connection manager.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..graphql.models import GraphQLCallback, GraphQLRequest


class WebSocketConnectionState(str, Enum):
    """WebSocket connection states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


@dataclass
class Subscription:
    """
    An operation issued over the WebSocket.

    ``request`` is kept so the operation can be re-issued after a reconnect.
    Inactive subscriptions never receive data; they only wait to be resumed.
    """

    id: str
    request: GraphQLRequest
    callback: GraphQLCallback
    on_complete: Optional[Callable[[], Any]] = None
    active: bool = True
    created_at: float = field(default_factory=time.time)


@dataclass
class QueuedMessage:
    """An id-tagged outbound frame waiting for the connection to be ready."""

    frame: Dict[str, Any]
    enqueued_at: float = field(default_factory=time.time)

    @property
    def id(self) -> Optional[str]:
        """Operation id of the frame, if it carries one."""
        return self.frame.get("id")
