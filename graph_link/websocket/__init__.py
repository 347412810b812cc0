"""
GraphQL subscriptions over WebSocket.

This module provides the connection manager that keeps a graphql-ws
connection alive across drops, together with its subscription registry,
outgoing queue, frame codec and transport.
"""

from .core_models import QueuedMessage, Subscription, WebSocketConnectionState
from .manager import ConnectionManager
from .protocol import FrameCodec, InboundFrame, InboundKind
from .queue import OutgoingQueue
from .registry import SubscriptionRegistry
from .transport import (
    AiohttpWebSocketTransport,
    TransportFactory,
    TransportHooks,
    WebSocketTransport,
)

__all__ = [
    # Manager
    "ConnectionManager",
    "WebSocketConnectionState",
    # State
    "Subscription",
    "SubscriptionRegistry",
    "QueuedMessage",
    "OutgoingQueue",
    # Protocol
    "FrameCodec",
    "InboundFrame",
    "InboundKind",
    # Transport
    "AiohttpWebSocketTransport",
    "TransportFactory",
    "TransportHooks",
    "WebSocketTransport",
]
