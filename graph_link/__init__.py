"""
graph_link - a dual-transport GraphQL client.

Queries and mutations are sent over HTTP; subscriptions run over a
graphql-ws WebSocket that survives disconnects. Every result reaches its
callback either as GraphQL data or as a normalized ``{"errors": [...]}``
payload.
"""

from .callbacks import CallbackDispatcher
from .client import GraphQLClient
from .config import (
    ClientConfig,
    ConfigLoader,
    HttpConfig,
    LoggingConfig,
    LogLevel,
    WebSocketConfig,
    WebSocketProtocol,
    load_config,
)
from .events import (
    CALLBACK,
    CONNECTION_STATE,
    SUBSCRIPTION_COMPLETE,
    SUBSCRIPTION_DATA,
    EventSink,
    ListenerEventSink,
    NullEventSink,
)
from .exceptions import (
    ConfigurationError,
    ConnectionStateError,
    DuplicateSubscriptionError,
    GraphLinkError,
    MalformedResponseError,
    ProtocolError,
    TransportError,
    UnknownSubscriptionError,
)
from .graphql import GraphQLOperationType, GraphQLRequest, HttpExecutor, normalize
from .logging import setup_logging
from .utils import default_ws_url, generate_query_id
from .websocket import (
    ConnectionManager,
    OutgoingQueue,
    Subscription,
    SubscriptionRegistry,
    WebSocketConnectionState,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "GraphQLClient",
    "ConnectionManager",
    "HttpExecutor",
    "CallbackDispatcher",
    "SubscriptionRegistry",
    "OutgoingQueue",
    "Subscription",
    "WebSocketConnectionState",
    # GraphQL
    "GraphQLRequest",
    "GraphQLOperationType",
    "normalize",
    # Configuration
    "ClientConfig",
    "HttpConfig",
    "WebSocketConfig",
    "WebSocketProtocol",
    "LoggingConfig",
    "LogLevel",
    "ConfigLoader",
    "load_config",
    "setup_logging",
    # Events
    "EventSink",
    "ListenerEventSink",
    "NullEventSink",
    "SUBSCRIPTION_DATA",
    "SUBSCRIPTION_COMPLETE",
    "CALLBACK",
    "CONNECTION_STATE",
    # Exceptions
    "GraphLinkError",
    "TransportError",
    "ProtocolError",
    "MalformedResponseError",
    "UnknownSubscriptionError",
    "DuplicateSubscriptionError",
    "ConnectionStateError",
    "ConfigurationError",
    # Utilities
    "generate_query_id",
    "default_ws_url",
]
