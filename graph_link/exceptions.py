"""
Exception hierarchy for graph_link.

Runtime transport failures never reach callers as raw exceptions: HTTP
failures are normalized into GraphQL error payloads and WebSocket failures
are logged and recovered by reconnecting. The exceptions below are raised
for caller errors and are used internally to classify failures.
"""

from __future__ import annotations

from typing import Any, Optional


class GraphLinkError(Exception):
    """
    Base exception for all graph_link operations.

    Attributes:
        message: Human-readable error message
        url: Endpoint involved in the error (if applicable)
        details: Additional error details as keyword arguments
    """

    def __init__(self, message: str, url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
        self.details = kwargs


class TransportError(GraphLinkError):
    """
    Raised for transport-level failures.

    Covers refused connections and sockets closed mid-flight. Recovered by a
    scheduled reconnect on the WebSocket path and surfaced as a normalized
    error payload on the HTTP path.

    Attributes:
        status: HTTP status associated with the failure, if any
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message, url)
        self.status = status


class ProtocolError(GraphLinkError):
    """Raised for malformed or unexpected graphql-ws frames."""

    def __init__(self, message: str, frame: Any = None) -> None:
        super().__init__(message)
        self.frame = frame


class MalformedResponseError(GraphLinkError):
    """Raised when an HTTP body is not a GraphQL response."""

    def __init__(self, message: str, body: Any = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.body = body
        self.status = status


class UnknownSubscriptionError(GraphLinkError):
    """Raised when an operation id is not tracked."""

    def __init__(self, subscription_id: str) -> None:
        super().__init__(f"Unknown subscription: {subscription_id}")
        self.subscription_id = subscription_id


class DuplicateSubscriptionError(GraphLinkError):
    """Raised when registering an operation id that is already tracked."""

    def __init__(self, subscription_id: str) -> None:
        super().__init__(f"Subscription already registered: {subscription_id}")
        self.subscription_id = subscription_id


class ConnectionStateError(GraphLinkError):
    """Raised when a connection operation is invalid in the current state."""

    def __init__(self, message: str, state: Optional[str] = None) -> None:
        super().__init__(message)
        self.state = state


class ConfigurationError(GraphLinkError):
    """Raised for invalid or unreadable configuration."""

    pass
