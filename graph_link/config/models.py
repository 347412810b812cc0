"""
Configuration models for graph_link.

This module defines the configuration data models with validation and defaults.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils import default_ws_url


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class WebSocketProtocol(str, Enum):
    """Supported GraphQL-over-WebSocket subprotocols."""

    GRAPHQL_WS = "graphql-ws"
    GRAPHQL_TRANSPORT_WS = "graphql-transport-ws"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default=LogLevel.INFO, description="Default logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    enable_console: bool = Field(default=True, description="Enable console logging")
    enable_structured: bool = Field(
        default=False, description="Enable structured JSON logging"
    )

    # Component-specific log levels
    component_levels: Dict[str, LogLevel] = Field(
        default_factory=dict, description="Per-component log levels"
    )


class WebSocketConfig(BaseModel):
    """Configuration for the subscription WebSocket."""

    url: str = Field(description="WebSocket URL (ws:// or wss://)")
    protocol: WebSocketProtocol = Field(
        default=WebSocketProtocol.GRAPHQL_WS, description="WebSocket subprotocol"
    )
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Additional headers for handshake"
    )

    # Handshake and lifecycle
    connection_init_payload: Optional[Dict[str, Any]] = Field(
        default=None, description="Payload sent in connection_init after each connect"
    )
    resume_subscriptions: bool = Field(
        default=True, description="Re-issue tracked subscriptions after reconnecting"
    )
    reconnect_timeout: Optional[int] = Field(
        default=5000,
        ge=0,
        description="Delay in milliseconds before reconnecting; None disables reconnect",
    )

    # Transport settings
    connect_timeout: float = Field(
        default=10.0, ge=1.0, description="Connection timeout in seconds"
    )
    heartbeat: Optional[float] = Field(
        default=30.0, description="Ping interval in seconds; None disables"
    )
    max_message_size: int = Field(
        default=4 * 1024 * 1024, ge=1024, description="Maximum message size in bytes"
    )

    @field_validator("url")
    @classmethod
    def validate_websocket_url(cls, v: str) -> str:
        """Validate that the URL uses a WebSocket scheme."""
        if not (v.startswith("ws://") or v.startswith("wss://")):
            raise ValueError("URL must use ws:// or wss:// scheme")
        return v

    @property
    def reconnect_delay(self) -> Optional[float]:
        """Reconnect delay in seconds, or None when reconnect is disabled."""
        if self.reconnect_timeout is None:
            return None
        return self.reconnect_timeout / 1000.0


class HttpConfig(BaseModel):
    """Configuration for GraphQL over HTTP."""

    url: str = Field(description="GraphQL HTTP endpoint")
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Default headers for requests"
    )
    timeout: float = Field(default=30.0, ge=1.0, description="Request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        """Validate that the URL uses an HTTP scheme."""
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("URL must use http:// or https:// scheme")
        return v


class ClientConfig(BaseModel):
    """Top-level client configuration."""

    http: HttpConfig
    ws: Optional[WebSocketConfig] = Field(
        default=None, description="WebSocket settings; None disables subscriptions"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    @classmethod
    def from_urls(
        cls,
        http_url: str,
        ws_url: Optional[str] = None,
        derive_ws_url: bool = True,
        **ws_options: Any,
    ) -> "ClientConfig":
        """
        Build a configuration from endpoint URLs.

        Args:
            http_url: GraphQL HTTP endpoint
            ws_url: WebSocket endpoint; derived from http_url when omitted
            derive_ws_url: Whether to derive a WebSocket URL when ws_url is None
            **ws_options: Extra WebSocketConfig fields

        Returns:
            ClientConfig for the given endpoints
        """
        if ws_url is None and derive_ws_url:
            ws_url = default_ws_url(http_url)

        ws = WebSocketConfig(url=ws_url, **ws_options) if ws_url else None
        return cls(http=HttpConfig(url=http_url), ws=ws)
