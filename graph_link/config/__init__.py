"""
Configuration management for graph_link.
"""

from .loader import ConfigLoader, load_config
from .models import (
    ClientConfig,
    HttpConfig,
    LoggingConfig,
    LogLevel,
    WebSocketConfig,
    WebSocketProtocol,
)

__all__ = [
    "ConfigLoader",
    "load_config",
    "ClientConfig",
    "HttpConfig",
    "LoggingConfig",
    "LogLevel",
    "WebSocketConfig",
    "WebSocketProtocol",
]
