"""
Shared test fixtures and configuration for the graph_link test suite.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from graph_link.config.models import WebSocketConfig
from graph_link.graphql.models import GraphQLOperationType, GraphQLRequest
from graph_link.websocket.transport import TransportHooks


class RecordingSink:
    """Event sink that records every event it receives."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def named(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


class FakeTransport:
    """In-memory transport whose events are fired by the test."""

    def __init__(self, url: str, config: WebSocketConfig, hooks: TransportHooks) -> None:
        self.url = url
        self.config = config
        self.hooks = hooks
        self.sent: List[str] = []
        self.closed = False

    def send(self, data: str) -> None:
        self.sent.append(data)

    def close(self) -> None:
        self.closed = True

    @property
    def frames(self) -> List[Dict[str, Any]]:
        return [json.loads(data) for data in self.sent]

    def open(self) -> None:
        self.hooks.on_open()

    def receive(self, frame: Any) -> None:
        self.hooks.on_message(json.dumps(frame))

    def drop(self, error: Optional[BaseException] = None) -> None:
        if error is not None:
            self.hooks.on_error(error)
        self.hooks.on_close()


class FakeTransportFactory:
    """Transport factory that keeps every transport it creates."""

    def __init__(self) -> None:
        self.transports: List[FakeTransport] = []

    def __call__(self, url: str, config: WebSocketConfig, hooks: TransportHooks) -> FakeTransport:
        transport = FakeTransport(url, config, hooks)
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def transports() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def ws_config() -> WebSocketConfig:
    """WebSocket configuration without automatic reconnect."""
    return WebSocketConfig(
        url="ws://localhost:8080/graphql-ws",
        connection_init_payload={"token": "abc"},
        reconnect_timeout=None,
    )


@pytest.fixture
def ticks_request() -> GraphQLRequest:
    return GraphQLRequest(
        query="subscription OnTick { ticks { value } }",
        variables={"every": 1},
        operation_name="OnTick",
        operation_type=GraphQLOperationType.SUBSCRIPTION,
    )
