"""
GraphQL client.

This module provides the application entry point: queries and mutations go
over HTTP, subscriptions over a long-lived graphql-ws WebSocket. Results are
delivered to callbacks, and failures arrive as normalized
``{"errors": [...]}`` payloads instead of exceptions.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import aiohttp

from .callbacks import CallbackDispatcher
from .config.loader import load_config
from .config.models import ClientConfig
from .events import EventSink, NullEventSink
from .exceptions import ConfigurationError, GraphLinkError
from .graphql.http import HttpExecutor
from .graphql.models import GraphQLCallback, GraphQLOperationType, GraphQLRequest
from .logging import setup_logging
from .utils import generate_query_id
from .websocket.core_models import Subscription, WebSocketConnectionState
from .websocket.manager import ConnectionManager
from .websocket.transport import TransportFactory

logger = logging.getLogger(__name__)


def _ignore(payload: Any) -> None:
    pass


class GraphQLClient:
    """
    Dual-transport GraphQL client.

    Examples:
        ```python
        config = ClientConfig.from_urls(
            "https://api.example.com/graphql",
            connection_init_payload={"token": "..."},
        )

        async with GraphQLClient(config) as client:
            client.query("{ me { name } }", callback=print)

            client.subscribe(
                "subscription OnTick { ticks { value } }",
                callback=lambda payload: print(payload["data"]),
                subscription_id="ticks",
            )
            await asyncio.sleep(10)
            client.unsubscribe("ticks")
        ```
    """

    def __init__(
        self,
        config: ClientConfig,
        sink: Optional[EventSink] = None,
        session: Optional[aiohttp.ClientSession] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration
            sink: Event sink notified of client activity
            session: Optional aiohttp session reused for HTTP calls
            transport_factory: Opens WebSocket transports; defaults to aiohttp
        """
        self.config = config
        self._sink: EventSink = sink or NullEventSink()
        self._dispatcher = CallbackDispatcher(self._sink)
        self._http = HttpExecutor(
            dispatcher=self._dispatcher,
            session=session,
            headers=config.http.headers,
            timeout=config.http.timeout,
        )
        self._ws: Optional[ConnectionManager] = None
        if config.ws is not None:
            self._ws = ConnectionManager(
                config.ws,
                sink=self._sink,
                dispatcher=self._dispatcher,
                transport_factory=transport_factory,
            )

    @classmethod
    def from_config_file(
        cls,
        config_file: Optional[Union[str, Path]] = None,
        sink: Optional[EventSink] = None,
        configure_logging: bool = True,
    ) -> "GraphQLClient":
        """Build a client from a config file and ``GRAPH_LINK_*`` variables."""
        config = load_config(config_file)
        if configure_logging:
            setup_logging(config.logging)
        return cls(config, sink=sink)

    async def __aenter__(self) -> "GraphQLClient":
        if self._ws is not None and self._ws.state is WebSocketConnectionState.DISCONNECTED:
            self._ws.connect()
        return self

    async def __aexit__(self, exc_type: Optional[type], exc_val: Optional[BaseException], exc_tb: Optional[object]) -> None:
        await self.close()

    @property
    def websocket(self) -> Optional[ConnectionManager]:
        """The subscription connection manager, if WebSocket is configured."""
        return self._ws

    @property
    def http(self) -> HttpExecutor:
        return self._http

    def _require_ws(self) -> ConnectionManager:
        if self._ws is None:
            raise ConfigurationError("No WebSocket endpoint configured for subscriptions")
        return self._ws

    # Connection

    def connect(self, url: Optional[str] = None) -> None:
        """Open the subscription WebSocket."""
        self._require_ws().connect(url)

    def reconnect(self) -> bool:
        """Reconnect the subscription WebSocket if it is down."""
        return self._require_ws().reconnect()

    def disconnect(self) -> None:
        """Close the subscription WebSocket without reconnecting."""
        if self._ws is not None:
            self._ws.disconnect()

    async def close(self) -> None:
        """Disconnect and wait for outstanding HTTP calls."""
        self.disconnect()
        await self._http.close()

    # HTTP operations

    def _submit(
        self,
        operation_type: GraphQLOperationType,
        query: str,
        variables: Optional[Dict[str, Any]],
        callback: Optional[GraphQLCallback],
        operation_name: Optional[str],
        request: Optional[Dict[str, Any]],
    ) -> "asyncio.Task[Dict[str, Any]]":
        graphql_request = GraphQLRequest(
            query=query,
            variables=variables or {},
            operation_name=operation_name,
            operation_type=operation_type,
        )
        return self._http.submit(
            self.config.http.url, request, graphql_request.to_dict(), callback or _ignore
        )

    def query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        callback: Optional[GraphQLCallback] = None,
        operation_name: Optional[str] = None,
        request: Optional[Dict[str, Any]] = None,
    ) -> "asyncio.Task[Dict[str, Any]]":
        """
        Run a query over HTTP.

        Args:
            query: GraphQL document
            variables: Operation variables
            callback: Receives the response or a normalized errors payload
            operation_name: Operation to run in a multi-operation document
            request: Extra aiohttp request options (headers, timeout, ...)

        Returns:
            Task resolving to the payload handed to the callback
        """
        return self._submit(
            GraphQLOperationType.QUERY, query, variables, callback, operation_name, request
        )

    def mutate(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        callback: Optional[GraphQLCallback] = None,
        operation_name: Optional[str] = None,
        request: Optional[Dict[str, Any]] = None,
    ) -> "asyncio.Task[Dict[str, Any]]":
        """Run a mutation over HTTP. See ``query``."""
        return self._submit(
            GraphQLOperationType.MUTATION, query, variables, callback, operation_name, request
        )

    async def execute(
        self,
        request: GraphQLRequest,
        callback: Optional[GraphQLCallback] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a query or mutation over HTTP and wait for its payload.

        Raises:
            GraphLinkError: If the request is a subscription
        """
        if request.operation_type is GraphQLOperationType.SUBSCRIPTION:
            raise GraphLinkError("Subscriptions run over the websocket; use subscribe()")
        return await self._http.execute(
            self.config.http.url, options, request.to_dict(), callback or _ignore
        )

    # Subscriptions

    def subscribe(
        self,
        query: str,
        callback: GraphQLCallback,
        variables: Optional[Dict[str, Any]] = None,
        subscription_id: Optional[str] = None,
        operation_name: Optional[str] = None,
        on_complete: Optional[Callable[[], Any]] = None,
    ) -> str:
        """
        Start a subscription over the WebSocket.

        The subscription is queued until the connection is ready and resumed
        after reconnects.

        Args:
            query: GraphQL subscription document
            callback: Called with every data payload
            variables: Operation variables
            subscription_id: Operation id; generated when omitted
            operation_name: Operation to run in a multi-operation document
            on_complete: Called once when the server completes the subscription

        Returns:
            The subscription id

        Raises:
            ConfigurationError: If no WebSocket endpoint is configured
            DuplicateSubscriptionError: If the id is already tracked
        """
        manager = self._require_ws()
        if subscription_id is None:
            subscription_id = generate_query_id()
            while subscription_id in manager.registry:
                subscription_id = generate_query_id()

        request = GraphQLRequest(
            query=query,
            variables=variables or {},
            operation_name=operation_name,
            operation_type=GraphQLOperationType.SUBSCRIPTION,
        )
        manager.subscribe(subscription_id, request, callback, on_complete)
        return subscription_id

    def get_subscription(self, subscription_id: str) -> Subscription:
        """
        Look up a tracked subscription.

        Raises:
            UnknownSubscriptionError: If the id is not tracked
        """
        return self._require_ws().registry[subscription_id]

    def unsubscribe(self, subscription_id: str) -> bool:
        """Stop a subscription; returns False if it was not tracked."""
        return self._require_ws().unsubscribe(subscription_id)
