"""
WebSocket connection lifecycle.

This module provides the connection manager that owns the subscription
WebSocket: it connects, performs the graphql-ws handshake, resumes
subscriptions, buffers frames while the socket is down and reconnects after
the connection drops.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from ..callbacks import CallbackDispatcher
from ..config.models import WebSocketConfig
from ..events import CONNECTION_STATE, EventSink, NullEventSink
from ..exceptions import ConnectionStateError, ProtocolError
from ..graphql.models import GraphQLCallback, GraphQLRequest
from .core_models import Subscription, WebSocketConnectionState
from .protocol import FrameCodec, InboundKind
from .queue import OutgoingQueue
from .registry import SubscriptionRegistry
from .transport import (
    AiohttpWebSocketTransport,
    TransportFactory,
    TransportHooks,
    WebSocketTransport,
)

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    State machine for the subscription WebSocket.

    States move ``disconnected -> connecting -> ready`` and back to
    ``disconnected`` when the transport closes. On every transition into
    ``ready`` the manager sends, in this order: the ``connection_init``
    frame, a subscribe frame for every tracked subscription (when resuming is
    enabled), then every frame queued while the socket was down. With
    ``graphql-transport-ws`` the state stays ``connecting`` after
    ``connection_init`` until the server answers ``connection_ack``.

    Each connection attempt gets a new generation number and the transport
    hooks are bound to it, so events from a superseded transport are ignored.

    Examples:
        ```python
        config = WebSocketConfig(
            url="wss://api.example.com/graphql-ws",
            connection_init_payload={"token": "..."},
            reconnect_timeout=2000,
        )
        manager = ConnectionManager(config)
        manager.connect()

        manager.subscribe(
            generate_query_id(),
            GraphQLRequest("subscription { ticks { value } }"),
            lambda payload: print(payload["data"]),
        )
        ```
    """

    def __init__(
        self,
        config: WebSocketConfig,
        sink: Optional[EventSink] = None,
        dispatcher: Optional[CallbackDispatcher] = None,
        transport_factory: Optional[TransportFactory] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Initialize the connection manager.

        Args:
            config: WebSocket configuration
            sink: Event sink notified of state changes and subscription events
            dispatcher: Callback dispatcher shared with other executors
            transport_factory: Opens transports; defaults to aiohttp
            loop: Loop used to schedule reconnects; defaults to the running loop
        """
        self.config = config
        self._sink: EventSink = sink or NullEventSink()
        self._dispatcher = dispatcher or CallbackDispatcher(self._sink)
        self._registry = SubscriptionRegistry(self._dispatcher, self._sink)
        self._queue = OutgoingQueue()
        self._codec = FrameCodec(config.protocol)
        self._transport_factory: TransportFactory = (
            transport_factory or AiohttpWebSocketTransport.open
        )
        self._loop = loop

        self._url = config.url
        self._state = WebSocketConnectionState.DISCONNECTED
        self._transport: Optional[WebSocketTransport] = None
        self._generation = 0
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        # graphql-transport-ws: init sent, resume and flush wait for connection_ack
        self._awaiting_ack = False

        # Statistics
        self._connected_at: Optional[float] = None
        self._connect_count = 0
        self._reconnect_attempts = 0
        self._frames_sent = 0
        self._frames_received = 0

    @property
    def state(self) -> WebSocketConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is WebSocketConnectionState.READY

    @property
    def url(self) -> str:
        return self._url

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def queue(self) -> OutgoingQueue:
        return self._queue

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def statistics(self) -> Dict[str, Any]:
        """Connection statistics."""
        return {
            "state": self._state.value,
            "url": self._url,
            "generation": self._generation,
            "connect_count": self._connect_count,
            "reconnect_attempts": self._reconnect_attempts,
            "reconnect_pending": self.reconnect_pending,
            "uptime": (time.time() - self._connected_at) if self._connected_at else None,
            "frames_sent": self._frames_sent,
            "frames_received": self._frames_received,
            "queued_frames": len(self._queue),
            "subscriptions": len(self._registry),
            "active_subscriptions": len(self._registry.active_ids),
        }

    # Lifecycle

    def connect(self, url: Optional[str] = None) -> None:
        """
        Open a new connection.

        Args:
            url: Endpoint to connect to; defaults to the last used URL

        Raises:
            ConnectionStateError: If not currently disconnected
        """
        if self._state is not WebSocketConnectionState.DISCONNECTED:
            raise ConnectionStateError(
                f"Cannot connect while {self._state.value}", state=self._state.value
            )

        self._cancel_reconnect()
        if url:
            self._url = url

        self._generation += 1
        generation = self._generation
        hooks = TransportHooks(
            on_open=lambda: self._on_open(generation),
            on_message=lambda raw: self._on_message(generation, raw),
            on_close=lambda: self._on_close(generation),
            on_error=lambda error: self._on_error(generation, error),
        )

        self._set_state(WebSocketConnectionState.CONNECTING)
        self._awaiting_ack = False
        self._connect_count += 1
        logger.info(f"Connecting to GraphQL websocket {self._url}")
        try:
            self._transport = self._transport_factory(self._url, self.config, hooks)
        except Exception:
            self._generation += 1
            self._set_state(WebSocketConnectionState.DISCONNECTED)
            raise

    def reconnect(self) -> bool:
        """
        Connect again to the last used URL.

        Returns:
            True if a connection attempt was started, False if one is already
            in progress or established
        """
        if self._state is not WebSocketConnectionState.DISCONNECTED:
            logger.debug(f"Reconnect ignored while {self._state.value}")
            return False
        self.connect()
        return True

    def disconnect(self) -> None:
        """
        Close the connection without scheduling a reconnect.

        Tracked subscriptions are kept, inactive, so a later ``connect`` can
        resume them.
        """
        self._cancel_reconnect()

        transport = self._transport
        self._transport = None
        self._generation += 1
        self._awaiting_ack = False
        if transport is not None:
            transport.close()

        self._registry.deactivate_all()
        self._connected_at = None
        self._set_state(WebSocketConnectionState.DISCONNECTED)

    # Outbound

    def send(self, frame: Dict[str, Any]) -> None:
        """Send a frame now if ready, otherwise queue it. Never blocks."""
        if self.is_ready:
            self._transmit(frame)
        else:
            self._queue.enqueue(frame)
            logger.debug(f"Queued {frame.get('type')} frame until the websocket is ready")

    def subscribe(
        self,
        subscription_id: str,
        request: GraphQLRequest,
        callback: GraphQLCallback,
        on_complete: Optional[Callable[[], Any]] = None,
    ) -> Subscription:
        """
        Track a subscription and start it on the server.

        While disconnected with resuming enabled the subscribe frame is not
        queued: the resume step sends it once the connection is ready.

        Raises:
            DuplicateSubscriptionError: If the id is already tracked
        """
        subscription = self._registry.add(subscription_id, request, callback, on_complete)
        frame = self._codec.subscribe(subscription_id, request)

        if self.is_ready:
            self._transmit(frame)
        elif not self.config.resume_subscriptions:
            self._queue.enqueue(frame)
        return subscription

    def unsubscribe(self, subscription_id: str) -> bool:
        """
        Stop a subscription.

        Returns:
            True if the subscription was tracked
        """
        subscription = self._registry.remove(subscription_id)
        if subscription is None:
            logger.debug(f"Unsubscribe for unknown subscription {subscription_id}")
            return False

        if self.is_ready:
            self._transmit(self._codec.stop(subscription_id))
        else:
            self._queue.discard(subscription_id)
        return True

    def _transmit(self, frame: Dict[str, Any]) -> None:
        if self._transport is None:
            raise ConnectionStateError(
                f"No websocket transport while {self._state.value}", state=self._state.value
            )
        self._transport.send(self._codec.encode(frame))
        self._frames_sent += 1
        logger.debug(f"Sent {frame.get('type')} frame", extra={"operation_id": frame.get("id")})

    # Transport hooks

    def _is_current(self, generation: int, event: str) -> bool:
        if generation != self._generation:
            logger.debug(f"Ignoring {event} from a superseded connection")
            return False
        return True

    def _on_open(self, generation: int) -> None:
        if not self._is_current(generation, "open"):
            return
        if self._state is not WebSocketConnectionState.CONNECTING:
            logger.debug(f"Ignoring open while {self._state.value}")
            return

        init_payload = self.config.connection_init_payload
        if self._codec.requires_ack:
            self._transmit(self._codec.connection_init(init_payload))
            self._awaiting_ack = True
            logger.debug("Waiting for connection_ack")
            return

        self._set_state(WebSocketConnectionState.READY)
        if init_payload is not None:
            self._transmit(self._codec.connection_init(init_payload))
        self._start_operations()

    def _on_ack(self) -> None:
        if not self._awaiting_ack or self._state is not WebSocketConnectionState.CONNECTING:
            logger.debug("Ignoring unexpected connection_ack")
            return
        self._awaiting_ack = False
        self._set_state(WebSocketConnectionState.READY)
        self._start_operations()

    def _start_operations(self) -> None:
        """Resume subscriptions, then flush queued frames."""
        self._connected_at = time.time()
        self._reconnect_attempts = 0

        if self.config.resume_subscriptions:
            for subscription in self._registry.activate_all():
                self._transmit(self._codec.subscribe(subscription.id, subscription.request))

        for message in self._queue.drain_all():
            self._transmit(message.frame)

    def _on_message(self, generation: int, raw: Union[str, bytes]) -> None:
        if not self._is_current(generation, "message"):
            return
        self._frames_received += 1

        try:
            frame = self._codec.decode(raw)
        except ProtocolError as e:
            logger.warning(f"Dropping malformed graphql-ws frame: {e.message}")
            return

        if frame.kind is InboundKind.DATA:
            self._registry.on_data(frame.id, frame.payload)
        elif frame.kind is InboundKind.COMPLETE:
            self._registry.on_complete(frame.id)
        elif frame.kind is InboundKind.ERROR:
            logger.warning(f"GraphQL error for {frame.id}: {frame.error_message}")
        elif frame.kind is InboundKind.ACK:
            self._on_ack()
        elif frame.kind is InboundKind.PING:
            if self._transport is not None:
                self._transmit(self._codec.pong())
        else:
            logger.debug(f"Ignoring graphql-ws event {frame.type}")

    def _on_error(self, generation: int, error: BaseException) -> None:
        # The transport always follows an error with a close, which drives the
        # state change.
        if not self._is_current(generation, "error"):
            return
        logger.warning(f"GraphQL websocket error: {error}")

    def _on_close(self, generation: int) -> None:
        if not self._is_current(generation, "close"):
            return

        self._transport = None
        self._awaiting_ack = False
        self._connected_at = None
        self._set_state(WebSocketConnectionState.DISCONNECTED)
        self._registry.deactivate_all()

        delay = self.config.reconnect_delay
        if delay is not None:
            self._schedule_reconnect(delay)

    # Reconnect

    def _schedule_reconnect(self, delay: float) -> None:
        self._cancel_reconnect()
        loop = self._loop or asyncio.get_running_loop()
        generation = self._generation
        self._reconnect_handle = loop.call_later(delay, self._fire_reconnect, generation)
        logger.info(f"Reconnecting to GraphQL websocket in {delay:.2f}s")

    def _fire_reconnect(self, generation: int) -> None:
        self._reconnect_handle = None
        if generation != self._generation or self._state is not WebSocketConnectionState.DISCONNECTED:
            logger.debug("Scheduled reconnect skipped, connection already handled")
            return

        self._reconnect_attempts += 1
        try:
            self.connect()
        except Exception as e:
            logger.warning(f"Reconnect to GraphQL websocket failed: {e!r}")
            delay = self.config.reconnect_delay
            if delay is not None:
                self._schedule_reconnect(delay)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _set_state(self, state: WebSocketConnectionState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info(f"GraphQL websocket {previous.value} -> {state.value}")
        self._sink.emit(CONNECTION_STATE, {"state": state.value, "previous": previous.value})
