"""
WebSocket transport.

A transport owns one physical connection attempt and reports what happens to
it through four hooks. ``on_close`` is called exactly once per transport,
including after ``on_error`` and after a failed connection attempt, so the
connection manager can drive its state machine from ``on_open`` and
``on_close`` alone.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

import aiohttp
from aiohttp import WSMsgType

from ..config.models import WebSocketConfig
from ..exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass
class TransportHooks:
    """Callbacks a transport invokes on the connection manager."""

    on_open: Callable[[], None]
    on_message: Callable[[Union[str, bytes]], None]
    on_close: Callable[[], None]
    on_error: Callable[[BaseException], None]


class WebSocketTransport(Protocol):
    """The operations the connection manager needs from a transport."""

    def send(self, data: str) -> None:
        ...

    def close(self) -> None:
        ...


TransportFactory = Callable[[str, WebSocketConfig, TransportHooks], WebSocketTransport]


class AiohttpWebSocketTransport:
    """
    aiohttp-backed transport.

    ``send`` never blocks: frames go through an ``asyncio.Queue`` drained by a
    single send task, so they reach the socket in the order they were sent.
    Must be created from a running event loop.
    """

    def __init__(
        self,
        url: str,
        config: WebSocketConfig,
        hooks: TransportHooks,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.url = url
        self.config = config
        self._hooks = hooks
        self._session = session
        self._external_session = session is not None
        self._websocket: Optional[aiohttp.ClientWebSocketResponse] = None
        self._send_queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._closing = False

        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"graphql-ws-{id(self)}"
        )
        self._task.add_done_callback(self._on_task_done)

    @classmethod
    def open(cls, url: str, config: WebSocketConfig, hooks: TransportHooks) -> "AiohttpWebSocketTransport":
        """Default ``TransportFactory``."""
        return cls(url, config, hooks)

    @property
    def closed(self) -> bool:
        return self._task.done()

    def send(self, data: str) -> None:
        if self._closing:
            logger.debug("Dropping frame sent on a closing transport")
            return
        self._send_queue.put_nowait(data)

    def close(self) -> None:
        """Close the connection; ``on_close`` follows once it is down."""
        if self._closing:
            return
        self._closing = True
        if self._websocket is None:
            self._task.cancel()
        else:
            self._send_queue.put_nowait(None)

    async def _connect(self, session: aiohttp.ClientSession) -> aiohttp.ClientWebSocketResponse:
        return await asyncio.wait_for(
            session.ws_connect(
                self.url,
                protocols=[self.config.protocol.value],
                headers=self.config.headers,
                heartbeat=self.config.heartbeat,
                max_msg_size=self.config.max_message_size,
            ),
            timeout=self.config.connect_timeout,
        )

    async def _run(self) -> None:
        session = self._session
        if session is None:
            session = aiohttp.ClientSession()
        sender: Optional[asyncio.Task[None]] = None

        try:
            try:
                self._websocket = await self._connect(session)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                self._hooks.on_error(TransportError(f"Failed to connect: {e!r}", url=self.url))
                return

            if self._closing:
                return

            self._hooks.on_open()
            sender = asyncio.create_task(
                self._send_loop(self._websocket), name=f"graphql-ws-send-{id(self)}"
            )

            async for msg in self._websocket:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    self._hooks.on_message(msg.data)
                elif msg.type == WSMsgType.ERROR:
                    self._hooks.on_error(
                        self._websocket.exception() or TransportError("WebSocket error", url=self.url)
                    )
                    break

            logger.debug(f"WebSocket connection to {self.url} closed (code {self._websocket.close_code})")

        finally:
            if sender is not None and not sender.done():
                sender.cancel()
                try:
                    await sender
                except asyncio.CancelledError:
                    pass

            if self._websocket is not None and not self._websocket.closed:
                await self._websocket.close()

            if not self._external_session and not session.closed:
                await session.close()

            self._closing = True
            self._hooks.on_close()

    async def _send_loop(self, websocket: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            data = await self._send_queue.get()
            if data is None:
                await websocket.close()
                return
            try:
                await websocket.send_str(data)
            except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                self._hooks.on_error(TransportError(f"Failed to send frame: {e!r}", url=self.url))
                await websocket.close()
                return

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            logger.debug(f"Task {task.get_name()} was cancelled")
        elif task.exception():
            logger.error(f"Task {task.get_name()} failed: {task.exception()}")
