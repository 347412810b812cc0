"""
Tests for the WebSocket connection manager state machine.
"""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from graph_link.config.models import WebSocketConfig, WebSocketProtocol
from graph_link.events import CONNECTION_STATE
from graph_link.exceptions import ConnectionStateError, DuplicateSubscriptionError, TransportError
from graph_link.graphql.models import GraphQLRequest
from graph_link.websocket import ConnectionManager, WebSocketConnectionState

REQUEST_A = GraphQLRequest("subscription A { a }")
REQUEST_B = GraphQLRequest("subscription B { b }", variables={"x": 1})


def make_manager(config, transports, sink=None):
    return ConnectionManager(config, sink=sink, transport_factory=transports)


def frame_summary(frames):
    return [(f["type"], f.get("id")) for f in frames]


def failing_on(transports, *attempt_numbers):
    """Factory that raises on the given 1-based attempts, before any transport exists."""
    attempts = []

    def factory(url, config, hooks):
        attempts.append(url)
        if len(attempts) in attempt_numbers:
            raise TransportError("connection refused", url=url)
        return transports(url, config, hooks)

    return factory


class TestConnect:
    """Test connecting and the handshake."""

    def test_connect_moves_to_connecting(self, ws_config, transports, sink):
        manager = make_manager(ws_config, transports, sink)

        manager.connect()

        assert manager.state is WebSocketConnectionState.CONNECTING
        assert transports.last.url == "ws://localhost:8080/graphql-ws"
        assert sink.named(CONNECTION_STATE) == [{"state": "connecting", "previous": "disconnected"}]

    def test_connect_with_url_override(self, ws_config, transports):
        manager = make_manager(ws_config, transports)

        manager.connect("wss://other.example.com/graphql-ws")

        assert manager.url == "wss://other.example.com/graphql-ws"
        assert transports.last.url == "wss://other.example.com/graphql-ws"

    def test_connect_only_from_disconnected(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()

        with pytest.raises(ConnectionStateError):
            manager.connect()

        transports.last.open()
        with pytest.raises(ConnectionStateError):
            manager.connect()
        assert len(transports.transports) == 1

    def test_open_sends_init(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()

        transports.last.open()

        assert manager.is_ready
        assert transports.last.frames == [{"type": "connection_init", "payload": {"token": "abc"}}]

    def test_no_init_without_payload(self, transports):
        config = WebSocketConfig(url="ws://localhost/graphql-ws", reconnect_timeout=None)
        manager = make_manager(config, transports)
        manager.connect()

        transports.last.open()

        assert transports.last.frames == []

    def test_transport_ws_always_sends_init(self, transports):
        config = WebSocketConfig(
            url="ws://localhost/graphql",
            protocol=WebSocketProtocol.GRAPHQL_TRANSPORT_WS,
            reconnect_timeout=None,
        )
        manager = make_manager(config, transports)
        manager.connect()

        transports.last.open()

        assert transports.last.frames == [{"type": "connection_init"}]
        assert manager.state is WebSocketConnectionState.CONNECTING

    def test_factory_failure_rolls_back(self, ws_config, transports, sink):
        manager = ConnectionManager(
            ws_config, sink=sink, transport_factory=failing_on(transports, 1)
        )

        with pytest.raises(TransportError):
            manager.connect()

        assert manager.state is WebSocketConnectionState.DISCONNECTED
        assert sink.named(CONNECTION_STATE)[-1] == {
            "state": "disconnected",
            "previous": "connecting",
        }
        assert manager.reconnect() is True
        transports.last.open()
        assert manager.is_ready

    def test_send_without_transport_raises(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()
        manager._transport = None

        with pytest.raises(ConnectionStateError):
            manager.send({"type": "stop", "id": "abc123"})


class TestTransportWsHandshake:
    """Test the graphql-transport-ws connection_ack handshake."""

    @pytest.fixture
    def config(self):
        return WebSocketConfig(
            url="ws://localhost/graphql",
            protocol=WebSocketProtocol.GRAPHQL_TRANSPORT_WS,
            connection_init_payload={"token": "abc"},
            reconnect_timeout=None,
        )

    def test_operations_wait_for_ack(self, config, transports):
        manager = make_manager(config, transports)
        manager.subscribe("subA", REQUEST_A, MagicMock())
        manager.subscribe("subB", REQUEST_B, MagicMock())
        manager.send({"type": "complete", "id": "queued"})
        manager.connect()

        transports.last.open()

        assert manager.state is WebSocketConnectionState.CONNECTING
        assert transports.last.frames == [{"type": "connection_init", "payload": {"token": "abc"}}]
        assert len(manager.queue) == 1

        transports.last.receive({"type": "connection_ack"})

        assert manager.is_ready
        assert frame_summary(transports.last.frames) == [
            ("connection_init", None),
            ("subscribe", "subA"),
            ("subscribe", "subB"),
            ("complete", "queued"),
        ]
        assert len(manager.queue) == 0

    def test_subscribe_before_ack_is_resumed_once(self, config, transports):
        manager = make_manager(config, transports)
        manager.connect()
        transports.last.open()

        manager.subscribe("abc123", REQUEST_A, MagicMock())
        transports.last.receive({"type": "connection_ack"})
        transports.last.receive({"type": "connection_ack"})

        assert frame_summary(transports.last.frames) == [
            ("connection_init", None),
            ("subscribe", "abc123"),
        ]

    def test_close_before_ack(self, config, transports):
        manager = make_manager(config, transports)
        manager.subscribe("abc123", REQUEST_A, MagicMock())
        manager.connect()
        transports.last.open()

        transports.last.drop()
        transports.last.receive({"type": "connection_ack"})

        assert manager.state is WebSocketConnectionState.DISCONNECTED
        assert manager.registry.active_ids == []

    def test_ack_ignored_on_graphql_ws(self, ws_config, transports, caplog):
        caplog.set_level(logging.DEBUG, logger="graph_link")
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()

        transports.last.receive({"type": "connection_ack"})

        assert manager.is_ready
        assert transports.last.frames == [{"type": "connection_init", "payload": {"token": "abc"}}]
        assert "Ignoring unexpected connection_ack" in caplog.text


class TestSendAndQueue:
    """Test sending and queuing frames."""

    def test_send_queues_until_ready(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.send({"type": "start", "id": "early", "payload": {}})
        manager.connect()
        manager.send({"type": "stop", "id": "early"})

        assert len(manager.queue) == 2

        transports.last.open()

        assert frame_summary(transports.last.frames) == [
            ("connection_init", None),
            ("start", "early"),
            ("stop", "early"),
        ]
        assert len(manager.queue) == 0

        manager.send({"type": "stop", "id": "late"})
        assert transports.last.frames[-1] == {"type": "stop", "id": "late"}

    def test_subscribe_when_ready_sends_start(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()

        manager.subscribe("abc123", REQUEST_B, MagicMock())

        assert transports.last.frames[-1] == {
            "type": "start",
            "id": "abc123",
            "payload": {"query": "subscription B { b }", "variables": {"x": 1}},
        }

    def test_subscribe_while_disconnected_is_resumed_not_queued(self, ws_config, transports):
        manager = make_manager(ws_config, transports)

        manager.subscribe("abc123", REQUEST_A, MagicMock())
        assert len(manager.queue) == 0

        manager.connect()
        transports.last.open()

        assert frame_summary(transports.last.frames) == [
            ("connection_init", None),
            ("start", "abc123"),
        ]

    def test_subscribe_without_resume_is_queued(self, ws_config, transports):
        config = ws_config.model_copy(update={"resume_subscriptions": False})
        manager = make_manager(config, transports)

        manager.subscribe("abc123", REQUEST_A, MagicMock())
        assert len(manager.queue) == 1

        manager.connect()
        transports.last.open()

        assert frame_summary(transports.last.frames) == [
            ("connection_init", None),
            ("start", "abc123"),
        ]

    def test_duplicate_subscription(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.subscribe("abc123", REQUEST_A, MagicMock())

        with pytest.raises(DuplicateSubscriptionError):
            manager.subscribe("abc123", REQUEST_B, MagicMock())

    def test_unsubscribe_when_ready_sends_stop(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()
        manager.subscribe("abc123", REQUEST_A, MagicMock())

        assert manager.unsubscribe("abc123") is True

        assert transports.last.frames[-1] == {"type": "stop", "id": "abc123"}
        assert "abc123" not in manager.registry
        assert manager.unsubscribe("abc123") is False

    def test_unsubscribe_while_disconnected_drops_queued_start(self, ws_config, transports):
        config = ws_config.model_copy(update={"resume_subscriptions": False})
        manager = make_manager(config, transports)
        manager.subscribe("abc123", REQUEST_A, MagicMock())

        manager.unsubscribe("abc123")
        manager.connect()
        transports.last.open()

        assert frame_summary(transports.last.frames) == [("connection_init", None)]


class TestInbound:
    """Test routing of inbound frames."""

    def make_ready(self, ws_config, transports, sink=None):
        manager = make_manager(ws_config, transports, sink)
        manager.connect()
        transports.last.open()
        return manager

    def test_data_routed_to_callback(self, ws_config, transports):
        manager = self.make_ready(ws_config, transports)
        callback = MagicMock()
        manager.subscribe("abc123", REQUEST_A, callback)

        transports.last.receive({"type": "data", "id": "abc123", "payload": {"data": {"a": 1}}})
        transports.last.receive({"type": "data", "id": "abc123", "payload": {"data": {"a": 2}}})

        assert [c.args[0] for c in callback.call_args_list] == [
            {"data": {"a": 1}},
            {"data": {"a": 2}},
        ]

    def test_complete_then_data(self, ws_config, transports):
        manager = self.make_ready(ws_config, transports)
        callback = MagicMock()
        on_complete = MagicMock()
        manager.subscribe("abc123", REQUEST_A, callback, on_complete)

        transports.last.receive({"type": "complete", "id": "abc123"})
        transports.last.receive({"type": "data", "id": "abc123", "payload": {"data": {}}})

        callback.assert_not_called()
        on_complete.assert_called_once_with()
        assert len(manager.registry) == 0

    def test_error_frame_is_logged_not_fatal(self, ws_config, transports, caplog):
        manager = self.make_ready(ws_config, transports)
        manager.subscribe("abc123", REQUEST_A, MagicMock())

        transports.last.receive({"type": "error", "id": "abc123", "payload": {"message": "denied"}})

        assert manager.is_ready
        assert "abc123" in manager.registry
        assert "GraphQL error for abc123: denied" in caplog.text

    def test_unknown_and_malformed_frames_ignored(self, ws_config, transports, caplog):
        manager = self.make_ready(ws_config, transports)

        transports.last.receive({"type": "connection_ack"})
        transports.last.receive({"type": "data", "id": "nobody", "payload": {}})
        transports.last.hooks.on_message("{not json")

        assert manager.is_ready
        assert "Dropping malformed graphql-ws frame" in caplog.text
        assert manager.statistics["frames_received"] == 3

    def test_ping_answered_with_pong(self, transports):
        config = WebSocketConfig(
            url="ws://localhost/graphql",
            protocol=WebSocketProtocol.GRAPHQL_TRANSPORT_WS,
            reconnect_timeout=None,
        )
        self.make_ready(config, transports)
        transports.last.receive({"type": "connection_ack"})
        transports.last.receive({"type": "ping"})

        assert transports.last.frames[-1] == {"type": "pong"}


class TestCloseAndResume:
    """Test disconnects, resubscription and ordering."""

    def test_close_deactivates_subscriptions(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()
        manager.subscribe("a", REQUEST_A, MagicMock())
        manager.subscribe("b", REQUEST_B, MagicMock())

        transports.last.drop()

        assert manager.state is WebSocketConnectionState.DISCONNECTED
        assert manager.registry.ids == ["a", "b"]
        assert manager.registry.active_ids == []
        assert manager.reconnect_pending is False

    def test_error_does_not_change_state(self, ws_config, transports, caplog):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()

        transports.last.hooks.on_error(TransportError("socket reset"))

        assert manager.is_ready
        assert "GraphQL websocket error: socket reset" in caplog.text

    def test_resume_order_after_reconnect(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()
        manager.subscribe("subA", REQUEST_A, MagicMock())
        manager.subscribe("subB", REQUEST_B, MagicMock())

        transports.last.drop()
        manager.send({"type": "stop", "id": "queued"})
        assert manager.reconnect() is True
        transports.last.open()

        assert frame_summary(transports.last.frames) == [
            ("connection_init", None),
            ("start", "subA"),
            ("start", "subB"),
            ("stop", "queued"),
        ]
        assert transports.last.frames[2]["payload"] == {
            "query": "subscription B { b }",
            "variables": {"x": 1},
        }

    def test_resubscribe_restores_active_set(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()
        for subscription_id in ("one", "two", "three"):
            manager.subscribe(subscription_id, REQUEST_A, MagicMock())
        before = set(manager.registry.active_ids)

        transports.last.drop()
        manager.reconnect()
        transports.last.open()

        assert set(manager.registry.active_ids) == before

    def test_resumed_subscription_receives_data(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        callback = MagicMock()
        manager.connect()
        transports.last.open()
        manager.subscribe("abc123", REQUEST_A, callback)
        transports.last.drop()
        manager.reconnect()
        transports.last.open()

        transports.last.receive({"type": "data", "id": "abc123", "payload": {"data": {"a": 1}}})

        callback.assert_called_once_with({"data": {"a": 1}})

    def test_no_resume_leaves_subscriptions_inactive(self, ws_config, transports):
        config = ws_config.model_copy(update={"resume_subscriptions": False})
        manager = make_manager(config, transports)
        callback = MagicMock()
        manager.connect()
        transports.last.open()
        manager.subscribe("abc123", REQUEST_A, callback)
        transports.last.drop()
        manager.reconnect()
        transports.last.open()

        transports.last.receive({"type": "data", "id": "abc123", "payload": {"data": {}}})

        assert frame_summary(transports.last.frames) == [("connection_init", None)]
        assert manager.registry.active_ids == []
        callback.assert_not_called()

    def test_reconnect_is_noop_unless_disconnected(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()

        assert manager.reconnect() is False
        assert len(transports.transports) == 1


class TestDisconnect:
    """Test explicit disconnects and stale transports."""

    def test_disconnect_while_connecting(self, transports):
        config = WebSocketConfig(url="ws://localhost/graphql-ws", reconnect_timeout=10)
        manager = make_manager(config, transports)
        manager.connect()
        stale = transports.last

        manager.disconnect()
        stale.open()
        stale.drop()

        assert stale.closed is True
        assert manager.state is WebSocketConnectionState.DISCONNECTED
        assert manager.reconnect_pending is False
        assert stale.frames == []

    def test_disconnect_when_ready(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        transports.last.open()
        manager.subscribe("abc123", REQUEST_A, MagicMock())

        manager.disconnect()

        assert transports.last.closed is True
        assert manager.state is WebSocketConnectionState.DISCONNECTED
        assert manager.registry.active_ids == []
        assert manager.registry.ids == ["abc123"]

    def test_stale_close_after_reconnect_is_ignored(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        manager.connect()
        first = transports.last
        manager.disconnect()
        manager.connect()
        transports.last.open()

        first.drop()

        assert manager.is_ready

    def test_stale_message_is_ignored(self, ws_config, transports):
        manager = make_manager(ws_config, transports)
        callback = MagicMock()
        manager.subscribe("abc123", REQUEST_A, callback)
        manager.connect()
        first = transports.last
        first.open()
        manager.disconnect()
        manager.connect()
        transports.last.open()

        first.receive({"type": "data", "id": "abc123", "payload": {"data": {}}})

        callback.assert_not_called()


class TestReconnectScheduling:
    """Test the deferred reconnect."""

    @pytest.fixture
    def config(self):
        return WebSocketConfig(
            url="ws://localhost/graphql-ws",
            connection_init_payload={"token": "abc"},
            reconnect_timeout=10,
        )

    @pytest.mark.asyncio
    async def test_reconnects_after_delay(self, config, transports):
        manager = make_manager(config, transports)
        manager.connect()
        transports.last.open()

        transports.last.drop()
        assert manager.reconnect_pending is True

        await asyncio.sleep(0.05)

        assert len(transports.transports) == 2
        assert manager.state is WebSocketConnectionState.CONNECTING
        assert manager.reconnect_pending is False
        assert manager.statistics["reconnect_attempts"] == 1

        transports.last.open()
        assert manager.statistics["reconnect_attempts"] == 0

    @pytest.mark.asyncio
    async def test_failed_connect_is_retried(self, config, transports):
        manager = make_manager(config, transports)
        manager.connect()

        transports.last.drop(TransportError("connection refused"))
        await asyncio.sleep(0.05)

        assert len(transports.transports) == 2

    @pytest.mark.asyncio
    async def test_manual_reconnect_supersedes_timer(self, config, transports):
        manager = make_manager(config, transports)
        manager.connect()
        transports.last.open()
        transports.last.drop()

        manager.reconnect()
        await asyncio.sleep(0.05)

        assert len(transports.transports) == 2
        assert manager.state is WebSocketConnectionState.CONNECTING

    @pytest.mark.asyncio
    async def test_disconnect_cancels_timer(self, config, transports):
        manager = make_manager(config, transports)
        manager.connect()
        transports.last.open()
        transports.last.drop()

        manager.disconnect()
        await asyncio.sleep(0.05)

        assert len(transports.transports) == 1
        assert manager.state is WebSocketConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_timer_skipped_when_connection_recovered(self, config, transports):
        manager = make_manager(config, transports)
        manager.connect()
        transports.last.open()
        transports.last.drop()

        # Fire the timer callback by hand after a manual reconnect.
        generation = manager.statistics["generation"]
        manager.reconnect()
        manager._fire_reconnect(generation)

        assert len(transports.transports) == 2

    @pytest.mark.asyncio
    async def test_timer_reschedules_when_factory_raises(self, config, transports, caplog):
        manager = ConnectionManager(config, transport_factory=failing_on(transports, 2))
        manager.connect()
        transports.last.open()

        transports.last.drop()
        await asyncio.sleep(0.1)

        assert "Reconnect to GraphQL websocket failed" in caplog.text
        assert len(transports.transports) == 2
        assert manager.state is WebSocketConnectionState.CONNECTING
        assert manager.statistics["reconnect_attempts"] == 2
        assert manager.reconnect_pending is False
