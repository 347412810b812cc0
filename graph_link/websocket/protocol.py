"""
graphql-ws frame codec.

Both GraphQL-over-WebSocket dialects are supported. They share
``connection_init``, ``complete`` and ``error`` and differ in the names used
to start, stop and stream an operation: ``start``/``stop``/``data`` for
Apollo's ``graphql-ws`` and ``subscribe``/``complete``/``next`` for
``graphql-transport-ws``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..config.models import WebSocketProtocol
from ..exceptions import ProtocolError
from ..graphql.models import GraphQLRequest

GQL_CONNECTION_INIT = "connection_init"  # Client -> Server
GQL_CONNECTION_ACK = "connection_ack"  # Server -> Client
GQL_CONNECTION_KEEP_ALIVE = "ka"  # Server -> Client (graphql-ws)
GQL_START = "start"  # Client -> Server (graphql-ws)
GQL_STOP = "stop"  # Client -> Server (graphql-ws)
GQL_DATA = "data"  # Server -> Client (graphql-ws)
GQL_SUBSCRIBE = "subscribe"  # Client -> Server (graphql-transport-ws)
GQL_NEXT = "next"  # Server -> Client (graphql-transport-ws)
GQL_PING = "ping"  # Bidirectional (graphql-transport-ws)
GQL_PONG = "pong"  # Bidirectional (graphql-transport-ws)
GQL_ERROR = "error"  # Server -> Client
GQL_COMPLETE = "complete"


@dataclass(frozen=True)
class Vocabulary:
    """Frame type names used by one dialect."""

    subscribe: str
    stop: str
    data: str
    requires_ack: bool


VOCABULARIES = {
    WebSocketProtocol.GRAPHQL_WS: Vocabulary(
        subscribe=GQL_START, stop=GQL_STOP, data=GQL_DATA, requires_ack=False
    ),
    WebSocketProtocol.GRAPHQL_TRANSPORT_WS: Vocabulary(
        subscribe=GQL_SUBSCRIBE, stop=GQL_COMPLETE, data=GQL_NEXT, requires_ack=True
    ),
}


class InboundKind(str, Enum):
    """How the connection manager routes an inbound frame."""

    ACK = "ack"
    DATA = "data"
    COMPLETE = "complete"
    ERROR = "error"
    PING = "ping"
    OTHER = "other"


@dataclass(frozen=True)
class InboundFrame:
    """A decoded server frame."""

    kind: InboundKind
    type: Optional[str]
    id: Optional[str] = None
    payload: Any = None

    @property
    def error_message(self) -> Optional[str]:
        """Best-effort message of an ``error`` frame."""
        payload = self.payload
        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, dict):
            return payload.get("message")
        return None if payload is None else str(payload)


class FrameCodec:
    """Builds outbound frames and decodes inbound ones for one dialect."""

    def __init__(self, protocol: Union[WebSocketProtocol, str] = WebSocketProtocol.GRAPHQL_WS) -> None:
        self.protocol = WebSocketProtocol(protocol)
        self.vocabulary = VOCABULARIES[self.protocol]

    @property
    def requires_ack(self) -> bool:
        """
        Whether connection_init is mandatory and operations must wait for
        connection_ack.
        """
        return self.vocabulary.requires_ack

    def connection_init(self, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        frame: Dict[str, Any] = {"type": GQL_CONNECTION_INIT}
        if payload is not None:
            frame["payload"] = payload
        return frame

    def subscribe(self, operation_id: str, request: GraphQLRequest) -> Dict[str, Any]:
        return {
            "type": self.vocabulary.subscribe,
            "id": operation_id,
            "payload": request.to_dict(),
        }

    def stop(self, operation_id: str) -> Dict[str, Any]:
        return {"type": self.vocabulary.stop, "id": operation_id}

    def pong(self) -> Dict[str, Any]:
        return {"type": GQL_PONG}

    def encode(self, frame: Dict[str, Any]) -> str:
        return json.dumps(frame)

    def decode(self, raw: Union[str, bytes]) -> InboundFrame:
        """
        Decode a raw server message.

        Raises:
            ProtocolError: If the message is not a JSON object
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Invalid graphql-ws frame: {e}", frame=raw)

        if not isinstance(data, dict):
            raise ProtocolError("graphql-ws frame is not an object", frame=data)

        frame_type = data.get("type")
        operation_id = data.get("id")
        if operation_id is not None:
            operation_id = str(operation_id)
        payload = data.get("payload")

        if frame_type == GQL_CONNECTION_ACK:
            kind = InboundKind.ACK
        elif frame_type in (GQL_DATA, GQL_NEXT):
            kind = InboundKind.DATA
        elif frame_type == GQL_COMPLETE:
            kind = InboundKind.COMPLETE
        elif frame_type == GQL_ERROR:
            kind = InboundKind.ERROR
        elif frame_type == GQL_PING and self.protocol is WebSocketProtocol.GRAPHQL_TRANSPORT_WS:
            kind = InboundKind.PING
        else:
            kind = InboundKind.OTHER

        if kind in (InboundKind.DATA, InboundKind.COMPLETE) and operation_id is None:
            raise ProtocolError(f"{frame_type} frame without an id", frame=data)

        return InboundFrame(kind=kind, type=frame_type, id=operation_id, payload=payload)
