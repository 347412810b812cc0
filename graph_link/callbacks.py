"""
Correlation of operation ids with caller callbacks.

This module provides the dispatcher that delivers responses to the callback
registered for an operation. HTTP calls register one-shot callbacks under a
synthetic id; subscriptions register multi-shot callbacks under their
operation id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .events import CALLBACK, EventSink, NullEventSink
from .utils import generate_query_id

logger = logging.getLogger(__name__)

PayloadCallback = Callable[[Any], Any]


@dataclass
class _Registration:
    callback: PayloadCallback
    on_complete: Optional[Callable[[], Any]] = None
    one_shot: bool = False


class CallbackDispatcher:
    """
    Registry of callbacks keyed by operation or callback id.

    A one-shot callback is dropped before it is invoked, so it runs at most
    once. A multi-shot callback runs once per ``invoke`` until ``complete``
    drops it. Exceptions raised by callbacks are logged and never propagate
    into the transport that delivered the payload.
    """

    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self._sink: EventSink = sink or NullEventSink()
        self._registrations: Dict[str, _Registration] = {}

    def __contains__(self, callback_id: object) -> bool:
        return callback_id in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    def register(
        self,
        callback_id: str,
        callback: PayloadCallback,
        on_complete: Optional[Callable[[], Any]] = None,
        one_shot: bool = False,
    ) -> None:
        """
        Register a callback under an id, replacing any previous one.

        Args:
            callback_id: Operation or callback id
            callback: Called with each payload
            on_complete: Called once when the operation completes
            one_shot: Drop the registration after the first payload
        """
        self._registrations[callback_id] = _Registration(callback, on_complete, one_shot)

    def register_one_shot(self, callback: PayloadCallback) -> str:
        """Register a one-shot callback under a fresh synthetic id and return it."""
        callback_id = f"callback-{generate_query_id()}"
        while callback_id in self._registrations:
            callback_id = f"callback-{generate_query_id()}"
        self.register(callback_id, callback, one_shot=True)
        return callback_id

    def invoke(self, callback_id: str, payload: Any) -> bool:
        """
        Deliver a payload to the callback registered under an id.

        Returns:
            True if a callback was found, False otherwise
        """
        registration = self._registrations.get(callback_id)
        if registration is None:
            logger.debug(f"No callback registered for {callback_id}")
            return False

        if registration.one_shot:
            del self._registrations[callback_id]

        self._sink.emit(CALLBACK, {"id": callback_id, "payload": payload})
        try:
            registration.callback(payload)
        except Exception as e:
            logger.warning(f"Error in callback for {callback_id}: {e}")
        return True

    def complete(self, callback_id: str) -> bool:
        """
        Drop a registration and fire its completion callback, if any.

        Returns:
            True if a registration was dropped, False otherwise
        """
        registration = self._registrations.pop(callback_id, None)
        if registration is None:
            return False

        if registration.on_complete is not None:
            try:
                registration.on_complete()
            except Exception as e:
                logger.warning(f"Error in completion callback for {callback_id}: {e}")
        return True

    def discard(self, callback_id: str) -> None:
        """Drop a registration without notifying it."""
        self._registrations.pop(callback_id, None)
