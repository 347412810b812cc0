"""
Event sink used to publish client activity to the host application.

The core never touches application state directly. It calls
``sink.emit(event_name, payload)`` and the host decides what to do with it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

SUBSCRIPTION_DATA = "graph_link.subscription/data"
SUBSCRIPTION_COMPLETE = "graph_link.subscription/complete"
CALLBACK = "graph_link.callback"
CONNECTION_STATE = "graph_link.connection/state"

EVENT_NAMES = (SUBSCRIPTION_DATA, SUBSCRIPTION_COMPLETE, CALLBACK, CONNECTION_STATE)


class EventSink(Protocol):
    """Anything that accepts named events."""

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class NullEventSink:
    """Sink that discards every event."""

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        pass


class ListenerEventSink:
    """
    Sink that fans events out to registered listeners.

    Listener exceptions are logged and do not stop delivery to the remaining
    listeners.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[[Dict[str, Any]], Any]]] = {
            name: [] for name in EVENT_NAMES
        }

    def add_listener(self, event: str, listener: Callable[[Dict[str, Any]], Any]) -> None:
        """Register a listener for an event name."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Callable[[Dict[str, Any]], Any]) -> None:
        """Remove a previously registered listener."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def clear_listeners(self, event: Optional[str] = None) -> None:
        """Clear listeners for one event name or for all of them."""
        if event:
            self._listeners[event].clear()
        else:
            for listeners in self._listeners.values():
                listeners.clear()

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(payload)
            except Exception as e:
                logger.warning(f"Error in {event} listener: {e}")

    @property
    def statistics(self) -> Dict[str, int]:
        """Number of listeners per event name."""
        return {event: len(listeners) for event, listeners in self._listeners.items()}
