"""
Registry of subscriptions issued over the WebSocket.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..callbacks import CallbackDispatcher
from ..events import SUBSCRIPTION_COMPLETE, SUBSCRIPTION_DATA, EventSink, NullEventSink
from ..exceptions import DuplicateSubscriptionError, UnknownSubscriptionError
from ..graphql.models import GraphQLCallback, GraphQLRequest
from .core_models import Subscription

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """
    Subscriptions keyed by operation id, in registration order.

    Entries survive a disconnect with ``active`` cleared so they can be
    resumed; they are only dropped on completion, explicit removal or
    ``prune_inactive``.
    """

    def __init__(
        self,
        dispatcher: Optional[CallbackDispatcher] = None,
        sink: Optional[EventSink] = None,
    ) -> None:
        self._sink: EventSink = sink or NullEventSink()
        self._dispatcher = dispatcher or CallbackDispatcher(self._sink)
        self._subscriptions: Dict[str, Subscription] = {}

    def __contains__(self, subscription_id: object) -> bool:
        return subscription_id in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __iter__(self) -> Iterator[Subscription]:
        return iter(list(self._subscriptions.values()))

    def __getitem__(self, subscription_id: str) -> Subscription:
        try:
            return self._subscriptions[subscription_id]
        except KeyError:
            raise UnknownSubscriptionError(subscription_id) from None

    def get(self, subscription_id: str) -> Optional[Subscription]:
        return self._subscriptions.get(subscription_id)

    @property
    def ids(self) -> List[str]:
        return list(self._subscriptions)

    @property
    def active_ids(self) -> List[str]:
        return [s.id for s in self._subscriptions.values() if s.active]

    def add(
        self,
        subscription_id: str,
        request: GraphQLRequest,
        callback: GraphQLCallback,
        on_complete: Optional[Callable[[], Any]] = None,
    ) -> Subscription:
        """
        Track a new subscription.

        Raises:
            DuplicateSubscriptionError: If the id is already tracked
        """
        if subscription_id in self._subscriptions:
            raise DuplicateSubscriptionError(subscription_id)

        subscription = Subscription(
            id=subscription_id,
            request=request,
            callback=callback,
            on_complete=on_complete,
        )
        self._subscriptions[subscription_id] = subscription
        self._dispatcher.register(subscription_id, callback, on_complete=on_complete)
        return subscription

    def on_data(self, subscription_id: str, payload: Any) -> bool:
        """
        Deliver a data payload to an active subscription.

        Data for unknown or inactive ids is expected when an unsubscribe
        races in-flight frames, so it is dropped.

        Returns:
            True if the payload was delivered
        """
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None or not subscription.active:
            logger.debug(f"No active subscription found for {subscription_id}")
            return False

        self._sink.emit(SUBSCRIPTION_DATA, {"id": subscription_id, "payload": payload})
        return self._dispatcher.invoke(subscription_id, payload)

    def on_complete(self, subscription_id: str) -> bool:
        """
        Complete a subscription: notify its completion callback and drop it.

        Returns:
            True if the subscription was tracked
        """
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            logger.debug(f"Completion for unknown subscription {subscription_id}")
            return False

        self._sink.emit(SUBSCRIPTION_COMPLETE, {"id": subscription_id})
        self._dispatcher.complete(subscription_id)
        return True

    def remove(self, subscription_id: str) -> Optional[Subscription]:
        """Drop a subscription without notifying it and return it."""
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is not None:
            self._dispatcher.discard(subscription_id)
        return subscription

    def deactivate_all(self) -> None:
        for subscription in self._subscriptions.values():
            subscription.active = False

    def activate_all(self) -> List[Subscription]:
        """Mark every subscription active and return them in registration order."""
        subscriptions = list(self._subscriptions.values())
        for subscription in subscriptions:
            subscription.active = True
        return subscriptions

    def prune_inactive(self) -> List[str]:
        """Drop every inactive subscription and return the dropped ids."""
        pruned = [s.id for s in self._subscriptions.values() if not s.active]
        for subscription_id in pruned:
            self.remove(subscription_id)
        return pruned
