"""
Change notification fan-out.

The orchestrator receives a ChangeNotifier and calls it after each commit.
Publishing is fire-and-forget: every implementation catches and logs its own
failures, so a notification problem never changes a transition's outcome.

Usage:
    notifier = get_change_notifier()
    notifier.publish_order_change(ChangeEvent.for_order(EventType.ORDER_READY, order.id))
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from functools import lru_cache

import redis

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.redis_pool import get_redis_sync_client
from .domain_event import ChangeEvent, EventType

logger = get_logger(__name__)

Subscriber = Callable[[ChangeEvent], None]


class ChangeNotifier(ABC):
    """Publish/subscribe seam between the order engine and its listeners."""

    @abstractmethod
    def publish(self, channel: str, event: ChangeEvent) -> bool:
        """Deliver ``event`` on ``channel``. Returns False on failure, never raises."""

    def publish_order_change(
        self,
        event: ChangeEvent,
        include_notifications: bool = True,
    ) -> None:
        """
        Announce an order change on the orders channel and, unless disabled,
        ask badge counters to refresh on the notifications channel.
        """
        self.publish(settings.orders_channel, event)
        if include_notifications:
            self.publish(
                settings.notifications_channel,
                ChangeEvent(
                    event_type=EventType.NOTIFICATIONS_CHANGED,
                    entity_type="notifications",
                    payload={"cause": event.event_type.value},
                ),
            )


class RedisChangeNotifier(ChangeNotifier):
    """Publishes JSON events on Redis pub/sub with bounded retries."""

    def __init__(self, client_factory: Callable[[], redis.Redis] = get_redis_sync_client):
        self._client_factory = client_factory

    def publish(self, channel: str, event: ChangeEvent) -> bool:
        message = event.to_json()
        max_retries = max(settings.redis_publish_max_retries, 1)
        # Publishing runs in the request thread after commit
        remaining_budget = settings.redis_publish_retry_budget

        for attempt in range(max_retries):
            try:
                receivers = self._client_factory().publish(channel, message)
                logger.debug(
                    "Change event published",
                    channel=channel,
                    event_type=event.event_type.value,
                    entity_id=event.entity_id,
                    receivers=receivers,
                )
                return True
            except redis.RedisError as e:
                delay = min(settings.redis_publish_retry_delay * (2 ** attempt), remaining_budget)
                if attempt == max_retries - 1 or delay <= 0:
                    logger.warning(
                        "Redis publish failed, notification dropped",
                        channel=channel,
                        event_type=event.event_type.value,
                        entity_id=event.entity_id,
                        attempts=attempt + 1,
                        error=str(e),
                    )
                    return False
                logger.warning(
                    "Redis publish failed, retrying",
                    channel=channel,
                    event_type=event.event_type.value,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay_seconds=round(delay, 3),
                    error=str(e),
                )
                time.sleep(delay)
                remaining_budget -= delay
        return False


class LocalChangeNotifier(ChangeNotifier):
    """
    In-process observer list.

    Used when notifications are disabled and in tests. Keeps the most recent
    ``history_size`` published events, oldest evicted first.
    """

    def __init__(self, history_size: int = 200) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._lock = threading.Lock()
        self.published: deque[tuple[str, ChangeEvent]] = deque(maxlen=history_size)

    def subscribe(self, channel: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` on ``channel``; returns the unsubscribe function."""
        with self._lock:
            self._subscribers.setdefault(channel, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(channel, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, channel: str, event: ChangeEvent) -> bool:
        with self._lock:
            self.published.append((channel, event))
            callbacks = list(self._subscribers.get(channel, []))

        delivered = True
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                delivered = False
                logger.warning(
                    "Change subscriber failed",
                    channel=channel,
                    event_type=event.event_type.value,
                    error=str(e),
                )
        return delivered

    def events_on(self, channel: str) -> list[ChangeEvent]:
        with self._lock:
            history = list(self.published)
        return [event for published_channel, event in history if published_channel == channel]


@lru_cache
def get_change_notifier() -> ChangeNotifier:
    """Process-wide notifier selected from settings. Used as a FastAPI dependency."""
    if settings.notifications_enabled:
        return RedisChangeNotifier()
    return LocalChangeNotifier()
