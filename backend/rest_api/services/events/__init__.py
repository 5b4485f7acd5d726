"""
Event Services - change notifications for orders, tables and stock.

Provides:
- ChangeEvent / EventType value objects
- ChangeNotifier interface with Redis and in-process implementations
"""

from .domain_event import (
    ChangeEvent,
    EventType,
)

from .notifier import (
    ChangeNotifier,
    LocalChangeNotifier,
    RedisChangeNotifier,
    get_change_notifier,
)

__all__ = [
    "ChangeEvent",
    "EventType",
    "ChangeNotifier",
    "LocalChangeNotifier",
    "RedisChangeNotifier",
    "get_change_notifier",
]
