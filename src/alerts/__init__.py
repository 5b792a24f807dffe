"""Delivery of finalized events to the alerts watching them."""

from .dispatch import (  # noqa: F401
    EventNotifier,
    LoggingNotifier,
    WatchedEvent,
    describe_event,
    is_allowed_by_preferences,
    resolve_uri,
)

__all__ = [
    "EventNotifier",
    "LoggingNotifier",
    "WatchedEvent",
    "describe_event",
    "is_allowed_by_preferences",
    "resolve_uri",
]
