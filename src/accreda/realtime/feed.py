"""In-process realtime change feed.

Delivers per-table change events to subscribers, optionally filtered by
the identity a row belongs to and by event type. Every subscription is an
explicit handle; the owner unsubscribes when it is disposed.

Usage:
    feed = ChangeFeed()
    sub = feed.subscribe("notifications", on_insert, user_id=uid, events={"INSERT"})
    await feed.publish(Change("notifications", "INSERT", row))
    sub.unsubscribe()
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

import structlog

logger = structlog.get_logger(__name__)

CHANGE_EVENTS = frozenset({"INSERT", "UPDATE", "DELETE"})

# Pseudo-table carrying auth-state events (SIGNED_IN / SIGNED_OUT)
AUTH_CHANNEL = "auth"


@dataclass
class Change:
    """A change to one row of a table."""

    table: str
    event: str
    row: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None

    def __post_init__(self):
        if self.user_id is None:
            self.user_id = self.row.get("user_id")


ChangeCallback = Callable[[Change], Awaitable[None]]


class Subscription:
    """Handle returned by ChangeFeed.subscribe()."""

    def __init__(
        self,
        feed: ChangeFeed,
        sub_id: int,
        table: str,
        callback: ChangeCallback,
        user_id: str | None,
        events: frozenset[str] | None,
    ):
        self._feed = feed
        self.sub_id = sub_id
        self.table = table
        self.callback = callback
        self.user_id = user_id
        self.events = events
        self.active = True

    def matches(self, change: Change) -> bool:
        """Check table, identity filter and event filter."""
        if change.table != self.table:
            return False
        if self.user_id is not None and change.user_id != self.user_id:
            return False
        if self.events is not None and change.event not in self.events:
            return False
        return True

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self.active = False
            self._feed._remove(self.sub_id)


class ChangeFeed:
    """Publish/subscribe hub for table changes."""

    def __init__(self):
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        user_id: str | None = None,
        events: Iterable[str] | None = None,
    ) -> Subscription:
        """Register a callback for changes on a table.

        Args:
            table: Table name (or AUTH_CHANNEL)
            callback: Coroutine function receiving the Change
            user_id: Only deliver changes for rows of this identity
            events: Only deliver these event types (None = all)

        Returns:
            Subscription handle
        """
        event_filter = frozenset(events) if events is not None else None
        sub = Subscription(self, next(self._ids), table, callback, user_id, event_filter)
        self._subscriptions[sub.sub_id] = sub
        logger.debug(
            "realtime.subscribed",
            table=table,
            user_id=user_id,
            sub_id=sub.sub_id,
        )
        return sub

    async def publish(self, change: Change) -> int:
        """Deliver a change to all matching subscribers.

        Callbacks run concurrently. A failing callback is logged and does
        not affect the others.

        Returns:
            Number of subscribers the change was delivered to
        """
        targets = [s for s in list(self._subscriptions.values()) if s.matches(change)]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(s.callback(change) for s in targets), return_exceptions=True
        )
        for sub, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(
                    "realtime.callback_failed",
                    table=change.table,
                    change_event=change.event,
                    sub_id=sub.sub_id,
                    error=str(result),
                )

        logger.debug(
            "realtime.published",
            table=change.table,
            change_event=change.event,
            delivered=len(targets),
        )
        return len(targets)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _remove(self, sub_id: int) -> None:
        self._subscriptions.pop(sub_id, None)
        logger.debug("realtime.unsubscribed", sub_id=sub_id)


# Global feed instance
_change_feed: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    """Get the global change feed instance."""
    global _change_feed
    if _change_feed is None:
        _change_feed = ChangeFeed()
    return _change_feed


def reset_change_feed() -> None:
    """Reset the change feed (for testing)."""
    global _change_feed
    _change_feed = None
