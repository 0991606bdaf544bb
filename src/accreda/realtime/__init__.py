"""Realtime change feed."""

from accreda.realtime.feed import (
    AUTH_CHANNEL,
    Change,
    ChangeFeed,
    Subscription,
    get_change_feed,
    reset_change_feed,
)

__all__ = [
    "AUTH_CHANNEL",
    "Change",
    "ChangeFeed",
    "Subscription",
    "get_change_feed",
    "reset_change_feed",
]
