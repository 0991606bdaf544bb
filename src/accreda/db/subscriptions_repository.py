"""Repository functions for the subscriptions table."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from accreda.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

TIERS = ("free", "pro", "enterprise")


@dataclass
class SubscriptionRecord:
    """Subscription row."""

    user_id: str
    tier: str
    stripe_subscription_id: str | None
    updated_at: str


def get_subscription(user_id: str) -> SubscriptionRecord | None:
    """Get the subscription of a user."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subscriptions WHERE user_id = ?", (user_id,)
        ).fetchone()

    if row is None:
        return None
    return _row_to_record(row)


def ensure_subscription(user_id: str) -> SubscriptionRecord:
    """Get the subscription, creating a free one if missing."""
    existing = get_subscription(user_id)
    if existing is not None:
        return existing

    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT OR IGNORE INTO subscriptions (user_id, tier, updated_at)
            VALUES (?, 'free', ?)
            """,
            (user_id, now),
        )

    logger.debug("subscriptions.created_default", user_id=user_id)
    return get_subscription(user_id)


def get_tier(user_id: str) -> str:
    """Get the tier of a user; users without a row are on the free plan."""
    record = get_subscription(user_id)
    return record.tier if record is not None else "free"


def set_tier(user_id: str, tier: str, stripe_subscription_id: str | None = None) -> None:
    """Upsert the tier for a user.

    Raises:
        ValueError: If tier is unknown
    """
    if tier not in TIERS:
        raise ValueError(f"Unknown tier: {tier}")

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO subscriptions (user_id, tier, stripe_subscription_id, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                tier = excluded.tier,
                stripe_subscription_id = COALESCE(
                    excluded.stripe_subscription_id, subscriptions.stripe_subscription_id
                ),
                updated_at = excluded.updated_at
            """,
            (user_id, tier, stripe_subscription_id, utc_now()),
        )

    logger.debug("subscriptions.tier_set", user_id=user_id, tier=tier)


def _row_to_record(row) -> SubscriptionRecord:
    """Convert database row to SubscriptionRecord."""
    return SubscriptionRecord(
        user_id=row["user_id"],
        tier=row["tier"],
        stripe_subscription_id=row["stripe_subscription_id"],
        updated_at=row["updated_at"],
    )
