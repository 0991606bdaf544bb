"""Notification Center.

Two halves:

- NotificationSender: inserts user-directed notifications, publishes the
  INSERT on the change feed and fires the optional templated email.
- NotificationCenter: per-identity view of the notification log with
  read tracking, kept current by the realtime INSERT stream.

The unread count is derived from the loaded notifications, so it cannot
drift or go negative.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from accreda.core.email import EmailNotifier
from accreda.db import notifications_repository
from accreda.db.notifications_repository import NotificationRecord
from accreda.realtime.feed import Change, ChangeFeed, Subscription, get_change_feed

logger = structlog.get_logger(__name__)

NOTIFICATION_TYPES = (
    "request",
    "score",
    "approval",
    "validation_request",
    "sao_feedback",
    "nudge",
)


class NotificationError(Exception):
    """Error handling notifications."""

    pass


# =============================================================================
# SENDER
# =============================================================================


class NotificationSender:
    """Creates notifications and fans them out."""

    def __init__(
        self,
        feed: ChangeFeed | None = None,
        email: EmailNotifier | None = None,
    ):
        self.feed = feed or get_change_feed()
        self.email = email

    async def send(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str = "",
        data: dict[str, Any] | None = None,
        email_template: str | None = None,
        email_vars: dict[str, Any] | None = None,
    ) -> NotificationRecord:
        """Insert a notification and publish it.

        Email failures are logged by the EmailNotifier and never raised.

        Raises:
            NotificationError: If the type is unknown
        """
        if type not in NOTIFICATION_TYPES:
            raise NotificationError(f"Unknown notification type: {type}")

        record = await asyncio.to_thread(
            notifications_repository.insert_notification,
            user_id,
            type,
            title,
            message,
            data,
        )
        logger.info("notifications.sent", user_id=user_id, type=type, notification_id=record.id)

        await self.feed.publish(Change("notifications", "INSERT", record.to_dict()))

        if self.email is not None and email_template is not None:
            await self.email.send(user_id, type, email_template, **(email_vars or {}))

        return record

    async def supervisor_request(self, supervisor_id: str, eit_name: str) -> NotificationRecord:
        return await self.send(
            supervisor_id,
            "request",
            "New EIT Connection Request",
            f"{eit_name} has requested to connect with you as their supervisor.",
            {"type": "supervisor_request"},
            email_template="connection_request",
            email_vars={"eit_name": eit_name},
        )

    async def connection_accepted(self, eit_id: str, supervisor_name: str) -> NotificationRecord:
        return await self.send(
            eit_id,
            "request",
            "Connection Accepted",
            f"{supervisor_name} accepted your connection request.",
            {"type": "connection_accepted"},
            email_template="connection_accepted",
            email_vars={"supervisor_name": supervisor_name},
        )

    async def connection_denied(self, eit_id: str, supervisor_name: str) -> NotificationRecord:
        return await self.send(
            eit_id,
            "request",
            "Connection Request Declined",
            f"{supervisor_name} declined your connection request.",
            {"type": "connection_denied"},
            email_template="connection_denied",
            email_vars={"supervisor_name": supervisor_name},
        )

    async def skill_score(self, eit_id: str, skill_name: str, score: int) -> NotificationRecord:
        return await self.send(
            eit_id,
            "score",
            "New Skill Score",
            f"You received a score of {score} for {skill_name}.",
            {"type": "skill_score", "skillName": skill_name, "score": score},
            email_template="skill_score",
            email_vars={"skill_name": skill_name, "score": score},
        )

    async def skill_approval(self, eit_id: str, skill_name: str) -> NotificationRecord:
        return await self.send(
            eit_id,
            "approval",
            "Skill Approved",
            f"Your {skill_name} has been approved by your supervisor.",
            {"type": "skill_approval", "skillName": skill_name},
            email_template="skill_approval",
            email_vars={"skill_name": skill_name},
        )

    async def validation_request(
        self, supervisor_id: str, eit_name: str, skill_name: str
    ) -> NotificationRecord:
        return await self.send(
            supervisor_id,
            "validation_request",
            "New Skill Validation Request",
            f"{eit_name} has requested your validation for {skill_name}.",
            {"type": "validation_request", "skillName": skill_name},
            email_template="validation_request",
            email_vars={"eit_name": eit_name, "item_name": skill_name},
        )

    async def sao_score(self, eit_id: str, sao_title: str, score: int) -> NotificationRecord:
        return await self.send(
            eit_id,
            "score",
            "New SAO Score",
            f'You received a score of {score} for your SAO: "{sao_title}".',
            {"type": "sao_score", "saoTitle": sao_title, "score": score},
        )

    async def sao_validation_request(
        self, supervisor_id: str, eit_name: str, sao_title: str
    ) -> NotificationRecord:
        return await self.send(
            supervisor_id,
            "validation_request",
            "New SAO Validation Request",
            f'{eit_name} has requested your validation for SAO: "{sao_title}".',
            {"type": "sao_validation_request", "saoTitle": sao_title},
            email_template="validation_request",
            email_vars={"eit_name": eit_name, "item_name": f'SAO "{sao_title}"'},
        )

    async def sao_feedback(
        self, eit_id: str, reviewer_name: str, sao_title: str
    ) -> NotificationRecord:
        return await self.send(
            eit_id,
            "sao_feedback",
            "New SAO Feedback",
            f'{reviewer_name} left feedback on your SAO: "{sao_title}".',
            {"type": "sao_feedback", "saoTitle": sao_title},
            email_template="sao_feedback",
            email_vars={"reviewer_name": reviewer_name, "sao_title": sao_title},
        )

    async def nudge(self, user_id: str, sender_name: str) -> NotificationRecord:
        return await self.send(
            user_id,
            "nudge",
            "You have been nudged!",
            f"{sender_name} sent you a nudge.",
            {"type": "nudge"},
            email_template="nudge",
            email_vars={"sender_name": sender_name},
        )


# =============================================================================
# CENTER
# =============================================================================


class NotificationCenter:
    """Notification log of one identity."""

    def __init__(self, user_id: str, feed: ChangeFeed | None = None):
        self.user_id = user_id
        self.feed = feed or get_change_feed()
        self.notifications: list[NotificationRecord] = []
        self.initialized = False
        self._subscription: Subscription | None = None

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.read)

    async def initialize(self) -> None:
        """Load notifications newest first and start the INSERT stream."""
        await self.refresh()
        if self._subscription is None:
            self._subscription = self.feed.subscribe(
                "notifications",
                self._on_insert,
                user_id=self.user_id,
                events={"INSERT"},
            )
        self.initialized = True

    async def refresh(self) -> None:
        """Reload notifications from the store."""
        self.notifications = await asyncio.to_thread(
            notifications_repository.list_notifications, self.user_id
        )
        logger.debug(
            "notifications.loaded",
            user_id=self.user_id,
            count=len(self.notifications),
            unread=self.unread_count,
        )

    async def _on_insert(self, change: Change) -> None:
        record = NotificationRecord.from_dict(change.row)
        if any(n.id == record.id for n in self.notifications):
            return
        self.notifications.insert(0, record)

    async def mark_as_read(self, notification_id: str) -> bool:
        """Mark one notification read. Marking twice has no further effect.

        Returns:
            False if the notification does not belong to this identity
        """
        updated = await asyncio.to_thread(
            notifications_repository.mark_read, notification_id, self.user_id
        )
        if not updated:
            logger.warning(
                "notifications.mark_read_unknown",
                user_id=self.user_id,
                notification_id=notification_id,
            )
            return False

        for notification in self.notifications:
            if notification.id == notification_id:
                notification.read = True
        logger.debug("notifications.marked_read", notification_id=notification_id)
        return True

    async def mark_all_as_read(self) -> int:
        """Mark every notification unread at call time as read.

        Notifications that arrive while the update is in flight stay
        unread.

        Returns:
            Number of notifications flipped
        """
        unread_ids = [n.id for n in self.notifications if not n.read]
        if not unread_ids:
            return 0

        changed = await asyncio.to_thread(
            notifications_repository.mark_read_many, unread_ids, self.user_id
        )
        targets = set(unread_ids)
        for notification in self.notifications:
            if notification.id in targets:
                notification.read = True

        logger.info("notifications.marked_all_read", user_id=self.user_id, changed=changed)
        return len(unread_ids)

    def clear(self) -> None:
        """Drop the local list (server rows are kept)."""
        self.notifications = []

    def dispose(self) -> None:
        """Stop the realtime stream."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.initialized = False
