"""Repository functions for the notifications table."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import structlog

from accreda.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class NotificationRecord:
    """Notification row."""

    id: str
    user_id: str
    type: str
    title: str
    message: str
    read: bool
    created_at: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for change events and API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "created_at": self.created_at,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationRecord:
        """Build a record from a change-event row."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            type=data["type"],
            title=data["title"],
            message=data.get("message", ""),
            read=bool(data.get("read", False)),
            created_at=data["created_at"],
            data=data.get("data") or {},
        )


def insert_notification(
    user_id: str,
    type: str,
    title: str,
    message: str = "",
    data: dict[str, Any] | None = None,
) -> NotificationRecord:
    """Insert an unread notification."""
    record = NotificationRecord(
        id=new_id(),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        read=False,
        created_at=utc_now(),
        data=data or {},
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO notifications (id, user_id, type, title, message, data, read, created_at)
            VALUES (?, ?, ?, ?, ?, ?, 0, ?)
            """,
            (
                record.id,
                user_id,
                type,
                title,
                message,
                json.dumps(record.data),
                record.created_at,
            ),
        )

    logger.debug("notifications.inserted", notification_id=record.id, user_id=user_id)
    return record


def list_notifications(user_id: str) -> list[NotificationRecord]:
    """Get all notifications for a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM notifications WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (user_id,),
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def mark_read(notification_id: str, user_id: str) -> bool:
    """Flip one notification to read.

    Returns:
        True if the notification exists for this user
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?",
            (notification_id, user_id),
        )
    return cursor.rowcount > 0


def mark_read_many(notification_ids: list[str], user_id: str) -> int:
    """Flip a set of notifications to read.

    Returns:
        Number of rows that changed from unread to read
    """
    if not notification_ids:
        return 0

    placeholders = ", ".join("?" for _ in notification_ids)
    with get_db() as conn:
        cursor = conn.execute(
            f"""
            UPDATE notifications SET read = 1
            WHERE user_id = ? AND read = 0 AND id IN ({placeholders})
            """,
            (user_id, *notification_ids),
        )
    return cursor.rowcount


def _row_to_record(row) -> NotificationRecord:
    """Convert database row to NotificationRecord."""
    return NotificationRecord(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        title=row["title"],
        message=row["message"],
        read=bool(row["read"]),
        created_at=row["created_at"],
        data=json.loads(row["data"]) if row["data"] else {},
    )
