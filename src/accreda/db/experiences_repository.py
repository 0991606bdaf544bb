"""Repository functions for the experiences table."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from accreda.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class ExperienceRecord:
    """Experience row."""

    id: str
    user_id: str
    title: str
    description: str
    is_documented: bool
    supervisor_approved: bool
    approved_by: str | None
    created_at: str


def insert_experience(
    user_id: str,
    title: str,
    description: str = "",
    is_documented: bool = False,
) -> ExperienceRecord:
    """Insert a new experience."""
    record = ExperienceRecord(
        id=new_id(),
        user_id=user_id,
        title=title,
        description=description,
        is_documented=is_documented,
        supervisor_approved=False,
        approved_by=None,
        created_at=utc_now(),
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO experiences (
                id, user_id, title, description, is_documented,
                supervisor_approved, approved_by, created_at
            ) VALUES (?, ?, ?, ?, ?, 0, NULL, ?)
            """,
            (
                record.id,
                user_id,
                title,
                description,
                int(is_documented),
                record.created_at,
            ),
        )

    logger.debug("experiences.inserted", experience_id=record.id, user_id=user_id)
    return record


def get_experience(experience_id: str) -> ExperienceRecord | None:
    """Get experience by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM experiences WHERE id = ?", (experience_id,)
        ).fetchone()

    if row is None:
        return None
    return _row_to_record(row)


def list_experiences(user_id: str) -> list[ExperienceRecord]:
    """Get all experiences of a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM experiences WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def count_documented(user_id: str) -> int:
    """Count experiences flagged as documented."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM experiences WHERE user_id = ? AND is_documented = 1",
            (user_id,),
        ).fetchone()
    return row["n"]


def count_approved(user_id: str) -> int:
    """Count experiences approved by a supervisor."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM experiences WHERE user_id = ? AND supervisor_approved = 1",
            (user_id,),
        ).fetchone()
    return row["n"]


def set_documented(experience_id: str, documented: bool = True) -> bool:
    """Flag an experience as documented (or not)."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE experiences SET is_documented = ? WHERE id = ?",
            (int(documented), experience_id),
        )
    return cursor.rowcount > 0


def approve(experience_id: str, supervisor_id: str) -> bool:
    """Mark an experience as approved by a supervisor."""
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE experiences SET supervisor_approved = 1, approved_by = ?
            WHERE id = ?
            """,
            (supervisor_id, experience_id),
        )

    approved = cursor.rowcount > 0
    if approved:
        logger.debug(
            "experiences.approved", experience_id=experience_id, supervisor_id=supervisor_id
        )
    return approved


def _row_to_record(row) -> ExperienceRecord:
    """Convert database row to ExperienceRecord."""
    return ExperienceRecord(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        is_documented=bool(row["is_documented"]),
        supervisor_approved=bool(row["supervisor_approved"]),
        approved_by=row["approved_by"],
        created_at=row["created_at"],
    )
