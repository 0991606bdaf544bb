"""Repository functions for supervisor_eit_relationships."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from accreda.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)

RELATIONSHIP_STATUSES = ("pending", "active", "completed", "rejected")


@dataclass
class RelationshipRecord:
    """Relationship row linking one EIT and one supervisor."""

    id: str
    eit_id: str
    supervisor_id: str
    status: str
    created_at: str
    updated_at: str


def find_relationship(eit_id: str, supervisor_id: str) -> RelationshipRecord | None:
    """Get the relationship between an EIT and a supervisor, if any."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT * FROM supervisor_eit_relationships
            WHERE eit_id = ? AND supervisor_id = ?
            """,
            (eit_id, supervisor_id),
        ).fetchone()

    if row is None:
        return None
    return _row_to_record(row)


def get_relationship(relationship_id: str) -> RelationshipRecord | None:
    """Get relationship by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM supervisor_eit_relationships WHERE id = ?", (relationship_id,)
        ).fetchone()

    if row is None:
        return None
    return _row_to_record(row)


def upsert_pending(eit_id: str, supervisor_id: str) -> RelationshipRecord:
    """Create a pending request, reopening a previous rejected/completed row."""
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO supervisor_eit_relationships
                (id, eit_id, supervisor_id, status, created_at, updated_at)
            VALUES (?, ?, ?, 'pending', ?, ?)
            ON CONFLICT(eit_id, supervisor_id) DO UPDATE SET
                status = 'pending',
                updated_at = excluded.updated_at
            """,
            (new_id(), eit_id, supervisor_id, now, now),
        )
        row = conn.execute(
            """
            SELECT * FROM supervisor_eit_relationships
            WHERE eit_id = ? AND supervisor_id = ?
            """,
            (eit_id, supervisor_id),
        ).fetchone()

    logger.debug("relationships.pending", eit_id=eit_id, supervisor_id=supervisor_id)
    return _row_to_record(row)


def update_status(relationship_id: str, status: str) -> bool:
    """Set the relationship status.

    Raises:
        ValueError: If status is unknown
    """
    if status not in RELATIONSHIP_STATUSES:
        raise ValueError(f"Unknown relationship status: {status}")

    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE supervisor_eit_relationships SET status = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, utc_now(), relationship_id),
        )

    updated = cursor.rowcount > 0
    if updated:
        logger.debug("relationships.status_updated", relationship_id=relationship_id, status=status)
    return updated


def count_active_for_supervisor(supervisor_id: str) -> int:
    """Count EITs currently linked to a supervisor."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT COUNT(*) AS n FROM supervisor_eit_relationships
            WHERE supervisor_id = ? AND status = 'active'
            """,
            (supervisor_id,),
        ).fetchone()
    return row["n"]


def count_active_for_eit(eit_id: str) -> int:
    """Count supervisors currently linked to an EIT."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT COUNT(*) AS n FROM supervisor_eit_relationships
            WHERE eit_id = ? AND status = 'active'
            """,
            (eit_id,),
        ).fetchone()
    return row["n"]


def list_for_supervisor(supervisor_id: str, status: str) -> list[RelationshipRecord]:
    """Get a supervisor's relationships in one status, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM supervisor_eit_relationships
            WHERE supervisor_id = ? AND status = ?
            ORDER BY created_at
            """,
            (supervisor_id, status),
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def get_active_for_eit(eit_id: str) -> RelationshipRecord | None:
    """Get the EIT's active relationship (at most one is expected)."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT * FROM supervisor_eit_relationships
            WHERE eit_id = ? AND status = 'active'
            ORDER BY updated_at DESC LIMIT 1
            """,
            (eit_id,),
        ).fetchone()

    if row is None:
        return None
    return _row_to_record(row)


def _row_to_record(row) -> RelationshipRecord:
    """Convert database row to RelationshipRecord."""
    return RelationshipRecord(
        id=row["id"],
        eit_id=row["eit_id"],
        supervisor_id=row["supervisor_id"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
