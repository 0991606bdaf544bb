"""Repository functions for supervisor reviews: skill scores and SAO feedback."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from accreda.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)

FEEDBACK_STATUSES = ("pending", "submitted", "resolved")


@dataclass
class SkillValidationRecord:
    """A supervisor's score of one EIT skill."""

    id: str
    eit_id: str
    skill_id: str
    validator_id: str
    score: int
    feedback: str
    validated_at: str


@dataclass
class SaoFeedbackRecord:
    """Feedback request on an SAO, addressed to one supervisor."""

    id: str
    sao_id: str
    eit_id: str
    supervisor_id: str
    feedback: str
    score: int | None
    status: str
    created_at: str
    updated_at: str


def insert_skill_validation(
    eit_id: str,
    skill_id: str,
    validator_id: str,
    score: int,
    feedback: str = "",
) -> SkillValidationRecord:
    """Store a skill score."""
    record = SkillValidationRecord(
        id=new_id(),
        eit_id=eit_id,
        skill_id=skill_id,
        validator_id=validator_id,
        score=score,
        feedback=feedback,
        validated_at=utc_now(),
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO skill_validations
                (id, eit_id, skill_id, validator_id, score, feedback, validated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                eit_id,
                skill_id,
                validator_id,
                score,
                feedback,
                record.validated_at,
            ),
        )

    logger.debug("skill_validations.inserted", eit_id=eit_id, skill_id=skill_id, score=score)
    return record


def list_skill_validations(eit_id: str) -> list[SkillValidationRecord]:
    """Get an EIT's skill scores, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM skill_validations WHERE eit_id = ?
            ORDER BY validated_at DESC, rowid DESC
            """,
            (eit_id,),
        ).fetchall()
    return [SkillValidationRecord(**dict(row)) for row in rows]


def upsert_feedback_request(sao_id: str, eit_id: str, supervisor_id: str) -> SaoFeedbackRecord:
    """Open a feedback request, reopening an earlier one for the same supervisor."""
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO sao_feedback
                (id, sao_id, eit_id, supervisor_id, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, 'pending', ?, ?)
            ON CONFLICT(sao_id, supervisor_id) DO UPDATE SET
                status = 'pending',
                updated_at = excluded.updated_at
            """,
            (new_id(), sao_id, eit_id, supervisor_id, now, now),
        )
        row = conn.execute(
            "SELECT * FROM sao_feedback WHERE sao_id = ? AND supervisor_id = ?",
            (sao_id, supervisor_id),
        ).fetchone()

    logger.debug("sao_feedback.requested", sao_id=sao_id, supervisor_id=supervisor_id)
    return _row_to_feedback(row)


def get_feedback(feedback_id: str) -> SaoFeedbackRecord | None:
    """Get feedback request by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM sao_feedback WHERE id = ?", (feedback_id,)).fetchone()
    return _row_to_feedback(row) if row is not None else None


def list_feedback_for_supervisor(
    supervisor_id: str, status: str | None = None
) -> list[SaoFeedbackRecord]:
    """Get feedback requests addressed to a supervisor, oldest first."""
    query = "SELECT * FROM sao_feedback WHERE supervisor_id = ?"
    params: list[str] = [supervisor_id]
    if status is not None:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY created_at, rowid"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_feedback(row) for row in rows]


def list_feedback_for_sao(sao_id: str) -> list[SaoFeedbackRecord]:
    """Get every feedback request on an SAO, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM sao_feedback WHERE sao_id = ? ORDER BY created_at, rowid",
            (sao_id,),
        ).fetchall()
    return [_row_to_feedback(row) for row in rows]


def submit_feedback(feedback_id: str, feedback: str, score: int | None = None) -> bool:
    """Store the supervisor's feedback and mark the request submitted."""
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE sao_feedback
            SET feedback = ?, score = ?, status = 'submitted', updated_at = ?
            WHERE id = ?
            """,
            (feedback, score, utc_now(), feedback_id),
        )
    return cursor.rowcount > 0


def set_feedback_status(feedback_id: str, status: str) -> bool:
    """Set the status of a feedback request.

    Raises:
        ValueError: If status is unknown
    """
    if status not in FEEDBACK_STATUSES:
        raise ValueError(f"Unknown feedback status: {status}")

    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE sao_feedback SET status = ?, updated_at = ? WHERE id = ?",
            (status, utc_now(), feedback_id),
        )
    return cursor.rowcount > 0


def _row_to_feedback(row) -> SaoFeedbackRecord:
    """Convert database row to SaoFeedbackRecord."""
    return SaoFeedbackRecord(
        id=row["id"],
        sao_id=row["sao_id"],
        eit_id=row["eit_id"],
        supervisor_id=row["supervisor_id"],
        feedback=row["feedback"],
        score=row["score"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
