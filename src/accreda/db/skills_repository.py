"""Repository functions for the skill catalog and per-EIT skill ranks."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from accreda.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class CatalogSkill:
    """Skill row from the catalog."""

    id: str
    code: str
    name: str
    category: str
    position: int


@dataclass
class EitSkillRecord:
    """Rank row for one EIT and one skill."""

    user_id: str
    skill_id: str
    rank: int | None
    status: str
    updated_at: str


def get_catalog() -> list[CatalogSkill]:
    """Get all catalog skills in display order."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM skills ORDER BY position").fetchall()

    return [
        CatalogSkill(
            id=row["id"],
            code=row["code"],
            name=row["name"],
            category=row["category"],
            position=row["position"],
        )
        for row in rows
    ]


def get_eit_skills(user_id: str) -> list[EitSkillRecord]:
    """Get all rank rows for an EIT."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM eit_skills WHERE user_id = ?", (user_id,)
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def seed_eit_skills(user_id: str, skill_ids: list[str]) -> int:
    """Create unranked rows for skills the EIT does not have yet.

    Returns:
        Number of rows inserted
    """
    now = utc_now()
    inserted = 0
    with get_db() as conn:
        for skill_id in skill_ids:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO eit_skills (user_id, skill_id, rank, status, updated_at)
                VALUES (?, ?, NULL, 'not-started', ?)
                """,
                (user_id, skill_id, now),
            )
            inserted += cursor.rowcount

    logger.debug("eit_skills.seeded", user_id=user_id, inserted=inserted)
    return inserted


def upsert_eit_skill(user_id: str, skill_id: str, rank: int | None) -> EitSkillRecord:
    """Insert or update the rank for one skill.

    A defined rank marks the skill completed; None resets it.
    """
    status = "completed" if rank is not None else "not-started"
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO eit_skills (user_id, skill_id, rank, status, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, skill_id) DO UPDATE SET
                rank = excluded.rank,
                status = excluded.status,
                updated_at = excluded.updated_at
            """,
            (user_id, skill_id, rank, status, now),
        )

    logger.debug("eit_skills.upserted", user_id=user_id, skill_id=skill_id, rank=rank)
    return EitSkillRecord(
        user_id=user_id, skill_id=skill_id, rank=rank, status=status, updated_at=now
    )


def _row_to_record(row) -> EitSkillRecord:
    """Convert database row to EitSkillRecord."""
    return EitSkillRecord(
        user_id=row["user_id"],
        skill_id=row["skill_id"],
        rank=row["rank"],
        status=row["status"],
        updated_at=row["updated_at"],
    )
