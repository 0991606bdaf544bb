"""Repository functions for SAOs, their skill links and validators."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field

import structlog

from accreda.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class SaoRecord:
    """SAO row with the ids of its linked skills."""

    id: str
    eit_id: str
    title: str
    situation: str
    action: str
    outcome: str
    employer: str
    status: str
    created_at: str
    updated_at: str
    skill_ids: list[str] = field(default_factory=list)


@dataclass
class ValidatorRecord:
    """Validator row."""

    id: str
    eit_id: str
    skill_id: str
    first_name: str
    last_name: str
    email: str
    status: str
    token: str
    created_at: str


def insert_sao(
    eit_id: str,
    title: str,
    situation: str,
    action: str,
    outcome: str,
    employer: str = "",
    skill_ids: list[str] | None = None,
) -> SaoRecord:
    """Insert an SAO and link it to skills.

    Raises:
        sqlite3.IntegrityError: If a skill id is not in the catalog
    """
    now = utc_now()
    record = SaoRecord(
        id=new_id(),
        eit_id=eit_id,
        title=title,
        situation=situation,
        action=action,
        outcome=outcome,
        employer=employer,
        status="draft",
        created_at=now,
        updated_at=now,
        skill_ids=list(skill_ids or []),
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO saos (
                id, eit_id, title, situation, action, outcome,
                employer, status, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                eit_id,
                title,
                situation,
                action,
                outcome,
                employer,
                record.status,
                now,
                now,
            ),
        )
        for skill_id in record.skill_ids:
            conn.execute(
                "INSERT OR IGNORE INTO sao_skills (sao_id, skill_id) VALUES (?, ?)",
                (record.id, skill_id),
            )

    logger.debug("saos.inserted", sao_id=record.id, skills=len(record.skill_ids))
    return record


def count_saos(eit_id: str) -> int:
    """Count SAOs written by an EIT."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM saos WHERE eit_id = ?", (eit_id,)
        ).fetchone()
    return row["n"]


def list_saos(eit_id: str) -> list[SaoRecord]:
    """Get all SAOs of an EIT, oldest first, with linked skill ids."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM saos WHERE eit_id = ? ORDER BY created_at, rowid", (eit_id,)
        ).fetchall()
        links = conn.execute(
            """
            SELECT sao_skills.sao_id, sao_skills.skill_id FROM sao_skills
            JOIN saos ON saos.id = sao_skills.sao_id
            WHERE saos.eit_id = ?
            """,
            (eit_id,),
        ).fetchall()

    skills_by_sao: dict[str, list[str]] = {}
    for link in links:
        skills_by_sao.setdefault(link["sao_id"], []).append(link["skill_id"])

    return [
        SaoRecord(
            id=row["id"],
            eit_id=row["eit_id"],
            title=row["title"],
            situation=row["situation"],
            action=row["action"],
            outcome=row["outcome"],
            employer=row["employer"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            skill_ids=sorted(skills_by_sao.get(row["id"], [])),
        )
        for row in rows
    ]


def get_sao(sao_id: str) -> SaoRecord | None:
    """Get SAO by ID with its linked skill ids."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM saos WHERE id = ?", (sao_id,)).fetchone()
        if row is None:
            return None
        links = conn.execute(
            "SELECT skill_id FROM sao_skills WHERE sao_id = ? ORDER BY skill_id", (sao_id,)
        ).fetchall()

    return SaoRecord(
        id=row["id"],
        eit_id=row["eit_id"],
        title=row["title"],
        situation=row["situation"],
        action=row["action"],
        outcome=row["outcome"],
        employer=row["employer"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        skill_ids=[link["skill_id"] for link in links],
    )


def delete_sao(sao_id: str, eit_id: str) -> bool:
    """Delete an SAO owned by an EIT."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM saos WHERE id = ? AND eit_id = ?", (sao_id, eit_id)
        )
    return cursor.rowcount > 0


def insert_validator(
    eit_id: str,
    skill_id: str,
    first_name: str,
    last_name: str,
    email: str,
) -> ValidatorRecord:
    """Insert a pending validator with a fresh invitation token."""
    record = ValidatorRecord(
        id=new_id(),
        eit_id=eit_id,
        skill_id=skill_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        status="pending",
        token=secrets.token_urlsafe(24),
        created_at=utc_now(),
    )
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO validators (
                id, eit_id, skill_id, first_name, last_name, email, status, token, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                eit_id,
                skill_id,
                first_name,
                last_name,
                email,
                record.status,
                record.token,
                record.created_at,
            ),
        )

    logger.debug("validators.inserted", validator_id=record.id, skill_id=skill_id)
    return record


def list_validators(eit_id: str) -> list[ValidatorRecord]:
    """Get all validators of an EIT, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM validators WHERE eit_id = ? ORDER BY created_at, rowid",
            (eit_id,),
        ).fetchall()

    return [
        ValidatorRecord(
            id=row["id"],
            eit_id=row["eit_id"],
            skill_id=row["skill_id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            status=row["status"],
            token=row["token"],
            created_at=row["created_at"],
        )
        for row in rows
    ]
