"""Repository functions for the two profile tables.

An identity is an EIT when it has a row in eit_profiles and a Supervisor
when it has a row in supervisor_profiles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import structlog

from accreda.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

ProfileTable = Literal["eit_profiles", "supervisor_profiles"]

PROFILE_TABLES: tuple[ProfileTable, ...] = ("eit_profiles", "supervisor_profiles")

# Columns callers may change through update_profile
EDITABLE_FIELDS = frozenset({"full_name", "organization", "email", "avatar_url"})


@dataclass
class ProfileRecord:
    """Profile row from either profile table."""

    id: str
    email: str
    full_name: str
    organization: str
    avatar_url: str | None
    created_at: str
    updated_at: str
    start_date: str | None = None
    target_date: str | None = None


def insert_profile(
    table: ProfileTable,
    user_id: str,
    email: str,
    full_name: str,
    organization: str = "",
) -> ProfileRecord:
    """Insert a profile row.

    Raises:
        sqlite3.IntegrityError: If the profile already exists
    """
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            f"""
            INSERT INTO {table} (id, email, full_name, organization, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, email, full_name, organization, now, now),
        )

    logger.debug("profiles.inserted", table=table, user_id=user_id)
    return ProfileRecord(
        id=user_id,
        email=email,
        full_name=full_name,
        organization=organization,
        avatar_url=None,
        created_at=now,
        updated_at=now,
    )


def get_profile(table: ProfileTable, user_id: str) -> ProfileRecord | None:
    """Get a profile by identity id."""
    with get_db() as conn:
        row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (user_id,)).fetchone()

    if row is None:
        return None
    return _row_to_record(row)


def profile_exists(table: ProfileTable, user_id: str) -> bool:
    """Probe a profile table for an identity (LIMIT 1)."""
    with get_db() as conn:
        row = conn.execute(
            f"SELECT id FROM {table} WHERE id = ? LIMIT 1", (user_id,)
        ).fetchone()
    return row is not None


def find_profile_anywhere(user_id: str) -> ProfileRecord | None:
    """Look up an identity in the EIT table, then the supervisor table."""
    for table in PROFILE_TABLES:
        profile = get_profile(table, user_id)
        if profile is not None:
            return profile
    return None


def find_supervisor_by_email(email: str) -> ProfileRecord | None:
    """Find a supervisor by exact, case-sensitive email."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM supervisor_profiles WHERE email = ? LIMIT 1", (email,)
        ).fetchone()

    if row is None:
        return None
    return _row_to_record(row)


def update_profile(table: ProfileTable, user_id: str, **fields: str | None) -> bool:
    """Update editable profile columns.

    Returns:
        True if a row was updated

    Raises:
        ValueError: If a field is not editable
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not editable: {sorted(unknown)}")
    if not fields:
        return False

    assignments = ", ".join(f"{name} = ?" for name in fields)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE {table} SET {assignments}, updated_at = ? WHERE id = ?",
            (*fields.values(), utc_now(), user_id),
        )

    updated = cursor.rowcount > 0
    if updated:
        logger.debug("profiles.updated", table=table, user_id=user_id, fields=sorted(fields))
    return updated


def update_timeline(user_id: str, start_date: str | None, target_date: str | None) -> bool:
    """Set the EIT program start and target dates."""
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE eit_profiles SET start_date = ?, target_date = ?, updated_at = ?
            WHERE id = ?
            """,
            (start_date, target_date, utc_now(), user_id),
        )
    return cursor.rowcount > 0


def _row_to_record(row) -> ProfileRecord:
    """Convert database row to ProfileRecord."""
    keys = row.keys()
    return ProfileRecord(
        id=row["id"],
        email=row["email"],
        full_name=row["full_name"],
        organization=row["organization"],
        avatar_url=row["avatar_url"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        start_date=row["start_date"] if "start_date" in keys else None,
        target_date=row["target_date"] if "target_date" in keys else None,
    )
