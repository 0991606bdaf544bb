"""Repository functions for identities, sessions, terms and preferences."""

from __future__ import annotations

import secrets
from dataclasses import dataclass

import structlog

from accreda.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)

PREFERENCE_FIELDS = (
    "supervisor_reviews",
    "skill_validations",
    "connection_requests",
    "sao_feedback",
    "weekly_digest",
)

# Tables holding rows keyed to an identity, in deletion order
_USER_TABLES = (
    ("sao_feedback", "eit_id = ? OR supervisor_id = ?"),
    ("skill_validations", "eit_id = ? OR validator_id = ?"),
    ("sao_skills", "sao_id IN (SELECT id FROM saos WHERE eit_id = ?)"),
    ("saos", "eit_id = ?"),
    ("validators", "eit_id = ?"),
    ("eit_skills", "user_id = ?"),
    ("experiences", "user_id = ?"),
    ("notifications", "user_id = ?"),
    ("supervisor_eit_relationships", "eit_id = ? OR supervisor_id = ?"),
    ("subscriptions", "user_id = ?"),
    ("notification_preferences", "user_id = ?"),
    ("terms_acceptance", "user_id = ?"),
    ("eit_profiles", "id = ?"),
    ("supervisor_profiles", "id = ?"),
    ("auth_sessions", "user_id = ?"),
    ("auth_users", "id = ?"),
)


@dataclass
class AuthUserRecord:
    """Identity row."""

    id: str
    email: str
    password_hash: str
    created_at: str


def insert_auth_user(email: str, password_hash: str) -> AuthUserRecord:
    """Create an identity.

    Raises:
        sqlite3.IntegrityError: If the email is already registered
    """
    record = AuthUserRecord(
        id=new_id(), email=email, password_hash=password_hash, created_at=utc_now()
    )
    with get_db() as conn:
        conn.execute(
            "INSERT INTO auth_users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (record.id, email, password_hash, record.created_at),
        )

    logger.debug("auth_users.inserted", user_id=record.id)
    return record


def get_auth_user_by_email(email: str) -> AuthUserRecord | None:
    """Get identity by email."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM auth_users WHERE email = ?", (email,)).fetchone()
    return _row_to_user(row) if row is not None else None


def get_auth_user(user_id: str) -> AuthUserRecord | None:
    """Get identity by id."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM auth_users WHERE id = ?", (user_id,)).fetchone()
    return _row_to_user(row) if row is not None else None


def update_password_hash(user_id: str, password_hash: str) -> bool:
    """Replace the stored password hash."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE auth_users SET password_hash = ? WHERE id = ?", (password_hash, user_id)
        )
    return cursor.rowcount > 0


def create_session(user_id: str) -> str:
    """Create a session and return its token."""
    token = secrets.token_urlsafe(32)
    with get_db() as conn:
        conn.execute(
            "INSERT INTO auth_sessions (token, user_id, created_at) VALUES (?, ?, ?)",
            (token, user_id, utc_now()),
        )
    return token


def get_session_user_id(token: str) -> str | None:
    """Resolve a session token to its identity."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT user_id FROM auth_sessions WHERE token = ?", (token,)
        ).fetchone()
    return row["user_id"] if row is not None else None


def delete_session(token: str) -> str | None:
    """Delete a session.

    Returns:
        The identity the session belonged to, or None if unknown
    """
    user_id = get_session_user_id(token)
    if user_id is None:
        return None
    with get_db() as conn:
        conn.execute("DELETE FROM auth_sessions WHERE token = ?", (token,))
    return user_id


def count_sessions(user_id: str) -> int:
    """Count live sessions of an identity."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM auth_sessions WHERE user_id = ?", (user_id,)
        ).fetchone()
    return row["n"]


def record_terms_acceptance(
    user_id: str,
    terms_version: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> str:
    """Record that a user accepted the terms. Returns the row id."""
    row_id = new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO terms_acceptance (id, user_id, terms_version, ip_address, user_agent, accepted_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (row_id, user_id, terms_version, ip_address, user_agent, utc_now()),
        )
    return row_id


def get_preferences(user_id: str) -> dict[str, bool]:
    """Get notification preferences; missing rows mean everything enabled."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM notification_preferences WHERE user_id = ?", (user_id,)
        ).fetchone()

    if row is None:
        return {name: True for name in PREFERENCE_FIELDS}
    return {name: bool(row[name]) for name in PREFERENCE_FIELDS}


def save_preferences(user_id: str, preferences: dict[str, bool]) -> dict[str, bool]:
    """Merge and store notification preferences.

    Raises:
        ValueError: If a preference name is unknown
    """
    unknown = set(preferences) - set(PREFERENCE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown preferences: {sorted(unknown)}")

    merged = get_preferences(user_id)
    merged.update(preferences)
    columns = ", ".join(PREFERENCE_FIELDS)
    placeholders = ", ".join("?" for _ in PREFERENCE_FIELDS)
    with get_db() as conn:
        conn.execute(
            f"INSERT OR REPLACE INTO notification_preferences (user_id, {columns}) "
            f"VALUES (?, {placeholders})",
            (user_id, *(int(merged[name]) for name in PREFERENCE_FIELDS)),
        )
    return merged


def delete_user_data(user_id: str) -> int:
    """Delete every row keyed to an identity.

    Returns:
        Total number of rows removed
    """
    removed = 0
    with get_db() as conn:
        for table, where in _USER_TABLES:
            params = (user_id,) * where.count("?")
            cursor = conn.execute(f"DELETE FROM {table} WHERE {where}", params)
            removed += cursor.rowcount

    logger.info("accounts.user_data_deleted", user_id=user_id, rows=removed)
    return removed


def _row_to_user(row) -> AuthUserRecord:
    """Convert database row to AuthUserRecord."""
    return AuthUserRecord(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )
