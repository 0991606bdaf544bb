"""SQLite database connection and schema management.

Provides connection management and schema initialization for Accreda.
The tables mirror the hosted backend the web client used to talk to.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/accreda.db")

# Current database path (module-level, set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist,
    then seeds the skill catalog.

    Args:
        db_path: Path to database file. Defaults to db/accreda.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)
        _seed_skill_catalog(conn)

    logger.info("database.initialized", path=str(_db_path))


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM skills").fetchall()
    """
    db_path = _db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def new_id() -> str:
    """Generate a row identifier."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current UTC time as ISO 8601 with microseconds."""
    return datetime.now(timezone.utc).isoformat()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency. Profile tables are disjoint by
    convention: an identity has a row in at most one of them.
    """
    conn.executescript(
        """
        -- Identities (stand-in for the hosted auth provider)
        CREATE TABLE IF NOT EXISTS auth_users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS auth_sessions (
            token TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS eit_profiles (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL,
            full_name TEXT NOT NULL DEFAULT '',
            organization TEXT NOT NULL DEFAULT '',
            avatar_url TEXT,
            start_date TEXT,
            target_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS supervisor_profiles (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL,
            full_name TEXT NOT NULL DEFAULT '',
            organization TEXT NOT NULL DEFAULT '',
            avatar_url TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- Skill catalog (22 CSAW skills)
        CREATE TABLE IF NOT EXISTS skills (
            id TEXT PRIMARY KEY,
            code TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            category TEXT NOT NULL,
            position INTEGER NOT NULL
        );

        -- Per-EIT skill rank
        CREATE TABLE IF NOT EXISTS eit_skills (
            user_id TEXT NOT NULL,
            skill_id TEXT NOT NULL REFERENCES skills(id),
            rank INTEGER CHECK(rank IS NULL OR (rank >= 0 AND rank <= 5)),
            status TEXT NOT NULL DEFAULT 'not-started'
                CHECK(status IN ('not-started', 'in-progress', 'completed')),
            updated_at TEXT NOT NULL,
            PRIMARY KEY (user_id, skill_id)
        );

        CREATE TABLE IF NOT EXISTS experiences (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            is_documented INTEGER NOT NULL DEFAULT 0,
            supervisor_approved INTEGER NOT NULL DEFAULT 0,
            approved_by TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS notifications (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL DEFAULT '',
            data TEXT NOT NULL DEFAULT '{}',
            read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS supervisor_eit_relationships (
            id TEXT PRIMARY KEY,
            eit_id TEXT NOT NULL,
            supervisor_id TEXT NOT NULL,
            status TEXT NOT NULL
                CHECK(status IN ('pending', 'active', 'completed', 'rejected')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (eit_id, supervisor_id)
        );

        CREATE TABLE IF NOT EXISTS subscriptions (
            user_id TEXT PRIMARY KEY,
            tier TEXT NOT NULL DEFAULT 'free'
                CHECK(tier IN ('free', 'pro', 'enterprise')),
            stripe_subscription_id TEXT,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS saos (
            id TEXT PRIMARY KEY,
            eit_id TEXT NOT NULL,
            title TEXT NOT NULL,
            situation TEXT NOT NULL DEFAULT '',
            action TEXT NOT NULL DEFAULT '',
            outcome TEXT NOT NULL DEFAULT '',
            employer TEXT NOT NULL DEFAULT '',
            status TEXT NOT NULL DEFAULT 'draft',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS sao_skills (
            sao_id TEXT NOT NULL REFERENCES saos(id) ON DELETE CASCADE,
            skill_id TEXT NOT NULL REFERENCES skills(id),
            PRIMARY KEY (sao_id, skill_id)
        );

        CREATE TABLE IF NOT EXISTS validators (
            id TEXT PRIMARY KEY,
            eit_id TEXT NOT NULL,
            skill_id TEXT NOT NULL REFERENCES skills(id),
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            email TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'approved', 'rejected')),
            token TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL
        );

        -- Supervisor scores of EIT skills
        CREATE TABLE IF NOT EXISTS skill_validations (
            id TEXT PRIMARY KEY,
            eit_id TEXT NOT NULL,
            skill_id TEXT NOT NULL REFERENCES skills(id),
            validator_id TEXT NOT NULL,
            score INTEGER NOT NULL CHECK(score >= 1 AND score <= 5),
            feedback TEXT NOT NULL DEFAULT '',
            validated_at TEXT NOT NULL
        );

        -- Supervisor feedback on SAOs (one request per SAO and supervisor)
        CREATE TABLE IF NOT EXISTS sao_feedback (
            id TEXT PRIMARY KEY,
            sao_id TEXT NOT NULL REFERENCES saos(id) ON DELETE CASCADE,
            eit_id TEXT NOT NULL,
            supervisor_id TEXT NOT NULL,
            feedback TEXT NOT NULL DEFAULT '',
            score INTEGER CHECK(score IS NULL OR (score >= 1 AND score <= 5)),
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'submitted', 'resolved')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (sao_id, supervisor_id)
        );

        CREATE TABLE IF NOT EXISTS notification_preferences (
            user_id TEXT PRIMARY KEY,
            supervisor_reviews INTEGER NOT NULL DEFAULT 1,
            skill_validations INTEGER NOT NULL DEFAULT 1,
            connection_requests INTEGER NOT NULL DEFAULT 1,
            sao_feedback INTEGER NOT NULL DEFAULT 1,
            weekly_digest INTEGER NOT NULL DEFAULT 1
        );

        CREATE TABLE IF NOT EXISTS terms_acceptance (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            terms_version TEXT NOT NULL,
            ip_address TEXT,
            user_agent TEXT,
            accepted_at TEXT NOT NULL
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_eit_profiles_email ON eit_profiles(email);
        CREATE INDEX IF NOT EXISTS idx_supervisor_profiles_email ON supervisor_profiles(email);
        CREATE INDEX IF NOT EXISTS idx_experiences_user ON experiences(user_id);
        CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_relationships_supervisor
            ON supervisor_eit_relationships(supervisor_id, status);
        CREATE INDEX IF NOT EXISTS idx_saos_eit ON saos(eit_id);
        CREATE INDEX IF NOT EXISTS idx_skill_validations_eit ON skill_validations(eit_id);
        CREATE INDEX IF NOT EXISTS idx_sao_feedback_supervisor ON sao_feedback(supervisor_id, status);
        """
    )


def _seed_skill_catalog(conn: sqlite3.Connection) -> None:
    """Insert catalog skills that are not present yet."""
    from accreda.core.catalog import SKILL_CATALOG

    position = 0
    for category in SKILL_CATALOG:
        for code, name in category.skills:
            position += 1
            conn.execute(
                """
                INSERT OR IGNORE INTO skills (id, code, name, category, position)
                VALUES (?, ?, ?, ?, ?)
                """,
                (f"skill-{code}", code, name, category.name, position),
            )
