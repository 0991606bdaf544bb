"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization and skill catalog seeding
- Repository modules, one per table family
"""

from accreda.db.database import get_db, init_db, new_id, utc_now

__all__ = ["get_db", "init_db", "new_id", "utc_now"]
