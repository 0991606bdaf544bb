"""Core business logic.

Modules:
- catalog: CSAW skill catalog
- skills: per-EIT skill tree and ranks
- progress: overall progress score with realtime refresh
- notifications: notification sender and per-identity center
- email: templated notification emails
- connections: EIT/Supervisor relationship workflow
- roles: role resolution and route guard
- accounts: signup, login and sessions
- settings: profile, subscription and preference operations
- saos: SAOs and skill validators
- experiences: documented experiences and approvals
"""

__all__ = [
    "catalog",
    "skills",
    "progress",
    "notifications",
    "email",
    "connections",
    "roles",
    "accounts",
    "settings",
    "saos",
    "experiences",
]
