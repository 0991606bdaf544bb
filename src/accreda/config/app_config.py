"""Application configuration loader.

Loads centralized configuration from data/config/accreda_config_v1.yaml,
falling back to built-in defaults when the file is absent. The backend URL
and API key can be overridden from the environment.

Usage:
    from accreda.config.app_config import load_app_config, get_plan_limits

    config = load_app_config()
    limits = get_plan_limits("free")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/accreda_config_v1.yaml")

BACKEND_URL_ENV = "ACCREDA_BACKEND_URL"
API_KEY_ENV = "ACCREDA_API_KEY"

# Sentinel the subscriptions table uses for "no limit"
UNLIMITED = 2147483647


@dataclass
class BackendConfig:
    """Hosted functions endpoint and credentials."""

    base_url: str = "http://localhost:54321"
    api_key_env: str = API_KEY_ENV
    timeout: float = 15.0

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None

    @property
    def functions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/functions/v1"


@dataclass
class ProgressConfig:
    """Denominators for the overall progress score."""

    total_skills: int = 22
    total_experiences: int = 24
    total_approvals: int = 24


@dataclass
class PlanLimits:
    """Per-tier capacity limits."""

    tier: str
    document_limit: int
    sao_limit: int
    supervisor_limit: int
    eit_limit: int

    @staticmethod
    def is_unlimited(limit: int) -> bool:
        return limit >= UNLIMITED


@dataclass
class ConnectionsConfig:
    """Relationship workflow switches."""

    notify_on_deny: bool = False


@dataclass
class EmailConfig:
    """Transactional email settings."""

    enabled: bool = True
    sender: str = "Accreda <noreply@accreda.com>"
    app_url: str = "https://accreda.ca"


@dataclass
class StorageConfig:
    """Avatar bucket location."""

    avatars_dir: str = "data/storage/avatars"
    public_base_url: str = "http://localhost:8000/storage/avatars"


@dataclass
class SecurityConfig:
    """Password hashing cost."""

    bcrypt_rounds: int = 12


@dataclass
class AppConfig:
    """Application-wide configuration."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    plans: dict[str, PlanLimits] = field(default_factory=dict)
    connections: ConnectionsConfig = field(default_factory=ConnectionsConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    paths: dict[str, str] = field(default_factory=dict)
    terms_version: str = "1.0"


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "backend": {
            "base_url": "http://localhost:54321",
            "api_key_env": API_KEY_ENV,
            "timeout": 15.0,
        },
        "progress": {
            "total_skills": 22,
            "total_experiences": 24,
            "total_approvals": 24,
        },
        "plans": {
            "free": {
                "document_limit": 5,
                "sao_limit": 5,
                "supervisor_limit": 1,
                "eit_limit": 3,
            },
            "pro": {
                "document_limit": 50,
                "sao_limit": 50,
                "supervisor_limit": 3,
                "eit_limit": 25,
            },
            "enterprise": {
                "document_limit": UNLIMITED,
                "sao_limit": UNLIMITED,
                "supervisor_limit": UNLIMITED,
                "eit_limit": UNLIMITED,
            },
        },
        "connections": {"notify_on_deny": False},
        "email": {
            "enabled": True,
            "sender": "Accreda <noreply@accreda.com>",
            "app_url": "https://accreda.ca",
        },
        "storage": {
            "avatars_dir": "data/storage/avatars",
            "public_base_url": "http://localhost:8000/storage/avatars",
        },
        "security": {"bcrypt_rounds": 12},
        "paths": {
            "db_path": "db/accreda.db",
            "csaw_template": "data/templates/csaw_v1.pdf",
        },
        "terms_version": "1.0",
    }


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay YAML values on top of defaults."""
    result = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    backend_data = data.get("backend", {})
    backend = BackendConfig(
        base_url=os.environ.get(BACKEND_URL_ENV)
        or backend_data.get("base_url", "http://localhost:54321"),
        api_key_env=backend_data.get("api_key_env", API_KEY_ENV),
        timeout=float(backend_data.get("timeout", 15.0)),
    )

    progress_data = data.get("progress", {})
    progress = ProgressConfig(
        total_skills=progress_data.get("total_skills", 22),
        total_experiences=progress_data.get("total_experiences", 24),
        total_approvals=progress_data.get("total_approvals", 24),
    )

    plans = {}
    for tier, limits in data.get("plans", {}).items():
        plans[tier] = PlanLimits(
            tier=tier,
            document_limit=limits.get("document_limit", 5),
            sao_limit=limits.get("sao_limit", 5),
            supervisor_limit=limits.get("supervisor_limit", 1),
            eit_limit=limits.get("eit_limit", 3),
        )

    connections = ConnectionsConfig(
        notify_on_deny=bool(data.get("connections", {}).get("notify_on_deny", False)),
    )

    email_data = data.get("email", {})
    email = EmailConfig(
        enabled=bool(email_data.get("enabled", True)),
        sender=email_data.get("sender", "Accreda <noreply@accreda.com>"),
        app_url=email_data.get("app_url", "https://accreda.ca"),
    )

    storage_data = data.get("storage", {})
    storage = StorageConfig(
        avatars_dir=storage_data.get("avatars_dir", "data/storage/avatars"),
        public_base_url=storage_data.get(
            "public_base_url", "http://localhost:8000/storage/avatars"
        ),
    )

    security = SecurityConfig(
        bcrypt_rounds=int(data.get("security", {}).get("bcrypt_rounds", 12)),
    )

    return AppConfig(
        backend=backend,
        progress=progress,
        plans=plans,
        connections=connections,
        email=email,
        storage=storage,
        security=security,
        paths=data.get("paths", {}),
        terms_version=str(data.get("terms_version", "1.0")),
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, overlaying the YAML file on defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data = _get_defaults()

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        loaded = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
        data = _merge(data, loaded)
    else:
        logger.info("using_default_config")

    _cached_config = _parse_config(data)
    return _cached_config


def get_plan_limits(tier: str) -> PlanLimits:
    """Get limits for a subscription tier.

    Unknown tiers fall back to the free plan.
    """
    config = load_app_config()
    limits = config.plans.get(tier)
    if limits is None:
        logger.warning("unknown_plan_tier", tier=tier)
        limits = config.plans["free"]
    return limits


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
