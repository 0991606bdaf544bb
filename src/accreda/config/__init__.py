"""Configuration package for Accreda."""

from accreda.config.app_config import (
    UNLIMITED,
    AppConfig,
    BackendConfig,
    ConnectionsConfig,
    EmailConfig,
    PlanLimits,
    ProgressConfig,
    StorageConfig,
    clear_config_cache,
    get_plan_limits,
    load_app_config,
)

__all__ = [
    "UNLIMITED",
    "AppConfig",
    "BackendConfig",
    "ConnectionsConfig",
    "EmailConfig",
    "PlanLimits",
    "ProgressConfig",
    "StorageConfig",
    "clear_config_cache",
    "get_plan_limits",
    "load_app_config",
]
