"""Tests for application configuration (F1)."""

from pathlib import Path

import pytest

from accreda.config.app_config import (
    BACKEND_URL_ENV,
    CONFIG_FILE,
    UNLIMITED,
    PlanLimits,
    clear_config_cache,
    get_plan_limits,
    load_app_config,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run in an empty directory with a cold config cache."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(BACKEND_URL_ENV, raising=False)
    clear_config_cache()
    yield tmp_path
    clear_config_cache()


def _write_config(text: str) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(text, encoding="utf-8")


class TestDefaults:
    """Defaults apply when no config file exists."""

    def test_progress_totals(self, isolated):
        config = load_app_config()
        assert config.progress.total_skills == 22
        assert config.progress.total_experiences == 24
        assert config.progress.total_approvals == 24

    def test_free_plan_limits(self, isolated):
        limits = get_plan_limits("free")
        assert limits.document_limit == 5
        assert limits.sao_limit == 5
        assert limits.supervisor_limit == 1
        assert limits.eit_limit == 3

    def test_pro_plan_limits(self, isolated):
        limits = get_plan_limits("pro")
        assert (limits.document_limit, limits.sao_limit) == (50, 50)
        assert (limits.supervisor_limit, limits.eit_limit) == (3, 25)

    def test_enterprise_is_unlimited(self, isolated):
        limits = get_plan_limits("enterprise")
        assert limits.eit_limit == UNLIMITED
        assert PlanLimits.is_unlimited(limits.sao_limit)

    def test_unknown_tier_falls_back_to_free(self, isolated):
        assert get_plan_limits("platinum").tier == "free"

    def test_deny_notification_off_by_default(self, isolated):
        assert load_app_config().connections.notify_on_deny is False

    def test_bcrypt_cost_default(self, isolated):
        assert load_app_config().security.bcrypt_rounds == 12


class TestOverrides:
    """YAML and environment overrides."""

    def test_yaml_overrides_merge_with_defaults(self, isolated):
        _write_config(
            "progress:\n"
            "  total_skills: 10\n"
            "connections:\n"
            "  notify_on_deny: true\n"
            "security:\n"
            "  bcrypt_rounds: 10\n"
        )
        config = load_app_config(force_reload=True)
        assert config.progress.total_skills == 10
        assert config.progress.total_experiences == 24
        assert config.connections.notify_on_deny is True
        assert config.security.bcrypt_rounds == 10
        assert "free" in config.plans

    def test_env_overrides_backend_url(self, isolated, monkeypatch):
        monkeypatch.setenv(BACKEND_URL_ENV, "https://backend.example.test/")
        config = load_app_config(force_reload=True)
        assert config.backend.functions_url == "https://backend.example.test/functions/v1"

    def test_config_is_cached(self, isolated):
        first = load_app_config()
        _write_config("terms_version: '2.0'\n")
        assert load_app_config() is first
        assert load_app_config(force_reload=True).terms_version == "2.0"
