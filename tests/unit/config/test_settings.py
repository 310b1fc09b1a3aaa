# tests/unit/config/test_settings.py — v1
"""Tests for config/settings.py — defaults, validators, consistency rules."""

from __future__ import annotations

from pathlib import Path

import pytest

from dealscope.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_supervision_defaults(self):
        s = Settings(_env_file=None)
        assert s.agent_timeout_ms == 50_000
        assert s.agent_max_retries == 2
        assert s.outer_guard_timeout_ms == 55_000

    def test_cache_defaults(self):
        s = Settings(_env_file=None)
        assert s.cache_enabled is True
        assert s.cache_backend == "memory"
        assert s.cache_default_ttl_s == 300
        assert s.analysis_cache_ttl_s == 86_400

    def test_store_defaults(self):
        s = Settings(_env_file=None)
        assert s.fact_store_backend == "memory"
        assert s.credits_monthly_allocation == 10
        assert s.credits_db_path == Path("~/.dealscope/credits.db")

    def test_no_cost_limit_by_default(self):
        assert Settings(_env_file=None).analysis_max_cost_usd is None


class TestSettingsValidation:
    def test_inner_timeout_must_be_shorter_than_outer(self):
        with pytest.raises(ConfigurationError, match="OUTER_GUARD_TIMEOUT_MS"):
            Settings(_env_file=None, agent_timeout_ms=60_000, outer_guard_timeout_ms=55_000)

    def test_equal_timeouts_rejected(self):
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, agent_timeout_ms=55_000, outer_guard_timeout_ms=55_000)

    def test_redis_backend_requires_url(self):
        with pytest.raises(ConfigurationError, match="CACHE_REDIS_URL"):
            Settings(_env_file=None, cache_backend="redis")

    def test_redis_backend_with_url(self):
        s = Settings(
            _env_file=None, cache_backend="redis", cache_redis_url="redis://localhost:6379/0"
        )
        assert s.cache_backend == "redis"

    def test_cache_max_entries_positive(self):
        with pytest.raises(ConfigurationError, match="CACHE_MAX_ENTRIES"):
            Settings(_env_file=None, cache_max_entries=0)

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, agent_max_retries=-1)

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, agent_timeout_ms=0)

    def test_multiple_errors_joined(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(
                _env_file=None,
                agent_timeout_ms=90_000,
                cache_backend="redis",
            )
        assert "OUTER_GUARD_TIMEOUT_MS" in str(exc_info.value)
        assert "CACHE_REDIS_URL" in str(exc_info.value)


class TestEnvironment:
    def test_env_var_override(self, monkeypatch):
        monkeypatch.setenv("AGENT_MAX_RETRIES", "4")
        monkeypatch.setenv("CACHE_ENABLED", "false")
        s = Settings(_env_file=None)
        assert s.agent_max_retries == 4
        assert s.cache_enabled is False

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("CREDITS_MONTHLY_ALLOCATION=25\nLOG_FORMAT=text\n")
        s = Settings(_env_file=str(env))
        assert s.credits_monthly_allocation == 25
        assert s.log_format == "text"

    def test_load_settings_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        s = load_settings(agent_timeout_ms=1_000, outer_guard_timeout_ms=2_000)
        assert s.agent_timeout_ms == 1_000
        assert s.outer_guard_timeout_ms == 2_000
