"""Tests for the environment-driven configuration and retry policy."""

from __future__ import annotations

import importlib
import os
from unittest.mock import patch

import pytest

import an_votes.config as config
from an_votes.retry import RetryPolicy


@pytest.fixture()
def reload_config():
    """Reload ``an_votes.config`` under env overrides, restoring it afterwards."""

    def _reload(**env_overrides: str):
        with patch.dict(os.environ, env_overrides):
            return importlib.reload(config)

    yield _reload
    importlib.reload(config)


class TestProfiles:
    def test_dev_defaults(self, reload_config) -> None:
        cfg = reload_config(AN_PROFILE="dev")
        assert cfg.PROFILE == "dev"
        assert cfg.INTER_BATCH_PAUSE_S == 0.3
        assert cfg.CACHE_MAX_ENTRIES == 0
        assert cfg.FETCH_BATCH_SIZE == 10

    def test_prod_defaults(self, reload_config) -> None:
        cfg = reload_config(AN_PROFILE="prod")
        assert cfg.CACHE_MAX_ENTRIES == 5000
        assert cfg.REQUEST_DELAY_S == 0.2

    def test_env_overrides_profile(self, reload_config) -> None:
        cfg = reload_config(AN_PROFILE="prod", AN_CACHE_MAX_ENTRIES="10", AN_LEGISLATURE="16")
        assert cfg.CACHE_MAX_ENTRIES == 10
        assert cfg.LEGISLATURE == "16"

    def test_unknown_profile_falls_back(self, reload_config) -> None:
        cfg = reload_config(AN_PROFILE="staging")
        assert cfg.PROFILE == "dev"

    def test_invalid_batch_size(self, reload_config) -> None:
        cfg = reload_config(AN_FETCH_BATCH_SIZE="0")
        assert cfg.FETCH_BATCH_SIZE == 10


class TestSyncSources:
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {"AN_SYNC_SOURCES": ""}):
            assert config.get_sync_sources() == config.DEFAULT_SYNC_SOURCES

    def test_custom_list(self) -> None:
        with patch.dict(os.environ, {"AN_SYNC_SOURCES": "https://a.example/x.json, ,https://b.example"}):
            assert config.get_sync_sources() == ["https://a.example/x.json", "https://b.example"]


class TestRetryPolicy:
    def test_fixed_cooldown(self) -> None:
        policy = RetryPolicy(cooldown_s=10.0)
        assert policy.backoff(1) == 10.0
        assert policy.backoff(5) == 10.0
        assert not policy.is_eligible(100.0, 1, 109.0)
        assert policy.is_eligible(100.0, 1, 110.0)

    def test_exponential_backoff_is_capped(self) -> None:
        policy = RetryPolicy(cooldown_s=10.0, backoff_factor=2.0, max_cooldown_s=60.0)
        assert [policy.backoff(n) for n in (1, 2, 3, 4, 5)] == [10.0, 20.0, 40.0, 60.0, 60.0]

    def test_max_attempts(self) -> None:
        policy = RetryPolicy(cooldown_s=0.0, max_attempts=3)
        assert policy.is_eligible(0.0, 2, 0.0)
        assert not policy.is_eligible(0.0, 3, 1000.0)
