"""Tests for EngineConfig."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from policykit import EngineConfig, LogLevel, load_engine_config_from_env
from policykit.config import DEFAULT_MAX_HIERARCHY_LEVEL, DEFAULT_WATCHER_CHANNEL


class TestEngineConfig:
    """Tests for EngineConfig model."""

    def test_create_default_config(self) -> None:
        """Test creating an EngineConfig with defaults."""
        config = EngineConfig()
        assert config.log_level == LogLevel.INFO
        assert config.log_json is False
        assert config.auto_build_role_links is True
        assert config.auto_save is True
        assert config.auto_notify_watcher is True
        assert config.max_hierarchy_level == DEFAULT_MAX_HIERARCHY_LEVEL
        assert config.redis_url is None
        assert config.watcher_channel == DEFAULT_WATCHER_CHANNEL

    def test_log_level_from_string(self) -> None:
        config = EngineConfig(log_level="debug")
        assert config.log_level == LogLevel.DEBUG

    def test_log_level_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            EngineConfig(log_level="LOUD")

    def test_redis_url_validation_valid(self) -> None:
        for url in ("redis://localhost:6379/0", "rediss://localhost:6379/0", "unix:///tmp/redis.sock"):
            assert EngineConfig(redis_url=url).redis_url == url

    def test_redis_url_validation_invalid(self) -> None:
        for url in ("http://localhost:6379", "localhost:6379"):
            with pytest.raises(ValueError, match="Redis URL must start with"):
                EngineConfig(redis_url=url)

    def test_max_hierarchy_level_positive(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(max_hierarchy_level=0)

    def test_empty_channel_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(watcher_channel="")

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(autosave=False)  # type: ignore[call-arg]


class TestLoadEngineConfigFromEnv:
    """Tests for load_engine_config_from_env function."""

    @patch.dict(os.environ, {}, clear=True)
    def test_load_defaults(self) -> None:
        config = load_engine_config_from_env()
        assert config.model_dump() == EngineConfig().model_dump()

    @patch.dict(
        os.environ,
        {
            "LOG_LEVEL": "WARNING",
            "LOG_JSON": "true",
            "REDIS_URL": "redis://cache:6379/1",
            "POLICY_AUTO_BUILD_ROLE_LINKS": "false",
            "POLICY_AUTO_SAVE": "0",
            "POLICY_AUTO_NOTIFY_WATCHER": "no",
            "POLICY_MAX_HIERARCHY_LEVEL": "4",
            "POLICY_WATCHER_CHANNEL": "acl-updates",
        },
        clear=True,
    )
    def test_load_from_env(self) -> None:
        config = load_engine_config_from_env()
        assert config.log_level == LogLevel.WARNING
        assert config.log_json is True
        assert config.redis_url == "redis://cache:6379/1"
        assert config.auto_build_role_links is False
        assert config.auto_save is False
        assert config.auto_notify_watcher is False
        assert config.max_hierarchy_level == 4
        assert config.watcher_channel == "acl-updates"

    def test_flag_variants(self) -> None:
        for value in ("true", "1", "yes", "on", "TRUE"):
            with patch.dict(os.environ, {"LOG_JSON": value}, clear=True):
                assert load_engine_config_from_env().log_json is True

    @patch.dict(os.environ, {"REDIS_URL": "http://nope"}, clear=True)
    def test_invalid_env_value(self) -> None:
        with pytest.raises(ValidationError):
            load_engine_config_from_env()
