"""Unit tests for configuration loading and validation."""

import pytest

from src.config import (
    AppConfig,
    CacheConfig,
    PaginationConfig,
    TakaroConfig,
    validate_config,
)


class TestFromEnv:
    """Test environment variable loading."""

    def test_defaults(self, monkeypatch):
        for name in (
            "REDIS_URL",
            "CACHE_KEY_PREFIX",
            "CACHE_REDIS_ENABLED",
            "TAKARO_API_URL",
            "TAKARO_PAGE_SIZE",
            "TAKARO_MAX_TOTAL",
        ):
            monkeypatch.delenv(name, raising=False)

        config = AppConfig.from_env()

        assert config.cache.redis_url == "redis://localhost:6379"
        assert config.cache.key_prefix == "takaro"
        assert config.cache.redis_enabled is True
        assert config.takaro.api_url == "https://api.takaro.io"
        assert config.pagination.page_size == 100
        assert config.pagination.max_total == 10000

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6380/1")
        monkeypatch.setenv("CACHE_REDIS_ENABLED", "false")
        monkeypatch.setenv("REDIS_SOCKET_TIMEOUT", "1.5")
        monkeypatch.setenv("TAKARO_USERNAME", "svc")
        monkeypatch.setenv("TAKARO_PASSWORD", "secret")
        monkeypatch.setenv("TAKARO_PAGE_SIZE", "50")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = AppConfig.from_env()

        assert config.cache.redis_url == "redis://cache:6380/1"
        assert config.cache.redis_enabled is False
        assert config.cache.socket_timeout == 1.5
        assert config.takaro.has_service_credentials
        assert config.pagination.page_size == 50
        assert config.logging.log_level == "DEBUG"

    def test_to_dict_masks_password(self):
        config = AppConfig(takaro=TakaroConfig(username="svc", password="secret"))

        assert config.to_dict()["takaro"]["password"] == "***"
        assert config.takaro.password == "secret"


class TestValidation:
    """Test validate_config checks."""

    def test_default_config_is_valid(self):
        assert AppConfig().validate() == (True, [])

    @pytest.mark.parametrize(
        "config",
        [
            AppConfig(cache=CacheConfig(redis_url="http://localhost:6379")),
            AppConfig(cache=CacheConfig(key_prefix="")),
            AppConfig(cache=CacheConfig(key_prefix="a:b")),
            AppConfig(cache=CacheConfig(socket_timeout=0)),
            AppConfig(takaro=TakaroConfig(api_url="api.takaro.io")),
            AppConfig(takaro=TakaroConfig(username="svc")),
            AppConfig(pagination=PaginationConfig(page_size=0)),
            AppConfig(pagination=PaginationConfig(max_total=-1)),
        ],
    )
    def test_invalid_configs(self, config):
        is_valid, errors = validate_config(config)

        assert is_valid is False
        assert len(errors) == 1

    def test_redis_url_ignored_when_disabled(self):
        config = AppConfig(cache=CacheConfig(redis_url="", redis_enabled=False))
        assert config.validate() == (True, [])

    def test_unix_socket_url_accepted(self):
        config = AppConfig(cache=CacheConfig(redis_url="unix:///var/run/redis.sock"))
        assert config.validate()[0] is True
