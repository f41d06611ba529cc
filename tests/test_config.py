"""
Tests for cachecell.config: settings loading and client construction.

Covers:
- CacheCellSettings defaults and CACHECELL_* environment overrides
- Validation of ttl and log level
- get_settings caching
- parse_server
- create_cache_client for every backend (client libraries patched)
"""

from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from cachecell.client import InMemoryClient, MemcachedClient, RedisClient
from cachecell.config import (
    CacheCellSettings,
    ClientBackend,
    LogFormat,
    clear_settings_cache,
    create_cache_client,
    get_settings,
    parse_server,
)


class TestSettings:
    """CacheCellSettings loading."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CACHECELL_BACKEND", raising=False)
        settings = CacheCellSettings(_env_file=None)
        assert settings.backend == ClientBackend.MEMORY
        assert settings.servers == ["127.0.0.1:11211"]
        assert settings.default_ttl == 0
        assert settings.log_level == "INFO"
        assert settings.log_format == LogFormat.AUTO

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CACHECELL_BACKEND", "redis")
        monkeypatch.setenv("CACHECELL_REDIS_URL", "redis://cache:6379/2")
        monkeypatch.setenv("CACHECELL_DEFAULT_TTL", "300")
        settings = CacheCellSettings(_env_file=None)
        assert settings.backend == ClientBackend.REDIS
        assert settings.redis_url == "redis://cache:6379/2"
        assert settings.default_ttl == 300

    def test_servers_from_json_env(self, monkeypatch):
        monkeypatch.setenv("CACHECELL_SERVERS", '["a:11211", "b:11212"]')
        settings = CacheCellSettings(_env_file=None)
        assert settings.servers == ["a:11211", "b:11212"]

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValidationError):
            CacheCellSettings(_env_file=None, default_ttl=-1)

    def test_log_level_normalized(self):
        assert CacheCellSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            CacheCellSettings(_env_file=None, log_level="chatty")

    def test_invalid_backend(self):
        with pytest.raises(ValidationError):
            CacheCellSettings(_env_file=None, backend="sqlite")

    @pytest.mark.parametrize(
        ("log_format", "expected"),
        [(LogFormat.AUTO, None), (LogFormat.JSON, True), (LogFormat.CONSOLE, False)],
    )
    def test_json_logs(self, log_format, expected):
        assert CacheCellSettings(_env_file=None, log_format=log_format).json_logs is expected


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("CACHECELL_MEMORY_MAX_SIZE", "5")
        assert get_settings() is first
        reloaded = get_settings(_force_reload=True)
        assert reloaded.memory_max_size == 5

    def test_clear(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first


class TestParseServer:
    @pytest.mark.parametrize(
        ("server", "expected"),
        [
            ("cache1:11212", ("cache1", 11212)),
            ("cache1", ("cache1", 11211)),
            ("memcached://cache1:1", ("cache1", 1)),
            (":11211", ("127.0.0.1", 11211)),
        ],
    )
    def test_parse(self, server, expected):
        assert parse_server(server) == expected


class TestCreateCacheClient:
    def test_memory(self):
        settings = CacheCellSettings(_env_file=None, memory_max_size=3)
        client = create_cache_client(settings)
        assert isinstance(client, InMemoryClient)
        assert client._max_size == 3

    def test_memcached_single_server(self):
        pytest.importorskip("pymemcache")
        settings = CacheCellSettings(
            _env_file=None, backend="memcached", servers=["cache1:11211"], timeout=1.5
        )
        with patch("pymemcache.client.base.Client") as mock_client:
            client = create_cache_client(settings)
        assert isinstance(client, MemcachedClient)
        mock_client.assert_called_once_with(("cache1", 11211), connect_timeout=2.0, timeout=1.5)
        assert client.raw_client is mock_client.return_value

    def test_memcached_hashed(self):
        pytest.importorskip("pymemcache")
        settings = CacheCellSettings(_env_file=None, backend="memcached", servers=["a:1", "b:2"])
        with patch("pymemcache.client.hash.HashClient") as mock_client:
            client = create_cache_client(settings)
        assert isinstance(client, MemcachedClient)
        assert mock_client.call_args[0][0] == [("a", 1), ("b", 2)]

    def test_redis(self):
        pytest.importorskip("redis")
        settings = CacheCellSettings(_env_file=None, backend="redis", redis_url="redis://r:6379/1")
        raw = MagicMock()
        with patch("redis.from_url", return_value=raw) as from_url:
            client = create_cache_client(settings)
        assert isinstance(client, RedisClient)
        from_url.assert_called_once_with("redis://r:6379/1", max_connections=10, decode_responses=False)
        assert raw.register_script.call_count == 2
