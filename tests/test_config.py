"""Tests for the configuration module."""

import json

import yaml

from dupgate.config import Config


class TestConfigDefaults:
    """Tests for default configuration."""

    def test_defaults_without_file(self, clean_env, tmp_path):
        config = Config(str(tmp_path / "missing.yaml"))
        assert config.get("server", "port") == 3000
        assert config.get("cache", "ttl_seconds") == 2
        assert config.get("cache", "shared_enabled") is True
        assert config.get("gate", "atomic_admission") is False
        assert config.get("redis", "host") == "localhost"

    def test_unknown_key_default(self, clean_env, tmp_path):
        config = Config(str(tmp_path / "missing.yaml"))
        assert config.get("nope", "missing", "fallback") == "fallback"


class TestConfigFile:
    """Tests for file-based configuration."""

    def test_yaml_overlays_defaults(self, clean_env, tmp_path):
        path = tmp_path / "dupgate.yaml"
        path.write_text(yaml.safe_dump({"cache": {"ttl_seconds": 10}, "redis": {"host": "cache.internal"}}))
        config = Config(str(path))
        assert config.get("cache", "ttl_seconds") == 10
        assert config.get("cache", "local_max_entries") == 10000
        assert config.get("redis", "host") == "cache.internal"

    def test_json_file(self, clean_env, tmp_path):
        path = tmp_path / "dupgate.json"
        path.write_text(json.dumps({"gate": {"atomic_admission": True}}))
        config = Config(str(path))
        assert config.get("gate", "atomic_admission") is True

    def test_unreadable_file_uses_defaults(self, clean_env, tmp_path):
        path = tmp_path / "dupgate.yaml"
        path.write_text("cache: [unclosed")
        config = Config(str(path))
        assert config.get("cache", "ttl_seconds") == 2

    def test_save_round_trip(self, clean_env, tmp_path):
        config = Config(str(tmp_path / "missing.yaml"))
        config.set("cache", "ttl_seconds", 7)
        target = tmp_path / "saved.yaml"
        config.save(str(target))
        assert Config(str(target)).get("cache", "ttl_seconds") == 7


class TestConfigEnv:
    """Tests for environment overrides."""

    def test_env_overrides(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("CACHE_TTL_SEG", "0.5")
        monkeypatch.setenv("REDIS_PORT", "6380")
        monkeypatch.setenv("ATOMIC_ADMISSION", "true")
        monkeypatch.setenv("SHARED_CACHE_ENABLED", "false")
        config = Config(str(tmp_path / "missing.yaml"))
        assert config.get("cache", "ttl_seconds") == 0.5
        assert config.get("redis", "port") == 6380
        assert config.get("gate", "atomic_admission") is True
        assert config.get("cache", "shared_enabled") is False

    def test_bad_env_value_ignored(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("PORT", "not-a-port")
        config = Config(str(tmp_path / "missing.yaml"))
        assert config.get("server", "port") == 3000


class TestConfigHelpers:
    """Tests for redis_url and validate."""

    def test_redis_url_without_password(self, clean_env, tmp_path):
        config = Config(str(tmp_path / "missing.yaml"))
        assert config.redis_url() == "redis://localhost:6379/0"

    def test_redis_url_with_password(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("REDIS_PASSWORD", "secret")
        monkeypatch.setenv("REDIS_HOST", "redis")
        config = Config(str(tmp_path / "missing.yaml"))
        assert config.redis_url() == "redis://:secret@redis:6379/0"

    def test_defaults_are_valid(self, clean_env, tmp_path):
        assert Config(str(tmp_path / "missing.yaml")).validate() == (True, [])

    def test_invalid_values_reported(self, clean_env, tmp_path):
        config = Config(str(tmp_path / "missing.yaml"))
        config.set("server", "port", 70000)
        config.set("cache", "ttl_seconds", 0)
        valid, errors = config.validate()
        assert valid is False
        assert "Invalid server port" in errors
        assert "Cache TTL must be a positive number of seconds" in errors
