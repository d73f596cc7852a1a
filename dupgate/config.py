"""Configuration management for dupgate."""

import os
import json
import yaml
from typing import Dict, Optional, Any


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration manager with file and environment variable support."""

    ENV_MAPPINGS = {
        "HOST": ("server", "host"),
        "PORT": ("server", "port", int),
        "CACHE_TTL_SEG": ("cache", "ttl_seconds", float),
        "LOCAL_CACHE_MAX_ENTRIES": ("cache", "local_max_entries", int),
        "SHARED_CACHE_ENABLED": ("cache", "shared_enabled", _parse_bool),
        "REDIS_HOST": ("redis", "host"),
        "REDIS_PORT": ("redis", "port", int),
        "REDIS_PASSWORD": ("redis", "password"),
        "REDIS_DB": ("redis", "db", int),
        "ATOMIC_ADMISSION": ("gate", "atomic_admission", _parse_bool),
        "LOG_LEVEL": ("logging", "level"),
        "PROMETHEUS_ENABLED": ("monitoring", "prometheus_enabled", _parse_bool),
        "PROMETHEUS_PORT": ("monitoring", "prometheus_port", int),
    }

    def __init__(self, config_file: Optional[str] = None):
        self.config: Dict[str, Any] = {}
        self.config_file = config_file or os.getenv('DUPGATE_CONFIG', 'dupgate.yaml')
        self._load_config()
        self._load_env_overrides()

    @staticmethod
    def defaults() -> Dict[str, Any]:
        return {
            "server": {
                "host": "0.0.0.0",
                "port": 3000
            },
            "cache": {
                "ttl_seconds": 2,
                "local_max_entries": 10000,
                "shared_enabled": True
            },
            "redis": {
                "host": "localhost",
                "port": 6379,
                "password": "",
                "db": 0
            },
            "gate": {
                "atomic_admission": False
            },
            "logging": {
                "level": "INFO"
            },
            "monitoring": {
                "prometheus_enabled": False,
                "prometheus_port": 9090
            }
        }

    def _load_config(self):
        """Load configuration from file, falling back to defaults."""
        self.config = self.defaults()
        if not os.path.exists(self.config_file):
            return

        try:
            with open(self.config_file, 'r') as f:
                if self.config_file.endswith(('.yaml', '.yml')):
                    loaded = yaml.safe_load(f) or {}
                elif self.config_file.endswith('.json'):
                    loaded = json.load(f)
                else:
                    return
        except (OSError, ValueError, yaml.YAMLError):
            return

        # File values overlay defaults section by section
        for section, values in loaded.items():
            if isinstance(values, dict):
                self.config.setdefault(section, {}).update(values)

    def _load_env_overrides(self):
        """Override config with environment variables."""
        for env_key, (section, key, *converters) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_key)
            if value is None:
                continue
            if converters:
                try:
                    value = converters[0](value)
                except (ValueError, TypeError):
                    continue
            self.set(section, key, value)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.config.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any):
        """Set configuration value."""
        self.config.setdefault(section, {})[key] = value

    def save(self, filename: Optional[str] = None):
        """Save configuration to file."""
        target_file = filename or self.config_file
        with open(target_file, 'w') as f:
            if target_file.endswith(('.yaml', '.yml')):
                yaml.dump(self.config, f, default_flow_style=False)
            else:
                json.dump(self.config, f, indent=2)

    def redis_url(self) -> str:
        """Build the Redis connection URL for the shared cache tier."""
        password = self.get("redis", "password") or ""
        auth = f":{password}@" if password else ""
        host = self.get("redis", "host", "localhost")
        port = self.get("redis", "port", 6379)
        db = self.get("redis", "db", 0)
        return f"redis://{auth}{host}:{port}/{db}"

    def validate(self) -> tuple[bool, list[str]]:
        """Validate configuration."""
        errors = []

        for section in ("server", "redis"):
            port = self.get(section, "port")
            if not isinstance(port, int) or port < 1 or port > 65535:
                errors.append(f"Invalid {section} port")

        ttl = self.get("cache", "ttl_seconds")
        if not isinstance(ttl, (int, float)) or isinstance(ttl, bool) or ttl <= 0:
            errors.append("Cache TTL must be a positive number of seconds")

        max_entries = self.get("cache", "local_max_entries")
        if max_entries is not None and (not isinstance(max_entries, int) or max_entries < 1):
            errors.append("Local cache max entries must be a positive integer")

        if self.get("monitoring", "prometheus_enabled"):
            port = self.get("monitoring", "prometheus_port")
            if not isinstance(port, int) or port < 1 or port > 65535:
                errors.append("Invalid Prometheus port")

        return len(errors) == 0, errors
