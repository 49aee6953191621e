"""Configuration management."""
import os
import yaml
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

CACHE_BACKENDS = {"memory", "redis"}
LIVE_BACKENDS = {"memory", "redis"}


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    # Environment variable overrides
    env_map = {
        "HOMEWATCH_DB_PATH": [("database", "path")],
        "HOMEWATCH_LOG_LEVEL": [("logging", "level")],
        "HOMEWATCH_RULES_TTL": [("cache", "rules_ttl")],
        "HOMEWATCH_REDIS_URL": [("cache", "redis_url"), ("live", "redis_url")],
    }
    for env_key, config_paths in env_map.items():
        val = os.environ.get(env_key)
        if not val:
            continue
        for config_path in config_paths:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = int(val)
            except ValueError:
                d[config_path[-1]] = val

    _validate_config(config)
    return config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    """Basic config validation."""
    required_sections = ["database", "cache", "live", "logging", "web"]
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    if config["cache"]["backend"] not in CACHE_BACKENDS:
        raise ValueError(f"Unknown cache backend: {config['cache']['backend']}")
    if config["live"]["backend"] not in LIVE_BACKENDS:
        raise ValueError(f"Unknown live backend: {config['live']['backend']}")
    if config["cache"]["rules_ttl"] <= 0:
        raise ValueError("cache.rules_ttl must be > 0 seconds")
    if config["live"]["history_size"] < 1:
        raise ValueError("live.history_size must be >= 1")
