"""Tests for configuration loading."""
import pytest

from config import load_config, _deep_merge


def test_defaults():
    config = load_config()
    assert config["cache"]["rules_ttl"] == 300
    assert config["cache"]["key_prefix"] == "alert_rules:"
    assert config["live"]["backend"] == "memory"


def test_override_file(tmp_path):
    path = tmp_path / "override.yaml"
    path.write_text("cache:\n  rules_ttl: 60\n")
    config = load_config(str(path))
    assert config["cache"]["rules_ttl"] == 60
    assert config["cache"]["backend"] == "memory"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HOMEWATCH_RULES_TTL", "120")
    monkeypatch.setenv("HOMEWATCH_REDIS_URL", "redis://cache:6379/1")
    config = load_config()
    assert config["cache"]["rules_ttl"] == 120
    assert config["cache"]["redis_url"] == "redis://cache:6379/1"
    assert config["live"]["redis_url"] == "redis://cache:6379/1"


@pytest.mark.parametrize("override", [
    "cache:\n  backend: memcached\n",
    "live:\n  backend: kafka\n",
    "cache:\n  rules_ttl: 0\n",
    "live:\n  history_size: 0\n",
])
def test_invalid_config(tmp_path, override):
    path = tmp_path / "bad.yaml"
    path.write_text(override)
    with pytest.raises(ValueError):
        load_config(str(path))


def test_deep_merge():
    assert _deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}}) == {"a": {"b": 1, "c": 3}}
