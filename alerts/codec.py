"""Versioned JSON codec for the rule lists stored in the TTL cache.

A cached payload that does not match the expected shape (written by an older
build, truncated, or simply foreign) raises `RuleCodecError` instead of
producing half-populated `AlertRule` objects.
"""
import json

from models.alerts import AlertRule
from models.enums import Severity

CODEC_VERSION = 1

_STRING_FIELDS = ("id", "metric_id", "condition", "level", "message_template")
_LEVELS = {s.value for s in Severity}


class RuleCodecError(ValueError):
    """Raised when a cached rule payload cannot be decoded."""


def encode_rules(rules):
    return json.dumps({
        "version": CODEC_VERSION,
        "rules": [rule.to_dict() for rule in rules],
    })


def decode_rules(payload):
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise RuleCodecError(f"Cached rules are not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise RuleCodecError("Cached rules payload must be an object")
    if data.get("version") != CODEC_VERSION:
        raise RuleCodecError(f"Unsupported cached rules version: {data.get('version')!r}")
    raw_rules = data.get("rules")
    if not isinstance(raw_rules, list):
        raise RuleCodecError("Cached rules payload has no 'rules' list")

    return [_decode_rule(i, raw) for i, raw in enumerate(raw_rules)]


def _decode_rule(index, raw):
    if not isinstance(raw, dict):
        raise RuleCodecError(f"Rule #{index} is not an object")
    for name in _STRING_FIELDS:
        if not isinstance(raw.get(name), str):
            raise RuleCodecError(f"Rule #{index} field '{name}' must be a string")
    threshold = raw.get("threshold")
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise RuleCodecError(f"Rule #{index} threshold must be a number")
    if raw["level"] not in _LEVELS:
        raise RuleCodecError(f"Rule #{index} has unknown level {raw['level']!r}")
    return AlertRule(
        id=raw["id"],
        metric_id=raw["metric_id"],
        condition=raw["condition"],
        threshold=float(threshold),
        level=raw["level"],
        message_template=raw["message_template"],
    )
