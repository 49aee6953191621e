"""Alert rule validation, CRUD and YAML import."""
import logging
import yaml
from pathlib import Path

from alerts.conditions import SUPPORTED_OPERATORS
from models.database import NotFoundError
from models.enums import Severity

logger = logging.getLogger("homewatch.alerts.rules")

_LEVELS = {s.value for s in Severity}


class RuleValidationError(ValueError):
    """Raised when rule fields are missing or malformed."""


def validate_rule(data, partial=False):
    """Return a cleaned copy of `data` with only rule fields, or raise RuleValidationError.

    With partial=True (updates) only the fields present are checked.
    """
    if not isinstance(data, dict):
        raise RuleValidationError("Rule must be an object")

    required = ("metric_id", "condition", "threshold", "level", "message_template")
    if not partial:
        missing = [k for k in required if data.get(k) in (None, "")]
        if missing:
            raise RuleValidationError(f"Missing rule fields: {', '.join(missing)}")

    clean = {}
    if "metric_id" in data:
        if not isinstance(data["metric_id"], str) or not data["metric_id"]:
            raise RuleValidationError("metric_id must be a non-empty string")
        clean["metric_id"] = data["metric_id"]
    if "condition" in data:
        if data["condition"] not in SUPPORTED_OPERATORS:
            raise RuleValidationError(f"Invalid condition: {data['condition']!r}")
        clean["condition"] = data["condition"]
    if "threshold" in data:
        threshold = data["threshold"]
        if isinstance(threshold, bool):
            raise RuleValidationError("threshold must be a number")
        try:
            clean["threshold"] = float(threshold)
        except (TypeError, ValueError):
            raise RuleValidationError(f"threshold must be a number, got {threshold!r}")
    if "level" in data:
        level = str(data["level"]).lower()
        if level not in _LEVELS:
            raise RuleValidationError(f"Invalid level: {data['level']!r}")
        clean["level"] = level
    if "message_template" in data:
        template = data["message_template"]
        if not isinstance(template, str) or not template:
            raise RuleValidationError("message_template must be a non-empty string")
        clean["message_template"] = template
    return clean


class RulesManager:
    """Administrative access to alert rules.

    Changes go straight to the database; evaluation picks them up when the
    metric's cached rule set expires.
    """

    def __init__(self, db):
        self.db = db

    def create(self, data):
        fields = validate_rule(data)
        if self.db.get_metric(fields["metric_id"]) is None:
            raise NotFoundError(f"Metric not found: {fields['metric_id']}")
        rule = self.db.create_rule(**fields)
        logger.info(f"Created rule {rule.id} on metric {rule.metric_id}")
        return rule

    def update(self, rule_id, data):
        fields = validate_rule(data, partial=True)
        if "metric_id" in fields and self.db.get_metric(fields["metric_id"]) is None:
            raise NotFoundError(f"Metric not found: {fields['metric_id']}")
        return self.db.update_rule(rule_id, **fields)

    def delete(self, rule_id):
        self.db.delete_rule(rule_id)
        logger.info(f"Deleted rule {rule_id}")

    def get(self, rule_id):
        rule = self.db.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Alert rule not found: {rule_id}")
        return rule

    def list(self, metric_id=None):
        return self.db.list_rules(metric_id)

    def import_file(self, path, default_metric_id=None):
        """Create rules from a YAML file's `rules:` list. Invalid entries are skipped."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Alert rules file not found: {path}")
            return []
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
            logger.warning(f"Alert rules file {path} must map `rules` to a list")
            return []

        created = []
        for i, raw in enumerate(data.get("rules", [])):
            if not isinstance(raw, dict):
                logger.warning(f"Skipping rule #{i} in {path}: not a mapping")
                continue
            entry = dict(raw)
            if default_metric_id and not entry.get("metric_id"):
                entry["metric_id"] = default_metric_id
            try:
                created.append(self.create(entry))
            except (RuleValidationError, NotFoundError) as e:
                logger.warning(f"Skipping rule #{i} in {path}: {e}")
        logger.info(f"Imported {len(created)} rule(s) from {path}")
        return created
