"""Alert evaluation engine."""
import logging

from alerts.conditions import evaluate_condition
from alerts.dispatcher import NotificationDispatcher
from alerts.templates import render_message
from models.enums import AlertStatus

logger = logging.getLogger("homewatch.alerts.engine")


class AlertEngine:
    """Evaluate every rule of a reading's metric and record the ones that fire.

    Collaborators are passed in: `db` is the persistent store
    (`find_metric_with_owner`, `create_alert`), `rule_cache` serves the
    metric's rules. The live channel is optional per call, so backfill runs
    can evaluate without pushing anything.
    """

    def __init__(self, db, rule_cache, dispatcher=None):
        self.db = db
        self.rule_cache = rule_cache
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    def evaluate(self, reading, notifier=None):
        """Evaluate one persisted reading. Never raises.

        Returns the alerts that were created, in rule order.
        """
        created = []
        try:
            rules = self.rule_cache.get_rules(reading.metric_id)
            if not rules:
                return created

            metric = self.db.find_metric_with_owner(reading.metric_id)
            if metric is None:
                logger.debug(f"Reading {reading.id}: metric {reading.metric_id} not found")
                return created
        except Exception as e:
            logger.error(f"Alert evaluation failed for reading {reading.id}: {e}")
            return created

        for rule in rules:
            try:
                alert = self._apply_rule(rule, reading, metric)
            except Exception as e:
                logger.error(f"Rule {rule.id} failed for reading {reading.id}: {e}")
                continue
            if alert is None:
                continue
            created.append(alert)

            if notifier is not None:
                self.dispatcher.notify(alert, notifier, owner_id=metric.owner_id or "")

        if created:
            logger.info(f"Reading {reading.id} triggered {len(created)} alert(s)")
        return created

    def _apply_rule(self, rule, reading, metric):
        if not evaluate_condition(rule.condition, reading.value, rule.threshold):
            return None

        message = render_message(rule.message_template, metric.name, reading.value, rule.threshold)
        return self.db.create_alert({
            "metric_id": reading.metric_id,
            "reading_id": reading.id,
            "level": rule.level,
            "status": AlertStatus.NEW.value,
            "threshold": rule.threshold,
            "message": message,
        })

    def test_rules(self, metric_id, value):
        """Dry-run every rule of a metric against `value` without persisting anything."""
        metric = self.db.find_metric_with_owner(metric_id)
        metric_name = metric.name if metric else metric_id
        results = []
        for rule in self.db.find_rules_by_metric(metric_id):
            would_fire = evaluate_condition(rule.condition, value, rule.threshold)
            results.append({
                "rule_id": rule.id,
                "condition": rule.condition,
                "threshold": rule.threshold,
                "level": rule.level,
                "would_fire": would_fire,
                "message": render_message(rule.message_template, metric_name, value, rule.threshold)
                if would_fire else None,
            })
        return results
