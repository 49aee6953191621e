"""Tests for the alert evaluation pipeline."""
from unittest.mock import MagicMock

from alerts.engine import AlertEngine
from alerts.rule_cache import RuleCache
from models.alerts import Alert, AlertRule
from models.telemetry import MetricOwner, Reading
from utils.cache import TTLCache


def _add_rule(home, condition=">", threshold=30, level="critical",
              template="{metricName} is {value}, exceeding {threshold}"):
    return home.db.create_rule(home.metric.id, condition, threshold, level, template)


# ── Rule Evaluation ─────────────────────────────────────

def test_rule_fires_and_alert_is_persisted(home, engine):
    _add_rule(home)
    reading = home.db.save_reading(home.metric.id, 35.5)

    created = engine.evaluate(reading)

    assert len(created) == 1
    alert = home.db.get_alert(created[0].id)
    assert alert.level == "critical"
    assert alert.status == "new"
    assert alert.threshold == 30
    assert alert.message == "Temperature is 35.5, exceeding 30"
    assert alert.metric_id == home.metric.id
    assert alert.reading_id == reading.id


def test_no_rule_matches(home, engine):
    _add_rule(home, ">", 30)
    _add_rule(home, "<", 10)
    reading = home.db.save_reading(home.metric.id, 21.0)

    assert engine.evaluate(reading) == []
    assert home.db.list_alerts() == []


def test_several_rules_fire_on_one_reading_in_order(home, engine):
    _add_rule(home, ">", 26, "warning", "warm")
    _add_rule(home, ">", 30, "critical", "hot")
    reading = home.db.save_reading(home.metric.id, 40)

    created = engine.evaluate(reading)
    assert [a.level for a in created] == ["warning", "critical"]
    assert [a.message for a in created] == ["warm", "hot"]


def test_unknown_operator_is_skipped(home, engine):
    home.db.create_rule(home.metric.id, "~=", 0, "info", "odd")
    _add_rule(home, ">", 30, "critical", "hot")
    reading = home.db.save_reading(home.metric.id, 50)

    created = engine.evaluate(reading)
    assert [a.message for a in created] == ["hot"]


def test_threshold_is_captured_at_evaluation_time(home, engine):
    rule = _add_rule(home, ">", 30)
    reading = home.db.save_reading(home.metric.id, 35.5)
    alert = engine.evaluate(reading)[0]

    home.db.update_rule(rule.id, threshold=99)
    assert home.db.get_alert(alert.id).threshold == 30


def test_rule_edit_waits_for_cache_expiry(home, engine, clock):
    rule = _add_rule(home, ">", 30)
    engine.evaluate(home.db.save_reading(home.metric.id, 10))

    home.db.update_rule(rule.id, threshold=5)
    assert engine.evaluate(home.db.save_reading(home.metric.id, 10)) == []

    clock.advance(300)
    assert len(engine.evaluate(home.db.save_reading(home.metric.id, 10))) == 1


def test_reading_for_unknown_metric_is_ignored():
    db = MagicMock()
    db.find_metric_with_owner.return_value = None
    rule_cache = MagicMock()
    rule_cache.get_rules.return_value = [AlertRule(id="r1", metric_id="gone", condition=">",
                                                   threshold=0, level="info", message_template="x")]
    engine = AlertEngine(db, rule_cache)

    assert engine.evaluate(Reading(id="rd1", metric_id="gone", value=5)) == []
    db.create_alert.assert_not_called()


# ── Failure handling ───────────────────────────────────

def test_failed_alert_write_does_not_stop_other_rules(home, clock):
    for level in ("info", "warning", "critical", "critical"):
        _add_rule(home, ">", 0, level, level)

    db = MagicMock(wraps=home.db)
    real_create = home.db.create_alert
    calls = []

    def flaky_create(fields):
        calls.append(fields)
        if len(calls) == 2:
            raise ConnectionError("store unavailable")
        return real_create(fields)

    db.create_alert.side_effect = flaky_create
    engine = AlertEngine(db, RuleCache(home.db, TTLCache(clock=clock)))
    notifier = MagicMock()

    created = engine.evaluate(home.db.save_reading(home.metric.id, 1), notifier)

    assert len(calls) == 4
    assert [a.message for a in created] == ["info", "critical", "critical"]
    assert len(home.db.list_alerts()) == 3
    assert notifier.publish.call_count == 3


def test_rule_lookup_failure_never_raises():
    rule_cache = MagicMock()
    rule_cache.get_rules.side_effect = RuntimeError("store unreachable")
    engine = AlertEngine(MagicMock(), rule_cache)
    assert engine.evaluate(Reading(id="rd1", metric_id="m1", value=1)) == []


def test_metric_lookup_failure_never_raises():
    db = MagicMock()
    db.find_metric_with_owner.side_effect = RuntimeError("store unreachable")
    rule_cache = MagicMock()
    rule_cache.get_rules.return_value = [AlertRule(id="r1", metric_id="m1", condition=">",
                                                   threshold=0, level="info", message_template="x")]
    assert AlertEngine(db, rule_cache).evaluate(Reading(id="rd1", metric_id="m1", value=1)) == []


# ── Notifications ──────────────────────────────────────

def test_alert_pushed_to_owner_room(home, engine):
    _add_rule(home)
    notifier = MagicMock()
    created = engine.evaluate(home.db.save_reading(home.metric.id, 35.5), notifier)

    notifier.publish.assert_called_once()
    room, event, payload = notifier.publish.call_args[0]
    assert room == f"user:{home.user.id}"
    assert event == "new_alert"
    assert payload["id"] == created[0].id
    assert payload["message"] == "Temperature is 35.5, exceeding 30"


def test_no_notifier_means_no_publish(home, clock):
    _add_rule(home)
    dispatcher = MagicMock()
    engine = AlertEngine(home.db, RuleCache(home.db, TTLCache(clock=clock)), dispatcher=dispatcher)

    created = engine.evaluate(home.db.save_reading(home.metric.id, 35.5))

    assert len(created) == 1
    dispatcher.notify.assert_not_called()


def _ownerless_engine():
    db = MagicMock()
    db.find_metric_with_owner.return_value = MetricOwner(metric_id="m1", name="Temperature",
                                                         device_id="d1", owner_id="")
    db.create_alert.side_effect = lambda fields: Alert(id="a1", **fields)
    rule_cache = MagicMock()
    rule_cache.get_rules.return_value = [AlertRule(id="r1", metric_id="m1", condition=">",
                                                   threshold=30, level="critical",
                                                   message_template="{value}")]
    return AlertEngine(db, rule_cache), db


def test_ownerless_metric_persists_but_does_not_publish():
    engine, db = _ownerless_engine()
    notifier = MagicMock()

    created = engine.evaluate(Reading(id="rd1", metric_id="m1", value=31), notifier)

    assert len(created) == 1
    db.create_alert.assert_called_once()
    notifier.publish.assert_not_called()


def test_publish_failure_does_not_affect_later_rules(home, engine):
    _add_rule(home, ">", 0, "info", "first")
    _add_rule(home, ">", 0, "warning", "second")
    notifier = MagicMock()
    notifier.publish.side_effect = ConnectionError("socket closed")

    created = engine.evaluate(home.db.save_reading(home.metric.id, 1), notifier)
    assert [a.message for a in created] == ["first", "second"]
    assert notifier.publish.call_count == 2


# ── Dry run ─────────────────────────────────────────────

def test_test_rules_does_not_persist(home, engine):
    _add_rule(home, ">", 30)
    _add_rule(home, "<", 10)
    results = engine.test_rules(home.metric.id, 35.5)

    assert [r["would_fire"] for r in results] == [True, False]
    assert results[0]["message"] == "Temperature is 35.5, exceeding 30"
    assert home.db.list_alerts() == []
