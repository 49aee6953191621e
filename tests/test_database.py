"""Tests for the database module."""
import pytest

from models.database import InvalidTransitionError, NotFoundError


def test_table_creation(temp_db):
    """Verify all tables exist after init."""
    tables = temp_db.conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table'"
    ).fetchall()
    names = {t["name"] for t in tables}
    assert {"users", "devices", "metrics", "readings", "alert_rules", "alerts"} <= names


def test_create_user_roles(temp_db):
    resident = temp_db.create_user("alice")
    admin = temp_db.create_user("root", role="admin")
    rows = temp_db.conn.execute("SELECT id, role FROM users").fetchall()
    roles = {r["id"]: r["role"] for r in rows}
    assert resident.role == "resident"
    assert roles == {resident.id: "resident", admin.id: "admin"}


def test_find_metric_with_owner(home):
    found = home.db.find_metric_with_owner(home.metric.id)
    assert found.name == "Temperature"
    assert found.owner_id == home.user.id
    assert home.db.find_metric_with_owner("missing") is None


def test_rules_returned_in_creation_order(home):
    ids = [home.db.create_rule(home.metric.id, ">", t, "info", "t").id for t in (3, 1, 2)]
    assert [r.id for r in home.db.find_rules_by_metric(home.metric.id)] == ids


def test_update_and_delete_rule(home):
    rule = home.db.create_rule(home.metric.id, ">", 30, "warning", "t")
    updated = home.db.update_rule(rule.id, threshold=31, level="critical")
    assert updated.threshold == 31
    assert updated.level == "critical"

    home.db.delete_rule(rule.id)
    assert home.db.get_rule(rule.id) is None
    with pytest.raises(NotFoundError):
        home.db.delete_rule(rule.id)


def test_reading_roundtrip(home):
    reading = home.db.save_reading(home.metric.id, 21.5)
    loaded = home.db.get_reading(reading.id)
    assert loaded.value == 21.5
    assert loaded.metric_id == home.metric.id
    assert loaded.timestamp == reading.timestamp


def _alert(home, **kw):
    reading = home.db.save_reading(home.metric.id, 35.5)
    fields = {"metric_id": home.metric.id, "reading_id": reading.id, "level": "critical",
              "threshold": 30.0, "message": "hot"}
    fields.update(kw)
    return home.db.create_alert(fields)


def test_deleting_reading_keeps_alert(home):
    alert = _alert(home)
    home.db.delete_reading(alert.reading_id)
    kept = home.db.get_alert(alert.id)
    assert kept is not None
    assert kept.reading_id is None


def test_deleting_metric_cascades(home):
    _alert(home)
    home.db.create_rule(home.metric.id, ">", 1, "info", "t")
    home.db.conn.execute("DELETE FROM metrics WHERE id = ?", (home.metric.id,))
    assert home.db.list_alerts() == []
    assert home.db.list_rules() == []


def test_alert_status_transitions(home):
    alert = _alert(home)
    assert alert.status == "new"
    assert home.db.acknowledge_alert(alert.id).status == "acknowledged"
    assert home.db.close_alert(alert.id).status == "closed"

    with pytest.raises(InvalidTransitionError):
        home.db.acknowledge_alert(alert.id)
    with pytest.raises(InvalidTransitionError):
        home.db.close_alert(alert.id)


def test_new_alert_can_close_directly(home):
    alert = _alert(home)
    assert home.db.close_alert(alert.id).status == "closed"


def test_transition_unknown_alert(temp_db):
    with pytest.raises(NotFoundError):
        temp_db.acknowledge_alert("nope")


def test_list_alerts_filters(home):
    other = home.db.create_user("bob")
    device = home.db.create_device("Garage", other.id)
    metric = home.db.create_metric(device.id, "Humidity", "%")
    _alert(home, level="critical")
    _alert(home, level="info")
    home.db.create_alert({"metric_id": metric.id, "level": "warning", "message": "damp"})

    assert len(home.db.list_alerts()) == 3
    assert len(home.db.list_alerts(owner_id=home.user.id)) == 2
    assert [a.level for a in home.db.list_alerts(level="warning")] == ["warning"]
    assert home.db.count_open_alerts(other.id) == 1
    assert home.db.get_alert_stats() == {"critical": 1, "info": 1, "warning": 1}


def test_list_metrics_by_owner(home):
    other = home.db.create_user("bob")
    home.db.create_metric(home.db.create_device("Garage", other.id).id, "Humidity", "%")
    assert [m["name"] for m in home.db.list_metrics(owner_id=home.user.id)] == ["Temperature"]
    assert len(home.db.list_metrics()) == 2
