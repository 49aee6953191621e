"""SQLite database for users, devices, metrics, readings, alert rules and alerts."""
import sqlite3
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from models.alerts import Alert, AlertRule
from models.enums import AlertStatus, Role, STATUS_TRANSITIONS
from models.telemetry import Device, Metric, MetricOwner, Reading, User

logger = logging.getLogger("homewatch.db")


class NotFoundError(LookupError):
    """Raised when a requested row does not exist."""


class InvalidTransitionError(ValueError):
    """Raised when an alert status change is not allowed."""


def _new_id():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


def _parse_ts(value):
    if value is None:
        return None
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class Database:
    def __init__(self, db_path="data/homewatch.db"):
        self.db_path = db_path
        self.conn = None

    def connect(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL UNIQUE,
                role TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS devices (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                location TEXT,
                type TEXT,
                owner_id TEXT NOT NULL,
                FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS metrics (
                id TEXT PRIMARY KEY,
                device_id TEXT NOT NULL,
                name TEXT NOT NULL,
                unit TEXT NOT NULL,
                FOREIGN KEY (device_id) REFERENCES devices(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS readings (
                id TEXT PRIMARY KEY,
                metric_id TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                value REAL NOT NULL,
                FOREIGN KEY (metric_id) REFERENCES metrics(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_readings_metric_ts
                ON readings(metric_id, timestamp);

            CREATE TABLE IF NOT EXISTS alert_rules (
                id TEXT PRIMARY KEY,
                metric_id TEXT NOT NULL,
                condition TEXT NOT NULL,
                threshold REAL NOT NULL,
                level TEXT NOT NULL,
                message_template TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (metric_id) REFERENCES metrics(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_rules_metric
                ON alert_rules(metric_id);

            CREATE TABLE IF NOT EXISTS alerts (
                id TEXT PRIMARY KEY,
                metric_id TEXT NOT NULL,
                reading_id TEXT,
                level TEXT NOT NULL,
                status TEXT NOT NULL,
                threshold REAL,
                message TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (metric_id) REFERENCES metrics(id) ON DELETE CASCADE,
                FOREIGN KEY (reading_id) REFERENCES readings(id) ON DELETE SET NULL
            );

            CREATE INDEX IF NOT EXISTS idx_alerts_created
                ON alerts(created_at);
        """)
        self.conn.commit()

    # --- Users / Devices / Metrics ---

    def create_user(self, username, role=Role.RESIDENT.value):
        user = User(id=_new_id(), username=username, role=role)
        self.conn.execute(
            "INSERT INTO users (id, username, role) VALUES (?, ?, ?)",
            (user.id, user.username, user.role),
        )
        self.conn.commit()
        return user

    def create_device(self, name, owner_id, description=None, location=None, type=None):
        device = Device(id=_new_id(), name=name, owner_id=owner_id,
                        description=description, location=location, type=type)
        self.conn.execute("""
            INSERT INTO devices (id, name, description, location, type, owner_id)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (device.id, device.name, device.description, device.location,
              device.type, device.owner_id))
        self.conn.commit()
        return device

    def create_metric(self, device_id, name, unit=""):
        metric = Metric(id=_new_id(), device_id=device_id, name=name, unit=unit)
        self.conn.execute(
            "INSERT INTO metrics (id, device_id, name, unit) VALUES (?, ?, ?, ?)",
            (metric.id, metric.device_id, metric.name, metric.unit),
        )
        self.conn.commit()
        return metric

    def get_metric(self, metric_id):
        row = self.conn.execute("SELECT * FROM metrics WHERE id = ?", (metric_id,)).fetchone()
        if row is None:
            return None
        return Metric(**dict(row))

    def list_metrics(self, owner_id=None):
        query = """
            SELECT m.*, d.owner_id FROM metrics m
            JOIN devices d ON d.id = m.device_id
        """
        params = []
        if owner_id:
            query += " WHERE d.owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY m.rowid"
        return [dict(r) for r in self.conn.execute(query, params).fetchall()]

    def find_metric_with_owner(self, metric_id):
        """Metric name plus its device owner, or None if the metric is unknown."""
        row = self.conn.execute("""
            SELECT m.id AS metric_id, m.name, m.device_id, d.owner_id
            FROM metrics m
            JOIN devices d ON d.id = m.device_id
            WHERE m.id = ?
        """, (metric_id,)).fetchone()
        if row is None:
            return None
        return MetricOwner(**dict(row))

    # --- Readings ---

    def save_reading(self, metric_id, value, timestamp=None):
        reading = Reading(id=_new_id(), metric_id=metric_id, value=float(value),
                          timestamp=timestamp or _now())
        self.conn.execute(
            "INSERT INTO readings (id, metric_id, timestamp, value) VALUES (?, ?, ?, ?)",
            (reading.id, reading.metric_id, reading.timestamp.isoformat(), reading.value),
        )
        self.conn.commit()
        logger.debug(f"Saved reading {reading.id} for metric {metric_id}")
        return reading

    def get_reading(self, reading_id):
        row = self.conn.execute("SELECT * FROM readings WHERE id = ?", (reading_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_reading(row)

    def get_readings(self, metric_id, limit=100):
        rows = self.conn.execute("""
            SELECT * FROM readings WHERE metric_id = ?
            ORDER BY timestamp DESC LIMIT ?
        """, (metric_id, limit)).fetchall()
        return [self._row_to_reading(r) for r in rows]

    def delete_reading(self, reading_id):
        cur = self.conn.execute("DELETE FROM readings WHERE id = ?", (reading_id,))
        self.conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(f"Reading not found: {reading_id}")

    def _row_to_reading(self, row):
        return Reading(id=row["id"], metric_id=row["metric_id"], value=row["value"],
                       timestamp=_parse_ts(row["timestamp"]))

    # --- Alert Rules ---

    def create_rule(self, metric_id, condition, threshold, level, message_template):
        rule = AlertRule(id=_new_id(), metric_id=metric_id, condition=condition,
                         threshold=float(threshold), level=level,
                         message_template=message_template)
        self.conn.execute("""
            INSERT INTO alert_rules
            (id, metric_id, condition, threshold, level, message_template, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (rule.id, rule.metric_id, rule.condition, rule.threshold, rule.level,
              rule.message_template, _now().isoformat()))
        self.conn.commit()
        return rule

    def get_rule(self, rule_id):
        row = self.conn.execute("SELECT * FROM alert_rules WHERE id = ?", (rule_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_rule(row)

    def update_rule(self, rule_id, **fields):
        allowed = {"metric_id", "condition", "threshold", "level", "message_template"}
        updates = {k: v for k, v in fields.items() if k in allowed}
        if self.get_rule(rule_id) is None:
            raise NotFoundError(f"Alert rule not found: {rule_id}")
        if updates:
            assignments = ", ".join(f"{k} = ?" for k in updates)
            self.conn.execute(
                f"UPDATE alert_rules SET {assignments} WHERE id = ?",
                (*updates.values(), rule_id),
            )
            self.conn.commit()
        return self.get_rule(rule_id)

    def delete_rule(self, rule_id):
        cur = self.conn.execute("DELETE FROM alert_rules WHERE id = ?", (rule_id,))
        self.conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError(f"Alert rule not found: {rule_id}")

    def list_rules(self, metric_id=None):
        if metric_id:
            return self.find_rules_by_metric(metric_id)
        rows = self.conn.execute(
            "SELECT * FROM alert_rules ORDER BY created_at, rowid"
        ).fetchall()
        return [self._row_to_rule(r) for r in rows]

    def find_rules_by_metric(self, metric_id):
        """All rules configured on a metric, in creation order."""
        rows = self.conn.execute("""
            SELECT * FROM alert_rules WHERE metric_id = ?
            ORDER BY created_at, rowid
        """, (metric_id,)).fetchall()
        return [self._row_to_rule(r) for r in rows]

    def _row_to_rule(self, row):
        return AlertRule(
            id=row["id"], metric_id=row["metric_id"], condition=row["condition"],
            threshold=row["threshold"], level=row["level"],
            message_template=row["message_template"],
        )

    # --- Alerts ---

    def create_alert(self, fields):
        alert = Alert(
            id=_new_id(),
            metric_id=fields["metric_id"],
            reading_id=fields.get("reading_id"),
            level=fields["level"],
            status=fields.get("status", AlertStatus.NEW.value),
            threshold=fields.get("threshold"),
            message=fields["message"],
            created_at=_now(),
        )
        self.conn.execute("""
            INSERT INTO alerts
            (id, metric_id, reading_id, level, status, threshold, message, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            alert.id, alert.metric_id, alert.reading_id, alert.level, alert.status,
            alert.threshold, alert.message, alert.created_at.isoformat(),
        ))
        self.conn.commit()
        return alert

    def get_alert(self, alert_id):
        row = self.conn.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_alert(row)

    def list_alerts(self, owner_id=None, level=None, status=None, limit=50):
        query = """
            SELECT a.* FROM alerts a
            JOIN metrics m ON m.id = a.metric_id
            JOIN devices d ON d.id = m.device_id
            WHERE 1=1
        """
        params = []
        if owner_id:
            query += " AND d.owner_id = ?"
            params.append(owner_id)
        if level:
            query += " AND a.level = ?"
            params.append(level)
        if status:
            query += " AND a.status = ?"
            params.append(status)
        query += " ORDER BY a.created_at DESC, a.rowid DESC LIMIT ?"
        params.append(limit)
        return [self._row_to_alert(r) for r in self.conn.execute(query, params).fetchall()]

    def acknowledge_alert(self, alert_id):
        return self._transition_alert(alert_id, AlertStatus.ACKNOWLEDGED)

    def close_alert(self, alert_id):
        return self._transition_alert(alert_id, AlertStatus.CLOSED)

    def _transition_alert(self, alert_id, target):
        alert = self.get_alert(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert not found: {alert_id}")
        current = AlertStatus(alert.status)
        if target not in STATUS_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot move alert {alert_id} from {current.value} to {target.value}"
            )
        self.conn.execute("UPDATE alerts SET status = ? WHERE id = ?", (target.value, alert_id))
        self.conn.commit()
        alert.status = target.value
        return alert

    def count_open_alerts(self, owner_id=None):
        query = """
            SELECT COUNT(*) AS count FROM alerts a
            JOIN metrics m ON m.id = a.metric_id
            JOIN devices d ON d.id = m.device_id
            WHERE a.status = ?
        """
        params = [AlertStatus.NEW.value]
        if owner_id:
            query += " AND d.owner_id = ?"
            params.append(owner_id)
        return self.conn.execute(query, params).fetchone()["count"]

    def get_alert_stats(self):
        rows = self.conn.execute("""
            SELECT level, COUNT(*) as count
            FROM alerts
            GROUP BY level
        """).fetchall()
        return {r["level"]: r["count"] for r in rows}

    def _row_to_alert(self, row):
        return Alert(
            id=row["id"], metric_id=row["metric_id"], reading_id=row["reading_id"],
            level=row["level"], status=row["status"], threshold=row["threshold"],
            message=row["message"], created_at=_parse_ts(row["created_at"]),
        )
