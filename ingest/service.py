"""Batch reading ingestion: persist each accepted reading, then evaluate it."""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger("homewatch.ingest")


@dataclass
class IngestResult:
    accepted: int = 0
    rejected: int = 0
    readings: list = field(default_factory=list)
    alerts: list = field(default_factory=list)

    def to_dict(self):
        return {
            "accepted": self.accepted,
            "rejected": self.rejected,
            "alerts": [a.to_dict() for a in self.alerts],
        }


def _parse_timestamp(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class ReadingIngestor:
    def __init__(self, db, engine):
        self.db = db
        self.engine = engine

    def ingest(self, readings, owner_id=None, notifier=None):
        """Store a batch of `{metric_id, value, timestamp?}` dicts.

        Readings for unknown metrics, for metrics outside `owner_id`'s devices,
        or with a non-numeric value are rejected. Alerting runs once per stored
        reading, in input order, and cannot fail the batch.
        """
        result = IngestResult()
        allowed = None
        if owner_id:
            allowed = {m["id"] for m in self.db.list_metrics(owner_id=owner_id)}

        for raw in readings:
            parsed = self._validate(raw, allowed)
            if parsed is None:
                result.rejected += 1
                continue
            metric_id, value, timestamp = parsed
            reading = self.db.save_reading(metric_id, value, timestamp)
            result.accepted += 1
            result.readings.append(reading)
            result.alerts.extend(self.engine.evaluate(reading, notifier))

        logger.info(f"Ingested {result.accepted} reading(s), rejected {result.rejected}, "
                    f"{len(result.alerts)} alert(s)")
        return result

    def _validate(self, raw, allowed):
        if not isinstance(raw, dict):
            return None
        metric_id = raw.get("metric_id")
        value = raw.get("value")
        if not metric_id or isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        try:
            value = float(value)
        except (OverflowError, ValueError):
            return None
        if not math.isfinite(value):
            return None
        if allowed is not None and metric_id not in allowed:
            return None
        if allowed is None and self.db.get_metric(metric_id) is None:
            return None
        try:
            timestamp = _parse_timestamp(raw.get("timestamp"))
        except ValueError:
            return None
        return metric_id, value, timestamp
