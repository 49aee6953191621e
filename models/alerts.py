"""Dataclasses for alert rules and alerts."""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional


@dataclass
class AlertRule:
    id: str = ""
    metric_id: str = ""
    condition: str = ">"
    threshold: float = 0.0
    level: str = "info"
    message_template: str = ""

    def to_dict(self):
        return asdict(self)


@dataclass
class Alert:
    id: str = ""
    metric_id: str = ""
    reading_id: Optional[str] = None
    level: str = "info"
    status: str = "new"
    threshold: Optional[float] = None
    message: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        """Payload shape used by the API and the live channel."""
        d = asdict(self)
        d["created_at"] = self.created_at.isoformat()
        return d
