"""Dataclasses for the home -> device -> metric -> reading chain."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class User:
    id: str = ""
    username: str = ""
    role: str = "resident"


@dataclass
class Device:
    id: str = ""
    name: str = ""
    owner_id: str = ""
    description: Optional[str] = None
    location: Optional[str] = None
    type: Optional[str] = None


@dataclass
class Metric:
    id: str = ""
    device_id: str = ""
    name: str = ""
    unit: str = ""


@dataclass(frozen=True)
class Reading:
    id: str = ""
    metric_id: str = ""
    value: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "metric_id": self.metric_id,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class MetricOwner:
    """A metric's display name together with its device owner's id."""
    metric_id: str = ""
    name: str = ""
    device_id: str = ""
    owner_id: Optional[str] = None
