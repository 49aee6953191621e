"""Data models."""
from models.enums import Severity, AlertStatus, Operator, Role
from models.telemetry import User, Device, Metric, Reading, MetricOwner
from models.alerts import AlertRule, Alert
