"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile
from types import SimpleNamespace

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.database import Database
from utils.cache import TTLCache
from alerts.rule_cache import RuleCache
from alerts.engine import AlertEngine


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def home(temp_db):
    """One resident with a living-room sensor reporting Temperature."""
    user = temp_db.create_user("alice")
    device = temp_db.create_device("Living Room Sensor", user.id, location="Living room")
    metric = temp_db.create_metric(device.id, "Temperature", "°C")
    return SimpleNamespace(db=temp_db, user=user, device=device, metric=metric)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(temp_db, clock):
    cache = TTLCache(clock=clock)
    return AlertEngine(temp_db, RuleCache(temp_db, cache))
