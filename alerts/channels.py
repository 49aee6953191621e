"""Live notification channels for pushing new alerts to connected users."""
import json
import queue
import threading
import logging
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

logger = logging.getLogger("homewatch.alerts.channels")

NEW_ALERT_EVENT = "new_alert"
USER_ROOM_PREFIX = "user:"


def room_for_user(user_id):
    return f"{USER_ROOM_PREFIX}{user_id}"


@runtime_checkable
class LiveChannel(Protocol):
    def publish(self, room: str, event: str, payload: dict) -> None: ...


class LiveBroker:
    """In-process pub/sub keyed by room.

    Each subscriber gets its own queue; a bounded history per room lets a
    client that reconnects catch up on what it missed.
    """

    def __init__(self, history_size=50):
        self._subscribers = defaultdict(list)
        self._history = defaultdict(lambda: deque(maxlen=history_size))
        self._lock = threading.Lock()

    def publish(self, room, event, payload):
        message = {
            "event": event,
            "room": room,
            "data": payload,
            "published_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            self._history[room].append(message)
            subscribers = list(self._subscribers.get(room, []))
        for q in subscribers:
            q.put(message)
        logger.debug(f"Published {event} to {room} ({len(subscribers)} subscriber(s))")

    def subscribe(self, room):
        q = queue.Queue()
        with self._lock:
            self._subscribers[room].append(q)
        return q

    def unsubscribe(self, room, q):
        with self._lock:
            subscribers = self._subscribers.get(room, [])
            if q in subscribers:
                subscribers.remove(q)
            if not subscribers:
                self._subscribers.pop(room, None)

    def recent(self, room):
        with self._lock:
            return list(self._history.get(room, []))

    def subscriber_count(self, room):
        with self._lock:
            return len(self._subscribers.get(room, []))


class RedisLiveChannel:
    """Publish events on a Redis pub/sub channel named after the room."""

    def __init__(self, url="redis://localhost:6379/0", client=None):
        if client is None:
            import redis
            client = redis.Redis.from_url(url)
        self._redis = client

    def publish(self, room, event, payload):
        self._redis.publish(room, json.dumps({"event": event, "room": room, "data": payload}))


class FileChannel:
    """Append every published event to a JSON lines log file."""

    def __init__(self, log_path="data/live_events.jsonl"):
        self.log_path = log_path

    def publish(self, room, event, payload):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "room": room,
            "event": event,
            "data": payload,
        }
        with open(self.log_path, "a") as f:
            f.write(json.dumps(entry) + "\n")


class FanoutChannel:
    """Publish to several channels; one failing channel does not block the rest."""

    def __init__(self, channels):
        self.channels = list(channels)

    def publish(self, room, event, payload):
        for channel in self.channels:
            try:
                channel.publish(room, event, payload)
            except Exception as e:
                logger.warning(f"{type(channel).__name__} publish to {room} failed: {e}")


def build_live_channel(config):
    """Pick the live channel named in config["live"]["backend"]."""
    live_cfg = config.get("live", {})
    if live_cfg.get("backend", "memory") == "redis":
        channel = RedisLiveChannel(live_cfg.get("redis_url", "redis://localhost:6379/0"))
    else:
        channel = LiveBroker(history_size=live_cfg.get("history_size", 50))

    audit_log = live_cfg.get("audit_log")
    if audit_log:
        return FanoutChannel([channel, FileChannel(audit_log)])
    return channel


def find_broker(channel):
    """Return the LiveBroker behind `channel`, or None if events leave the process."""
    if isinstance(channel, LiveBroker):
        return channel
    if isinstance(channel, FanoutChannel):
        for inner in channel.channels:
            if isinstance(inner, LiveBroker):
                return inner
    return None
