"""Push newly created alerts to their owner's live feed."""
import logging

from alerts.channels import NEW_ALERT_EVENT, room_for_user

logger = logging.getLogger("homewatch.alerts.dispatcher")


class NotificationDispatcher:
    """Best-effort, at-most-once delivery of alerts to a live channel.

    The alert is already persisted when this runs, so a lost push only
    costs the real-time update; the alert stays visible through the API.
    """

    def __init__(self, db):
        self.db = db

    def resolve_owner(self, metric_id):
        metric = self.db.find_metric_with_owner(metric_id)
        if metric is None:
            return None
        return metric.owner_id

    def notify(self, alert, notifier, owner_id=None):
        """Publish `alert` to its owner's room. Returns True if a publish happened."""
        try:
            if owner_id is None:
                owner_id = self.resolve_owner(alert.metric_id)
            if not owner_id:
                logger.debug(f"Alert {alert.id} has no owner to notify")
                return False
            room = room_for_user(owner_id)
            notifier.publish(room, NEW_ALERT_EVENT, alert.to_dict())
            logger.debug(f"Pushed alert {alert.id} to {room}")
            return True
        except Exception as e:
            logger.warning(f"Live notification for alert {alert.id} failed: {e}")
            return False
