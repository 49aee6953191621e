"""Read-through cache of the alert rules configured on each metric."""
import logging

from alerts.codec import RuleCodecError, decode_rules, encode_rules

logger = logging.getLogger("homewatch.alerts.rule_cache")

RULES_CACHE_TTL = 300
RULES_KEY_PREFIX = "alert_rules:"


class RuleCache:
    """Serve `find_rules_by_metric` results from a TTL cache.

    Entries expire after `ttl` seconds; rule edits are not pushed here, so a
    changed rule takes effect once the cached entry for its metric expires.
    Cache backend errors never fail a lookup: a failed read is a miss and a
    failed write is logged and dropped.
    """

    def __init__(self, db, cache, ttl=RULES_CACHE_TTL, key_prefix=RULES_KEY_PREFIX):
        self.db = db
        self.cache = cache
        self.ttl = ttl
        self.key_prefix = key_prefix

    def key_for(self, metric_id):
        return f"{self.key_prefix}{metric_id}"

    def get_rules(self, metric_id):
        key = self.key_for(metric_id)

        cached = self._read(key)
        if cached is not None:
            try:
                return decode_rules(cached)
            except RuleCodecError as e:
                logger.warning(f"Discarding cached rules at {key}: {e}")

        rules = self.db.find_rules_by_metric(metric_id)
        self._write(key, rules)
        return rules

    def _read(self, key):
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"Rule cache read failed for {key}: {e}")
            return None

    def _write(self, key, rules):
        try:
            self.cache.set(key, encode_rules(rules), self.ttl)
        except Exception as e:
            logger.warning(f"Rule cache write failed for {key}: {e}")
