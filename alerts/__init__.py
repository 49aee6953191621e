"""Alert system module."""
from alerts.engine import AlertEngine
from alerts.rule_cache import RuleCache
from alerts.dispatcher import NotificationDispatcher
from alerts.rules_manager import RulesManager, RuleValidationError
from alerts.channels import LiveBroker, RedisLiveChannel, FileChannel, FanoutChannel
