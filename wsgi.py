"""WSGI entry point for production deployment."""
import sys
import os
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from utils.cache import build_cache
from models.database import Database
from alerts.engine import AlertEngine
from alerts.rule_cache import RuleCache
from alerts.rules_manager import RulesManager
from alerts.channels import build_live_channel
from ingest.service import ReadingIngestor
from web.app import create_app

logger = logging.getLogger("homewatch.wsgi")

config = load_config(os.environ.get("HOMEWATCH_CONFIG"))
setup_logging(config["logging"]["level"], config["logging"].get("file"))

db = Database(config["database"]["path"])
db.connect()

rule_cache = RuleCache(db, build_cache(config), ttl=config["cache"]["rules_ttl"],
                       key_prefix=config["cache"]["key_prefix"])
engine = AlertEngine(db, rule_cache)

engines = {
    "db": db,
    "engine": engine,
    "rules": RulesManager(db),
    "ingestor": ReadingIngestor(db, engine),
    "live": build_live_channel(config),
}

app = create_app(config, engines)
logger.info(f"homewatch API ready (db={config['database']['path']})")
