"""
app.py
SocAgent bootstrap: config, logging, store initialisation and seeding.
"""

from __future__ import annotations

import logging
from datetime import date

import auth
import reminders
import utils
from config import SocAgentConfig, load_config
from db import RecordStore
from services import Services

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def init_once(config: SocAgentConfig | None = None) -> Services:
    """Open the store, create the schema, seed the default admin (and demo data)."""
    config = config or load_config()
    setup_logging(config.log_level)

    store = RecordStore(config.db_file)
    store.init_db()
    default_hash = auth.hash_password(config.default_admin_password)
    auth.init_users(store, default_hash, config.default_admin_email)

    services = Services(store)
    if config.seed_sample_data and not services.clients.list():
        utils.insert_sample_data(services)
        logger.info("Inserted sample data")

    logger.info("SocAgent store ready at %s", config.db_file)
    return services


def dashboard(services: Services, today: date | None = None) -> dict[str, int]:
    return reminders.dashboard_summary(services, today=today)
