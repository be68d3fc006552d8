"""
Startup checks for the seating backend.

Verifies the database is reachable and logs the effective seating
configuration before the application starts serving requests.
"""

import logging
from typing import List, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.database import engine
from modules.seating.config import get_seating_config

logger = logging.getLogger(__name__)


def check_database() -> Tuple[bool, str]:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True, "Database connection OK"
    except SQLAlchemyError as e:
        return False, f"Database connection failed: {str(e)}"


def run_startup_checks() -> Tuple[bool, List[str]]:
    """Run all startup validation checks"""
    warnings = []
    passed = True

    logger.info("=" * 60)
    logger.info("Running startup checks...")

    ok, message = check_database()
    if ok:
        logger.info(message)
    else:
        logger.error(message)
        passed = False

    config = get_seating_config()
    logger.info(
        f"Seating: lookahead {config.LOOKAHEAD_MINUTES} min, "
        f"urgency +/-{config.URGENCY_THRESHOLD_MINUTES} min, "
        f"timezone {config.RESTAURANT_TIMEZONE}"
    )
    if config.LOOKAHEAD_MINUTES <= config.URGENCY_THRESHOLD_MINUTES:
        warnings.append("Lookahead window is not longer than the urgency threshold")

    for warning in warnings:
        logger.warning(warning)

    if not passed and settings.is_development:
        logger.warning("Starting in development mode despite errors")
    logger.info(f"Starting in {settings.environment.upper()} mode")
    logger.info("=" * 60)

    return passed, warnings


def configure_startup_logging():
    """Configure logging for startup"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
