"""
Logging setup.

Configures the loguru logger for workers and the scheduler.
"""

import sys

from loguru import logger

from mlm_engine.config.settings import settings


def setup_logging(component: str = "mlm_engine") -> None:
    """Configure stderr and file sinks with rotation."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )

    logger.info(f"Starting {component}...")
