"""
Small helpers shared by every feature module.
"""
import logging
import sys
from datetime import datetime, timezone

from app.core import config


LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def _configure_logging() -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("app")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger under the ``app`` hierarchy.

    Usage:
        log = get_logger(__name__)
        log.info("Something happened")
    """
    _configure_logging()
    if name != "app" and not name.startswith("app."):
        name = f"app.{name}"
    return logging.getLogger(name)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
