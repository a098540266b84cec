"""Logging configuration for the FleetWatch application."""

import logging
import sys

_configured = False

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def configure(level: int = logging.INFO) -> None:
    """Configure logging for the application.

    Safe to call multiple times - only configures once.
    """
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("fleetwatch")
    root.setLevel(level)
    root.addHandler(handler)

    # redis-py logs every reconnect attempt at DEBUG/INFO
    logging.getLogger("redis").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the 'fleetwatch' namespace.

    Args:
        name: Logger name (will be prefixed with 'fleetwatch.')

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(f"fleetwatch.{name}")
