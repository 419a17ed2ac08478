"""
Logging helpers.

One call to setup_logging() at process start; every module then asks for
its own logger with get_logger(__name__).
"""

import logging

from mockbook.config import Config

_configured = False


def setup_logging(config: Config) -> None:
    """Configure the root logger from LOG_LEVEL / LOG_FORMAT."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format=config.LOG_FORMAT,
    )
    # pymongo's heartbeat chatter drowns out booking logs at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
