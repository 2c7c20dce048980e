"""Logging helpers producing systemd journald compatible output"""

import logging
from typing import Optional

from . import config

LOG_FORMAT = '%(name)s[%(process)d]: %(levelname)s - %(message)s'
ROOT_LOGGER = "MiniRedis"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stream handler to the MiniRedis logger hierarchy.

    Safe to call more than once; the handler is only added the first time.

    Args:
        level: Level name, defaults to MINIREDIS_LOG_LEVEL

    Returns:
        The MiniRedis root logger
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.propagate = False
    root.setLevel((level or config.LOG_LEVEL).upper())
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger below the MiniRedis hierarchy"""
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
