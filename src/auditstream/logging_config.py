"""Logging configuration setup."""

import copy
import logging
import logging.config
from typing import Any

BASE_LOG_CFG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "%(asctime)s - %(name)30s - %(levelname)-7s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "auditstream": {"handlers": ["console"], "propagate": False, "level": "INFO"},
        "uvicorn": {"handlers": ["console"], "propagate": False, "level": "INFO"},
        "uvicorn.error": {"handlers": ["console"], "propagate": False, "level": "INFO"},
        "uvicorn.access": {"handlers": ["console"], "propagate": False, "level": "WARNING"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
}


def setup_logging(level: str = "INFO") -> str:
    """Apply the console logging configuration.

    Args:
        level: Level name for the ``auditstream`` logger hierarchy.

    Returns:
        The level name actually applied (falls back to INFO if unknown).
    """
    level = level.upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"
    cfg = copy.deepcopy(BASE_LOG_CFG)
    cfg["loggers"]["auditstream"]["level"] = level
    if level == "DEBUG":
        cfg["loggers"]["uvicorn"]["level"] = "DEBUG"
    logging.config.dictConfig(cfg)
    return level
