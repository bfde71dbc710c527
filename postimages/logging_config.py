"""Logging setup for Postimages.

Everything is written to one console handler. Requests are logged once, by
the access middleware in :mod:`postimages.main` under ``postimages.access``,
so uvicorn's own access log is kept quiet.
"""

from __future__ import annotations

import logging
import logging.config
import os
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_log_level(*, debug: bool = False) -> int:
    """Return the level from ``LOG_LEVEL``, else DEBUG or INFO."""
    value = (os.getenv("LOG_LEVEL") or ("DEBUG" if debug else "INFO")).strip()
    if value.isdigit():
        return int(value)
    return logging.getLevelNamesMapping().get(value.upper(), logging.INFO)


def logging_settings(level: int) -> dict[str, Any]:
    """Build the :func:`logging.config.dictConfig` settings."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "loggers": {
            "postimages": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            "uvicorn": {
                "handlers": ["console"],
                "level": max(level, logging.INFO),
                "propagate": False,
            },
            "uvicorn.access": {"level": logging.WARNING},
        },
    }


def configure_logging(*, debug: bool = False) -> None:
    logging.config.dictConfig(logging_settings(resolve_log_level(debug=debug)))
