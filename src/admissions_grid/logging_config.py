"""Logging setup shared by the CLI and the demo app."""

import logging
import logging.config
import os

_CONFIGURED = False

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(default_level: str | None = None) -> None:
    """Send ``admissions_grid`` logs to stdout at ``LOG_LEVEL`` (default INFO).

    Safe to call more than once; only the first call configures anything.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    level_name = (default_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {"format": _FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "admissions_grid": {
                    "level": level_name,
                    "handlers": ["stdout"],
                    "propagate": False,
                },
                "admissions_demo": {
                    "level": level_name,
                    "handlers": ["stdout"],
                    "propagate": False,
                },
            },
        }
    )

    _CONFIGURED = True
