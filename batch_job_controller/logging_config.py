"""
Logging setup shared by the public and internal servers.

Controller records carry the callback they belong to as "{execution}/{node}",
or "-" outside of a callback. uvicorn's access log drops health checks.
"""

import logging
import logging.config
from typing import Any, Dict, Iterable

NO_CALLBACK = "-"
HEALTH_CHECK_PATHS = ("/healthz",)

CONTROLLER_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(callback)s] %(message)s"
ACCESS_FORMAT = "%(asctime)s access %(message)s"


class CallbackContextFilter(logging.Filter):
    """Fills in the callback field for records logged outside a callback."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "callback"):
            record.callback = NO_CALLBACK
        return True


class HealthCheckFilter(logging.Filter):
    """Drops access log lines of health checks."""

    def __init__(self, paths: Iterable[str] = HEALTH_CHECK_PATHS):
        super().__init__()
        self.paths = set(paths)

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn access args: (client, method, path with query, http version, status)
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3:
            return str(args[2]).split("?", 1)[0] not in self.paths
        return True


def callback_logger(log: logging.Logger, node: str, execution_id: str) -> logging.LoggerAdapter:
    """Logger tagging every record with the callback's execution and node."""
    return logging.LoggerAdapter(log, {"callback": f"{execution_id}/{node}"})


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """dictConfig for the controller and the uvicorn loggers of both servers."""
    level = level.upper()
    console = {"class": "logging.StreamHandler", "stream": "ext://sys.stdout"}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "callback_context": {"()": CallbackContextFilter},
            "health_checks": {"()": HealthCheckFilter},
        },
        "formatters": {
            "controller": {"format": CONTROLLER_FORMAT},
            "access": {"format": ACCESS_FORMAT},
        },
        "handlers": {
            "controller": {**console, "formatter": "controller", "filters": ["callback_context"]},
            "access": {**console, "formatter": "access", "filters": ["health_checks"]},
        },
        "loggers": {
            "batch_job_controller": {"handlers": ["controller"], "level": level, "propagate": False},
            "uvicorn.error": {"handlers": ["controller"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        },
        "root": {"level": level, "handlers": ["controller"]},
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(level))
