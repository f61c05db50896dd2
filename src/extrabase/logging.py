"""Logging configuration using loguru.

Provides:
- Human-readable logging for development
- Structured JSON logging (GCP Cloud Logging compatible)
"""

import json
import sys
from datetime import UTC, datetime

from loguru import logger

# Map loguru levels to GCP severity levels
LEVEL_TO_SEVERITY = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}

DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>\n"
    "{exception}"
)


def _gcp_json_formatter(record: dict) -> str:
    """Format log record as GCP Cloud Logging compatible JSON."""
    log_entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "severity": LEVEL_TO_SEVERITY.get(record["level"].name, "INFO"),
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    for key, value in record.get("extra", {}).items():
        if key not in log_entry:
            log_entry[key] = value

    if record["exception"]:
        exc = record["exception"]
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    # Returned string is used as a format template; escape braces
    line = json.dumps(log_entry, default=str).replace("{", "{{").replace("}", "}}")
    return line + "\n"


def setup_logging(json_logs: bool = False, log_level: str = "INFO") -> None:
    """Configure loguru for the application.

    Library code only emits through ``loguru.logger``; applications call
    this once to choose where and how records are written.

    Args:
        json_logs: If True, output GCP-compatible JSON logs
        log_level: Minimum log level to output
    """
    logger.remove()

    if json_logs:
        logger.add(
            sys.stderr,
            format=_gcp_json_formatter,
            level=log_level,
            serialize=False,
        )
    else:
        logger.add(
            sys.stderr,
            format=DEV_FORMAT,
            level=log_level,
            colorize=True,
        )


__all__ = ["logger", "setup_logging"]
