"""Logging setup and claim-scoped loggers.

Modules log through ``logging.getLogger(__name__)``. Components bound to a
single claim wrap their module logger in ClaimLogger so every line carries
the claim id. ``configure_logging`` installs a human-readable or JSON
formatter on the ``claimflow`` logger according to Settings.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

from claimflow.config import Settings, get_settings

PACKAGE_LOGGER = "claimflow"


class StructuredFormatter(logging.Formatter):
    """JSON formatter including claim context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        claim_id = getattr(record, "claim_id", None)
        if claim_id:
            log_data["claim_id"] = claim_id
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["data"] = extra_data
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter with a claim context prefix."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        claim_id = getattr(record, "claim_id", None)
        ctx = f" [claim={claim_id}]" if claim_id else ""
        message = record.getMessage()
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            message += f" | {extra_data}"
        line = f"{timestamp} {record.levelname:8}{ctx} {record.name}: {message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ClaimLogger(logging.LoggerAdapter):
    """Logger adapter that attaches a claim id to every record."""

    def __init__(self, logger: logging.Logger, claim_id: Optional[str] = None):
        super().__init__(logger, {})
        self.claim_id = claim_id

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        if self.claim_id:
            extra.setdefault("claim_id", self.claim_id)
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, claim_id: Optional[str] = None) -> ClaimLogger:
    """ClaimLogger for ``name`` (typically ``__name__``)."""
    return ClaimLogger(logging.getLogger(name), claim_id)


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Install a stream handler on the package logger.

    Calling it again replaces the previously installed handler instead of
    stacking a second one.
    """
    settings = settings or get_settings()
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_claimflow_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        StructuredFormatter() if settings.log_format == "json" else HumanReadableFormatter()
    )
    handler._claimflow_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))
    logger.propagate = False
    return logger


__all__ = [
    "StructuredFormatter",
    "HumanReadableFormatter",
    "ClaimLogger",
    "get_logger",
    "configure_logging",
]
