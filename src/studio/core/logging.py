"""Structured JSON logging setup."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from .config import get_settings


class StudioJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level and service name to every record."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = get_settings().service_name


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger to stdout as JSON lines."""

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StudioJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)
