"""
Logging setup: plain text for local runs, JSON lines for deployments.
"""

import logging
import sys
from datetime import datetime, timezone

from pythonjsonlogger import jsonlogger

from app.settings import Settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every record with service metadata."""

    def __init__(self, service_name: str, version: str):
        super().__init__(fmt="%(name)s %(message)s")
        self.service_name = service_name
        self.version = version

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["level"] = record.levelname.lower()
        log_record["service"] = self.service_name
        log_record["version"] = self.version


def configure_logging(settings: Settings) -> None:
    """Configure the root logger once, replacing any existing handlers."""
    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        handler.setFormatter(ServiceJsonFormatter(settings.app_name, settings.app_version))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # firebase_admin and google-auth are chatty at INFO
    logging.getLogger("google").setLevel(logging.WARNING)
