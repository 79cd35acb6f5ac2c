"""Structured logging configuration for GRC Nexus."""

from __future__ import annotations

import json
import logging
import sys

from grcnexus.utils.time import utc_now

CONTEXT_FIELDS = ("request_id", "tenant_id", "user_id", "method", "path", "status_code", "duration_ms")


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line, or key=value text for dev."""

    def __init__(self, as_json: bool = False) -> None:
        super().__init__()
        self.as_json = as_json

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Request context is attached by the middleware via `extra=`.
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        if self.as_json:
            return json.dumps(log_entry, default=str)

        parts = [f"[{log_entry['level']:<7}]", log_entry["timestamp"], log_entry["logger"], log_entry["message"]]
        for key in CONTEXT_FIELDS:
            if key in log_entry:
                parts.append(f"{key}={log_entry[key]}")
        if "exception" in log_entry:
            parts.append(f"\n{log_entry['exception']}")
        return " ".join(str(part) for part in parts)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure the root logger once; later calls are no-ops."""
    root_logger = logging.getLogger()

    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(as_json=fmt.lower() == "json"))
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
