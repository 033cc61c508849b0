"""Application logging configuration."""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE = LOG_DIR / "cerfreport.log"

_SECRET_RE = re.compile(r"(apikey|api_key|apiKey|token|key)=[^&\s]+", re.IGNORECASE)


def redact(text: str) -> str:
    """Mask credential query parameters in URLs and exception text."""
    return _SECRET_RE.sub(r"\1=***", str(text))


class RedactingFilter(logging.Filter):
    """Redact credentials from every formatted record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        return True


def setup_logger() -> None:
    """Configure root logging with rotation and console output."""
    log_dir = Path(os.getenv("LOG_DIR", str(LOG_DIR)))
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        log_dir / LOG_FILE.name,
        maxBytes=2_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)
    console = logging.StreamHandler()
    console.setFormatter(formatter)

    redaction = RedactingFilter()
    handler.addFilter(redaction)
    console.addFilter(redaction)

    root = logging.getLogger()
    root.handlers.clear()
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root.setLevel(level)
    root.addHandler(handler)
    root.addHandler(console)
