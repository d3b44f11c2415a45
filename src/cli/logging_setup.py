"""Logging configuration for the bridge process.

Text output by default; JSON lines when `logging.format: json`. Called
once on startup before any component is built.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Fields surfaced from `extra=` when present.
_EXTRA_FIELDS = ("conversation_id", "session_id", "tool_name", "attempt")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
NOISY_LOGGERS = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "info", fmt: str = "text", log_file: str | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Level name (debug, info, warning, error).
        fmt: "text" or "json".
        log_file: Optional file that receives a copy of every record.
    """
    formatter: logging.Formatter = (
        JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT)
    )
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
