from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

_GLYPHS: dict[int, str] = {
    logging.ERROR: "✗ ",
    logging.CRITICAL: "✗ ",
    logging.WARNING: "⚠ ",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logs with stable keys."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
        data: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Optional contextual fields
        if hasattr(record, "command"):
            data["command"] = record.command
        if hasattr(record, "step"):
            data["step"] = record.step

        return json.dumps(data, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter: the message, prefixed with a status glyph."""

    def format(self, record: logging.LogRecord) -> str:
        text = f"{_GLYPHS.get(record.levelno, '')}{record.getMessage()}"
        if record.exc_info and record.levelno <= logging.DEBUG:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure global logging; idempotent-ish."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter: logging.Formatter = (
        StructuredFormatter() if fmt == "json" else ConsoleFormatter()
    )
    existing = [h for h in root.handlers if isinstance(h, logging.StreamHandler)]
    if existing:
        # Re-apply the requested format instead of stacking handlers
        for h in existing:
            h.setFormatter(formatter)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return module logger."""
    return logging.getLogger(name)
