"""
Structured logging configuration.

Production writes one JSON object per line for the log shipper; development
and tests get a compact coloured line. LOG_LEVEL overrides the default level.

Request, pipeline and gateway code pass context via ``extra=``
(``request_id``, ``project_id``, ``stage``, ``provider`` ...); both
formatters render whichever of those fields a record carries.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "project_id",
    "stage",
    "provider",
)

# Shown inline by the readable formatter; request fields stay JSON-only
_INLINE_TAGS = ("project_id", "stage", "provider")

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "httpx", "google_genai")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
            **_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message [stage=writer] [812ms]`` with ANSI colour."""

    _LEVEL_COLOURS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    _RESET = "\033[0m"

    def __init__(self):
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        context = _context(record)
        colour = self._LEVEL_COLOURS.get(record.levelno, "")
        parts = [
            f"{self.formatTime(record, self.datefmt)} "
            f"{colour}{record.levelname:<8}{self._RESET} "
            f"{record.name}: {record.getMessage()}"
        ]
        parts += [f"[{key}={context[key]}]" for key in _INLINE_TAGS if key in context]
        if "duration_ms" in context:
            parts.append(f"[{context['duration_ms']:.0f}ms]")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Attach the briefsmith stderr handler to the root logger.

    JSON when the app is neither DEBUG nor TESTING (default level INFO),
    readable otherwise (default level DEBUG). A handler installed by an
    earlier create_app call is replaced, other handlers are left alone.
    """
    testing = app.config.get("TESTING", False)
    use_json = not (app.config.get("DEBUG", False) or testing)

    level_name = os.getenv("LOG_LEVEL", "INFO" if use_json else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name("briefsmith")
    handler.setFormatter(JSONFormatter() if use_json else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == "briefsmith"]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured (%s, %s)", level_name,
                        "json" if use_json else "readable")
