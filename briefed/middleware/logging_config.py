"""
Logging setup for Briefed.

One stderr handler on the root logger, chosen by environment:

    production    one JSON object per line
    development   short colored lines with the request/project context

Respondent links carry their secret in ``?token=``; every record passes
through ``TokenRedactionFilter`` before it is formatted, so a token that
ends up in a message or a logged path is never written out.

LOG_LEVEL (env) overrides the default of INFO in production and DEBUG
elsewhere.
"""

import json
import logging
import os
import re
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
    "actor_kind",
    "event_type",
    "error_code",
)

_TOKEN_IN_TEXT = re.compile(r"((?:token|x-magic-token)[=:]\s*)[A-Za-z0-9_\-]+", re.IGNORECASE)
_REDACTED = r"\1[redacted]"


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class TokenRedactionFilter(logging.Filter):
    """Scrub link secrets from the message and the ``path`` extra."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = _TOKEN_IN_TEXT.sub(_REDACTED, message)
        if scrubbed != message:
            record.msg, record.args = scrubbed, None
        path = getattr(record, "path", None)
        if isinstance(path, str):
            record.path = _TOKEN_IN_TEXT.sub(_REDACTED, path)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        ctx = _context(record)
        duration = ctx.pop("duration_ms", None)
        tail = " ".join(f"{k}={v}" for k, v in ctx.items())
        line = (
            f"{color}{datetime.now():%H:%M:%S} {record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )
        if tail:
            line += f"  [{tail}]"
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler for ``app``'s environment.

    Replaces whatever handler a previous ``create_app`` call installed.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(TokenRedactionFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("werkzeug", "sqlalchemy.engine", "flask_limiter"):
        logging.getLogger(name).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not testing:
        app.logger.info("Logging ready (level=%s, %s)", level_name, "json" if production else "readable")
