from __future__ import annotations

import logging
import re

from flask import Flask

VERBOSE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
COMPACT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
QUIET_LOGGERS = ("werkzeug", "flask_limiter", "sqlalchemy.engine", "urllib3")

_REDACTIONS = (
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_.=:+/]+", re.IGNORECASE), "Bearer [REDACTED]"),
    (re.compile(r"(x-api-key|api[_-]?key|secret|token|password)(\s*[:=]\s*)([^\s,;]+)", re.IGNORECASE),
     r"\1\2[REDACTED]"),
    (re.compile(r"[A-Za-z0-9_.+-]+@[A-Za-z0-9-]+\.[A-Za-z0-9-.]+"), "[REDACTED_EMAIL]"),
    (re.compile(r"\b01[016789]-?\d{3,4}-?\d{4}\b"), "[REDACTED_PHONE]"),
)


class PiiRedactionFilter(logging.Filter):
    """Masks tokens, API keys, e-mail addresses and mobile numbers in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        for pattern, replacement in _REDACTIONS:
            message = pattern.sub(replacement, message)
        record.msg = message
        record.args = None
        return True


def configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL") or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    for logger in (logging.getLogger(), logging.getLogger("clinicerp"), app.logger):
        logger.setLevel(level)
    if level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    formatter = logging.Formatter(VERBOSE_FORMAT if app.debug else COMPACT_FORMAT)
    redact = app.config.get("LOG_REDACT_PII", True)
    for handler in logging.getLogger().handlers + app.logger.handlers:
        handler.setFormatter(formatter)
        if redact and not any(isinstance(f, PiiRedactionFilter) for f in handler.filters):
            handler.addFilter(PiiRedactionFilter())
