"""key=value log lines for the legal tutor service.

Turn-scoped identifiers (user, conversation) are written right after the
message so one turn can be followed with a plain grep.
"""

import logging
import sys
from typing import Any

CONTEXT_FIELDS = ("user_id", "conversation_id")

_ENV_LEVELS = {"dev": logging.DEBUG, "test": logging.WARNING}


class StructuredFormatter(logging.Formatter):
    """Render a record as ``key=value`` pairs, traceback on following lines."""

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                fields[name] = getattr(record, name)
        fields.update(getattr(record, "extra_data", {}))

        line = " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _env_level() -> int:
    try:
        from tutor.core.config import get_settings

        return _ENV_LEVELS.get(get_settings().TUTOR_ENV, logging.INFO)
    except Exception:
        return logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Logger for ``name`` with the structured stdout handler attached once.

    The level follows ``TUTOR_ENV``: DEBUG in dev, WARNING under tests,
    INFO elsewhere or when settings cannot be loaded.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_env_level())
    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Log ``msg`` with ``user_id``/``conversation_id`` and any other keyword fields."""
    extra: dict[str, Any] = {name: kwargs.pop(name) for name in CONTEXT_FIELDS if name in kwargs}
    extra["extra_data"] = kwargs
    logger.log(level, msg, extra=extra)
