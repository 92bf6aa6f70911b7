import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from rich.logging import RichHandler

from modindex.main.config import get_loglevel
from modindex.main.log_context import get_log_context


JSON_LOGS_ENABLED = os.getenv("JSON_LOGS", "true").lower() in {"1", "true", "yes", "on"}

# Attributes every LogRecord has; anything else on a record came from `extra=`
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message"}


class ContextJSONFormatter(logging.Formatter):
    """One JSON object per record: level, logger, message, task context and extras."""

    def format(self, record: logging.LogRecord) -> str:
        log: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in get_log_context().items():
            if value is not None:
                log.setdefault(key, value)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_") or value is None:
                continue
            log.setdefault(key, value)

        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)

        return json.dumps(log, default=str)


# Statement logging drowns out the indexer at DEBUG
for logger_name in ("sqlalchemy.engine", "sqlalchemy.pool", "sqlalchemy.orm", "sqlalchemy.dialects"):
    sa_logger = logging.getLogger(logger_name)
    sa_logger.setLevel(logging.WARNING)
    sa_logger.propagate = False


class SimpleLogger(logging.Logger):
    def __init__(self, name: str, level=logging.WARNING):
        logging.Logger.__init__(self, name, level)

        handler: logging.Handler
        if JSON_LOGS_ENABLED:
            handler = logging.StreamHandler(stream=sys.stdout)
            handler.setFormatter(ContextJSONFormatter())
        else:
            # Rich for readable console output when not shipping JSON logs
            handler = RichHandler(rich_tracebacks=True, markup=False, show_path=True)
        handler.setLevel(level)
        self.addHandler(handler)


_loggers: dict[str, SimpleLogger] = {}


def get_logger(module_name: str) -> logging.Logger:
    # One logger per module, otherwise every call would stack another handler
    if module_name not in _loggers:
        _loggers[module_name] = SimpleLogger(name=module_name, level=get_loglevel())
    return _loggers[module_name]
