import logging
import json
import sys
import os
from datetime import datetime, timezone

ROOT_LOGGER = 'translatable'


class JsonFormatter(logging.Formatter):
    """
    Format log records as single-line JSON objects.
    Anything passed as extra={'context': {...}} is merged into the record.
    """
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        context = getattr(record, 'context', None)
        if isinstance(context, dict):
            log_record.update(context)

        return json.dumps(log_record, default=str)


def _configure_root():
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    handler = logging.StreamHandler(sys.stdout)
    if os.getenv('LOG_FORMAT', 'json').lower() == 'json':
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    root.addHandler(handler)
    root.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())
    return root


def get_logger(name=None):
    """
    Return a logger below the package root logger.
    The root handler is installed once, children propagate to it.
    """
    _configure_root()
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER + '.'):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


logger = get_logger()
