"""Logging for the command line: plain text or one JSON object per line, on stderr."""

import json
import logging
import sys

PLAIN_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_FIELDS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def __init__(self, component=None):
        super().__init__()
        self.component = component

    def format(self, record):
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if self.component:
            payload["component"] = self.component
        payload.update({k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS})
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level=None, fmt=None, component=None):
    """Configure the root logger. Defaults come from SAJU_LOG_LEVEL and SAJU_LOG_FORMAT.

    Only entry points call this; importing the library installs no handlers.
    """
    from saju.config import get_settings

    settings = get_settings()
    level = (level or settings.log_level).upper()
    handler = logging.StreamHandler(sys.stderr)
    if (fmt or settings.log_format).lower() == "json":
        handler.setFormatter(JsonFormatter(component))
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    logging.basicConfig(level=getattr(logging, level, logging.INFO), handlers=[handler], force=True)


def get_logger(name):
    return logging.getLogger(name)
