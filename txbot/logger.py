"""Logger construction: console or JSON output to stdout, or a silent logger."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

TRACE = 5
DISABLED = logging.CRITICAL + 100
logging.addLevelName(TRACE, "TRACE")

LOGGER_NAME = "txbot"
NOP_LOGGER_NAME = "txbot.nop"

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "disabled": DISABLED,
    "": logging.NOTSET,
}

_SHORT_NAMES = {
    TRACE: "TRC",
    logging.DEBUG: "DBG",
    logging.INFO: "INF",
    logging.WARNING: "WRN",
    logging.ERROR: "ERR",
    logging.CRITICAL: "FTL",
}

_JSON_NAMES = {
    TRACE: "trace",
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}


class _StdoutHandler(logging.StreamHandler):
    """Writes to whatever sys.stdout currently is."""

    def __init__(self) -> None:
        super().__init__(sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stdout
        super().emit(record)


class _ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%I:%M%p")
        level = _SHORT_NAMES.get(record.levelno, record.levelname[:3].upper())
        line = f"{stamp} {level} {record.getMessage()}"
        if record.exc_info:
            line += " error=" + repr(record.exc_info[1])
        return line


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": _JSON_NAMES.get(record.levelno, record.levelname.lower()),
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["error"] = str(record.exc_info[1])
        return json.dumps(payload)


def _configure(formatter: logging.Formatter, level: int) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = _StdoutHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    logger.setLevel(level)
    return logger


def get_default_logger() -> logging.Logger:
    """Return a console logger that emits everything down to trace level."""
    return _configure(_ConsoleFormatter(), TRACE)


def get_nop_logger() -> logging.Logger:
    """Return a logger that discards everything."""
    logger = logging.getLogger(NOP_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    logger.setLevel(DISABLED)
    return logger


def get_logger(log_level: str, json_output: bool = False) -> logging.Logger:
    """Return a stdout logger at ``log_level``; raise ValueError for an unknown level."""
    try:
        level = _LEVELS[log_level.lower()]
    except KeyError:
        raise ValueError(f"Unknown level string: '{log_level}'") from None
    formatter = _JsonFormatter() if json_output else _ConsoleFormatter()
    return _configure(formatter, level)