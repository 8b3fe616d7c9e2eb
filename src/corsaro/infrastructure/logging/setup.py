"""structlog configuration shared by the app and uvicorn.

Every record (structlog events and stdlib/uvicorn records alike) is
rendered by one ``ProcessorFormatter``: a coloured console in dev/test,
JSON lines in prod. Emission goes through a queue so request handlers
never block on stream I/O.
"""

from __future__ import annotations

import atexit
import copy
import logging
import logging.config
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional, TextIO

import structlog

from corsaro.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

# Event keys whose values are credentials (debrid token, TMDB key, user blob).
_SECRET_KEYS = frozenset({"api_key", "token", "rd", "tmdb", "user_config"})
_REDACTED = "***"

BASE_LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {},
    "handlers": {
        "default": {"class": "logging.StreamHandler", "stream": "ext://sys.stderr"},
        "access": {"class": "logging.StreamHandler", "stream": "ext://sys.stdout"},
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"level": "INFO"},
        "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        # INFO lines carry full request URLs, query-string keys included.
        "httpx": {"level": "WARNING"},
    },
}

_listener: Optional[QueueListener] = None


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def _drop_color_message(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.pop("color_message", None)
    return event_dict


def _redact_secrets(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in _SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = _REDACTED
    return event_dict


def _stamp_foreign_record(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Use the LogRecord creation time for uvicorn/stdlib records."""
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = created.isoformat().replace("+00:00", "Z")
    return event_dict


def _shared_processors() -> list[structlog.typing.Processor]:
    return [
        _drop_color_message,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _redact_secrets,
    ]


def _renderer(config: AppConfig) -> structlog.typing.Processor:
    if config.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _formatter_processors(config: AppConfig) -> list[structlog.typing.Processor]:
    return [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        _renderer(config),
    ]


def _foreign_pre_chain() -> list[structlog.typing.Processor]:
    return [_stamp_foreign_record, *_shared_processors()]


# ---------------------------------------------------------------------------
# dictConfig for uvicorn
# ---------------------------------------------------------------------------


def build_logging_config(config: AppConfig) -> dict[str, Any]:
    """Return a uvicorn ``log_config`` rendered through structlog.

    The configured level applies to the root logger and to every logger
    in ``BASE_LOGGING_CONFIG``, except that httpx never drops below
    WARNING.
    """
    cfg = copy.deepcopy(BASE_LOGGING_CONFIG)
    cfg["formatters"]["structlog"] = {
        "()": structlog.stdlib.ProcessorFormatter,
        "foreign_pre_chain": _foreign_pre_chain(),
        "processors": _formatter_processors(config),
    }
    for handler in cfg["handlers"].values():
        handler["formatter"] = "structlog"

    level = config.log_level
    for logger_cfg in cfg["loggers"].values():
        logger_cfg["level"] = level
    if logging.getLevelName(level) < logging.WARNING:
        cfg["loggers"]["httpx"]["level"] = "WARNING"

    cfg["root"] = {"handlers": ["default"], "level": level}
    return cfg


# ---------------------------------------------------------------------------
# Queue-based emission
# ---------------------------------------------------------------------------


class _LevelRange(logging.Filter):
    def __init__(self, low: int, high: int) -> None:
        super().__init__()
        self._low = low
        self._high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self._low <= record.levelno <= self._high


class _CopyingQueueHandler(QueueHandler):
    # The default prepare() formats the record and flattens structlog's
    # event dict into a string; the listener-side formatter needs it intact.
    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        return copy.copy(record)


def _stream_handler(
    stream: TextIO, formatter: logging.Formatter, *, low: int, high: int
) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.setFormatter(formatter)
    handler.addFilter(_LevelRange(low, high))
    return handler


def _stop_listener() -> None:
    global _listener
    if _listener is not None:
        try:
            _listener.stop()
        finally:
            _listener = None


def _start_queue_logging(config: AppConfig, cfg: dict[str, Any]) -> None:
    """Re-point every logger at one queue; a listener thread writes
    INFO/WARNING to stdout and ERROR and above to stderr."""
    global _listener
    _stop_listener()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_foreign_pre_chain(),
        processors=_formatter_processors(config),
    )
    records: queue.Queue[logging.LogRecord] = queue.Queue()

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_CopyingQueueHandler(records))
    root.setLevel(config.log_level)

    for name in list(logging.root.manager.loggerDict):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(cfg["loggers"].get(name, {}).get("level", config.log_level))

    _listener = QueueListener(
        records,
        _stream_handler(sys.stdout, formatter, low=logging.NOTSET, high=logging.WARNING),
        _stream_handler(sys.stderr, formatter, low=logging.ERROR, high=logging.CRITICAL),
        respect_handler_level=True,
    )
    _listener.start()
    atexit.register(_stop_listener)


def configure_logging(config: AppConfig) -> dict[str, Any]:
    """Configure structlog and stdlib logging for the process.

    Returns the dictConfig to hand to uvicorn as ``log_config``.
    """
    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    cfg = build_logging_config(config)
    logging.config.dictConfig(cfg)
    _start_queue_logging(config, cfg)

    log.info("logging_configured", log_format=config.log_format, log_level=config.log_level)
    return cfg
