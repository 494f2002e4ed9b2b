"""structlog + stdlib logging wiring.

Records are handed to a queue and rendered on a listener thread, so the
event loop never blocks on terminal I/O. Everything goes to stderr:
stdout belongs to the CLI's JSON output.
"""

from __future__ import annotations

import atexit
import copy
import logging
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional

import structlog

from otakuhub.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

# Capped at WARNING unless DEBUG is requested.
_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "asyncio")

_listener: Optional[QueueListener] = None


def _stamp_foreign_record(
    _: Any, __: Any, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Timestamp stdlib records with their creation time, not render time."""
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = created.isoformat().replace("+00:00", "Z")
    return event_dict


def build_processor_formatter(config: AppConfig) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.typing.Processor
    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            _stamp_foreign_record,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


class _EventDictQueueHandler(QueueHandler):
    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # The default prepare() formats record.msg into a string and would
        # destroy the event dict ProcessorFormatter renders.
        return copy.copy(record)


def _stop_listener() -> None:
    global _listener
    listener, _listener = _listener, None
    if listener is not None:
        listener.stop()


def _install_queue_handler(config: AppConfig) -> None:
    global _listener
    _stop_listener()

    stderr = logging.StreamHandler(stream=sys.stderr)
    stderr.setFormatter(build_processor_formatter(config))

    records: queue.Queue[logging.LogRecord] = queue.Queue()
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_EventDictQueueHandler(records))
    root.setLevel(config.log_level)

    noisy_level = logging.DEBUG if config.log_level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    _listener = QueueListener(records, stderr, respect_handler_level=True)
    _listener.start()
    atexit.register(_stop_listener)


def configure_logging(config: AppConfig) -> None:
    """Route structlog through stdlib logging and start the listener."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _install_queue_handler(config)
    log.info(
        "logging_configured", log_format=config.log_format, log_level=config.log_level
    )
