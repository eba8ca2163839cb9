"""
Logging for qiniu-storage.

structlog produces the events; stdlib logging routes and formats them so
that boto3, httpx and the qiniu SDK share the same handlers. JSON records
are serialized once, by python-json-logger, from the structlog event dict.

Two stream layouts:
- split (library default): DEBUG/INFO on stdout, ERROR and up on stderr
- single stream: every record on one stream; the CLI uses stderr because
  stdout carries object data and listings
"""

import logging
import logging.config
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Mapping, Optional

import structlog
from pythonjsonlogger import jsonlogger
from structlog.types import EventDict


_trace_id_context: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

# Third-party loggers that only get through at WARNING and above
QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "botocore", "boto3", "s3transfer", "qiniu")


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current context."""
    _trace_id_context.set(trace_id)


def get_trace_id() -> Optional[str]:
    return _trace_id_context.get()


def clear_trace_id() -> None:
    _trace_id_context.set(None)


def bind_operation(operation: str, **fields: Any) -> Mapping[str, Any]:
    """Attach ``operation`` and ``fields`` to every event in this context.

    Returns:
        Tokens for ``clear_operation`` to restore the previous context
    """
    return structlog.contextvars.bind_contextvars(operation=operation, **fields)


def clear_operation(tokens: Optional[Mapping[str, Any]] = None) -> None:
    """Undo one ``bind_operation`` call, or drop all operation context."""
    if tokens is None:
        structlog.contextvars.clear_contextvars()
    else:
        structlog.contextvars.reset_contextvars(**tokens)


@contextmanager
def operation_context(operation: str, **fields: Any) -> Iterator[None]:
    """Scope ``bind_operation`` to a block; nested blocks restore the outer one."""
    tokens = bind_operation(operation, **fields)
    try:
        yield
    finally:
        clear_operation(tokens)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service name, version, environment and trace ID to every record."""
    from qiniu_storage.core.config import settings

    event_dict["service"] = settings.SERVICE_NAME
    event_dict["version"] = settings.VERSION
    event_dict["environment"] = settings.ENVIRONMENT

    trace_id = get_trace_id()
    if trace_id:
        event_dict["trace_id"] = trace_id

    return event_dict


def configure_structlog(debug: bool = False, json_logs: bool = True) -> None:
    """Configure structlog on top of stdlib logging.

    JSON mode hands the event dict to the stdlib record as ``extra`` fields
    for ``CustomJsonFormatter``; console mode renders a readable line.
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_app_context,
    ]

    if debug and not json_logs:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors += [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record, structlog fields at the top level.

    Records from other libraries get the same ``timestamp``/``level``/
    ``logger``/``trace_id`` fields as structlog events.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get('timestamp'):
            log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = (log_record.get('level') or record.levelname).upper()
        log_record['logger'] = record.name

        trace_id = get_trace_id()
        if trace_id and 'trace_id' not in log_record:
            log_record['trace_id'] = trace_id


class InfoAndBelowFilter(logging.Filter):
    """Only lets INFO and DEBUG through (stdout handler of the split layout)."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= logging.INFO


def _handlers(formatter: str, stream: Optional[str]) -> Dict[str, Dict[str, Any]]:
    if stream is not None:
        return {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": stream,
            },
        }
    return {
        "stdout": {
            "class": "logging.StreamHandler",
            "formatter": formatter,
            "stream": "ext://sys.stdout",
            "filters": ["info_and_below"],
        },
        "stderr": {
            "class": "logging.StreamHandler",
            "level": "ERROR",
            "formatter": formatter,
            "stream": "ext://sys.stderr",
        },
    }


def get_logging_config(
    debug: bool = False,
    json_logs: bool = True,
    stream: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the ``dictConfig`` for the root logger.

    Args:
        debug: Enable debug mode
        json_logs: Use JSON formatting
        stream: Send every record to this stream (``"ext://sys.stderr"``);
            None splits INFO and below to stdout, ERROR and up to stderr

    Returns:
        Dictionary configuration for logging.config.dictConfig
    """
    from qiniu_storage.core.config import settings

    formatter = "json" if json_logs or not debug else "console"
    handlers = _handlers(formatter, stream)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "qiniu_storage.core.logging_config.CustomJsonFormatter",
                "format": "%(timestamp)s %(level)s %(name)s %(message)s",
            },
            "console": {
                "format": "%(asctime)s %(levelname)-8s %(name)s %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "filters": {
            "info_and_below": {
                "()": "qiniu_storage.core.logging_config.InfoAndBelowFilter",
            },
        },
        "handlers": handlers,
        "root": {
            "handlers": list(handlers),
            "level": settings.LOG_LEVEL,
        },
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    }


def setup_logging(debug: bool = False, json_logs: bool = True, stream: Optional[str] = None) -> None:
    """Initialize stdlib logging and structlog. Call once at process startup.

    Example:
        >>> from qiniu_storage.core.config import settings
        >>> setup_logging(debug=settings.is_debug_mode, json_logs=settings.use_json_logs)
    """
    logging.config.dictConfig(get_logging_config(debug=debug, json_logs=json_logs, stream=stream))
    configure_structlog(debug=debug, json_logs=json_logs)

    get_logger(__name__).debug(
        "logging_system_initialized",
        debug_mode=debug,
        json_logs=json_logs,
        stream=stream or "split",
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("qiniu_copy_success", src="a", dst="b")
    """
    return structlog.get_logger(name)
