"""Structured logging for the API, the CLI and the services behind them.

Every event, including records from stdlib loggers such as uvicorn's, is
rendered by one structlog formatter. Request-scoped keys live in structlog's
context variables: the API binds ``request_id`` per request and the review
service binds ``card_id`` while a review or undo runs. Both are merged into
every event logged while they are bound.
"""

import logging
import sys
from typing import TextIO
from uuid import uuid4

import structlog

REQUEST_ID_KEY = "request_id"

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.format_exc_info,
]


def bind_request_id(request_id: str | None = None) -> str:
    """Bind a request id to the current context, generating one if missing."""
    request_id = request_id or uuid4().hex
    structlog.contextvars.bind_contextvars(**{REQUEST_ID_KEY: request_id})
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def configure_logging(
    *,
    debug: bool = False,
    json_output: bool = False,
    log_stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through a single handler.

    Called by each entry point; calling it again replaces the handler.

    Args:
        debug: Log at DEBUG instead of INFO.
        json_output: One JSON object per line instead of the console renderer.
        log_stream: Output stream; defaults to ``sys.stderr``.
    """
    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    # Loggers are resolved on every call so that reconfiguring takes effect
    # for module-level loggers created at import time.
    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(log_stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED_PROCESSORS,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)


def get_logger(**initial_context: object) -> structlog.stdlib.BoundLogger:
    """Logger with ``initial_context`` bound to every event."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(**initial_context)
    return logger
