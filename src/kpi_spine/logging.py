"""Structured logging with structlog.

All output goes to stderr through one stdlib handler so command output on
stdout stays machine readable (``kpi-spine gaps --json``).
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from kpi_spine.config import get_settings

# Client libraries that log every request at INFO/DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "urllib3")

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _renderer(fmt: str):
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route structlog and stdlib logging to stderr at the configured level."""
    settings = get_settings()
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=_renderer(fmt)))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def log_context(**kwargs) -> Iterator[None]:
    """Bind ``kwargs`` to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


__all__ = ["configure_logging", "log_context"]
