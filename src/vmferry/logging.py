"""
Structured logging for vmferry using structlog.
"""

import logging
import sys
import warnings
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

from vmferry.errors import ResourceCleanupWarning


def _pre_chain() -> list:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _handler(handler: logging.Handler, renderer, pre_chain: list) -> logging.Handler:
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )
    return handler


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Path] = None,
    console_output: bool = True,
) -> None:
    """
    Route vmferry's structlog events to stderr and, optionally, a JSON file.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Render stderr lines as JSON instead of the console format
        log_file: Optional path receiving one JSON object per event
        console_output: Write events to stderr
    """
    pre_chain = _pre_chain()
    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers = []
    if console_output:
        stderr_renderer = (
            structlog.processors.JSONRenderer()
            if json_output
            else structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)
        )
        handlers.append(_handler(logging.StreamHandler(sys.stderr), stderr_renderer, pre_chain))
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _handler(logging.FileHandler(log_file), structlog.processors.JSONRenderer(), pre_chain)
        )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True,
    )
    # cleanup_warning already logs the event; keep the warnings module quiet.
    warnings.filterwarnings("ignore", category=ResourceCleanupWarning)


def get_logger(name: str = "vmferry") -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def cleanup_warning(logger: structlog.stdlib.BoundLogger, event: str, **kwargs) -> None:
    """Report a non-fatal cleanup failure as a ResourceCleanupWarning."""
    logger.warning(event, category=ResourceCleanupWarning.__name__, **kwargs)
    warnings.warn(f"{event}: {kwargs}", ResourceCleanupWarning, stacklevel=2)


@contextmanager
def log_operation(logger: structlog.stdlib.BoundLogger, operation: str, **kwargs):
    """
    Context manager for logging operation start/end.

    Usage:
        with log_operation(log, "export", vm_name="Alice") as op_log:
            ...
    """
    log = logger.bind(operation=operation, **kwargs)
    start_time = datetime.now()
    log.info(f"{operation}.started")

    try:
        yield log
        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        log.info(f"{operation}.completed", duration_ms=round(duration_ms, 2))
    except Exception as e:
        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        log.error(
            f"{operation}.failed",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=round(duration_ms, 2),
        )
        raise
