"""
Structured logging for pipeline runs.

All output goes to stderr so that console reports on stdout stay clean.
Workbook-level context (category, year) and stage timings are attached as
key-value pairs rather than formatted into messages.
"""

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging for a CLI invocation.

    Python warnings (openpyxl complains about the portal's workbook styles)
    are routed through logging and shown only at DEBUG.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, emit one JSON object per line (for scheduled runs).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)
    logging.captureWarnings(True)
    if log_level > logging.DEBUG:
        logging.getLogger("py.warnings").setLevel(logging.ERROR)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module logger; use as ``log = get_logger(__name__)``."""
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """
    Bind key-value pairs to every log event inside the block.

    Example:
        with log_context(category="achievement", year="2022-2023"):
            log.info("Reading workbook")  # carries category and year
    """
    return structlog.contextvars.bound_contextvars(**kwargs)


@contextmanager
def log_stage(name: str, **kwargs: Any) -> Iterator[None]:
    """
    Log the start and duration of a pipeline stage.

    Events inside the block carry ``stage=name``. A stage that raises is
    logged as failed and the exception propagates.
    """
    log = get_logger("reportcard.stage")
    start = time.perf_counter()
    with log_context(stage=name, **kwargs):
        log.debug("Stage started")
        try:
            yield
        except Exception:
            log.warning("Stage failed", seconds=round(time.perf_counter() - start, 3))
            raise
        log.info("Stage complete", seconds=round(time.perf_counter() - start, 3))
