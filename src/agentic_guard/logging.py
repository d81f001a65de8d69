"""Structured logging for the command safety engine and approval gate.

Events are keyword-style structlog calls such as
``logger.info("command_classified", status="RED")``. Fields that describe
the work in progress (the command being classified, the approval request
being decided) are bound with ``log_context`` so every event emitted
inside the block carries them, including events logged by handlers and
approval listeners.
"""

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from agentic_guard.config import GuardSettings


def configure_logging(settings: "GuardSettings | None" = None) -> None:
    """Configure structured logging based on settings.

    Args:
        settings: Guard settings. If None, uses defaults (warnings only,
            console output).
    """
    log_level = logging.WARNING
    log_format = "console"

    if settings is not None:
        log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
        log_format = settings.log_format

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        # One object per line for log shippers
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name) if name else structlog.get_logger()


@contextmanager
def log_context(**fields: object) -> Iterator[None]:
    """Bind fields to every event logged inside the block.

    Values bound by an enclosing block are restored on exit. None values
    are skipped so optional ids never appear as ``call_id=None``.

    Example:
        with log_context(request_id="call_1"):
            logger.info("approval_decided")  # includes request_id
    """
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


class Loggers:
    """Pre-configured logger instances for guard components."""

    @staticmethod
    def shell() -> structlog.stdlib.BoundLogger:
        """Logger for command classification."""
        return get_logger("agentic_guard.shell")

    @staticmethod
    def hitl() -> structlog.stdlib.BoundLogger:
        """Logger for the approval gate."""
        return get_logger("agentic_guard.hitl")

    @staticmethod
    def config() -> structlog.stdlib.BoundLogger:
        """Logger for configuration."""
        return get_logger("agentic_guard.config")
