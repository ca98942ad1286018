"""Structured JSON logging with a per-entity correlation ID.

Logs go to stderr: stdout carries the fetched context for the calling step.
"""

import logging
import sys
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, WrappedLogger

# Entity being fetched, "owner/repo#number"
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# Event keys whose values must never reach the log
SENSITIVE_KEYS = frozenset({"token", "authorization", "password", "secret"})

REDACTED = "[redacted]"


def add_correlation_id(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add correlation ID to log event if set."""
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def redact_secrets(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask credential-looking keys (``token``, ``github_token``, ...)."""
    for key in event_dict:
        if any(part in key.lower() for part in SENSITIVE_KEYS):
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structlog to write JSON lines to stderr.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            redact_secrets,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # Module-level loggers must follow a later reconfiguration
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def entity_correlation_id(owner: str, repo: str, number: int) -> str:
    """Format the correlation ID of an issue or pull request.

    Example:
        >>> entity_correlation_id("owner", "repo", 12)
        'owner/repo#12'
    """
    return f"{owner}/{repo}#{number}"


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID for the current async context."""
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    """Get correlation ID from the current async context, or empty string."""
    return correlation_id_var.get()
