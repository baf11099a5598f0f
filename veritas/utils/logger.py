"""Structured logging for Veritas (structlog).

Every event is a snake_case name plus keyword context. While a request is in
flight its ID is attached as ``request_id`` (see RequestIDMiddleware).

Credentials pass through this service on their way to Vercel, Hugging Face,
TinEye and Bing. redact_secrets() masks them if one ever ends up in an event.
"""

import logging
import sys
import time
from contextvars import ContextVar, Token
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

REDACTED = "[redacted]"

# Event keys whose values are always masked.
SECRET_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "token",
        "blob_token",
        "api_key",
        "x-api-key",
        "private_key",
        "bing_key",
        "ocp-apim-subscription-key",
    }
)


def add_request_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_var.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def redact_secrets(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential-looking values, including inside header dicts."""
    for key, value in list(event_dict.items()):
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if str(k).lower() in SECRET_KEYS else v for k, v in value.items()
            }
        elif isinstance(value, str) and value.startswith("Bearer "):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog once for the process.

    Args:
        log_level:   DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: JSON lines (production) or the coloured console renderer.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_secrets,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "veritas") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_id(request_id: str) -> Token:
    """Attach request_id to every event logged in the current context."""
    return request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    request_id_var.reset(token)


class PerformanceLogger:
    """Time a block and log ``operation_completed`` / ``operation_failed``.

    Successful runs log at DEBUG, or WARNING once they take longer than
    ``slow_ms``. Outbound calls to search engines and model endpoints are
    routinely slow, so callers raise the threshold for those.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        slow_ms: float = 1000.0,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.slow_ms = slow_ms
        self._started: float = 0.0
        self._finished: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._finished = time.perf_counter()
        duration_ms = round(self.duration_ms, 1)

        if exc_type is not None:
            self.logger.warning(
                "operation_failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
            )
            return

        slow = duration_ms > self.slow_ms
        log = self.logger.warning if slow else self.logger.debug
        log("operation_completed", operation=self.operation, duration_ms=duration_ms, slow=slow)

    @property
    def duration_ms(self) -> float:
        end = self._finished if self._finished is not None else time.perf_counter()
        return (end - self._started) * 1000


# Defaults until main.py reconfigures from the environment.
configure_logging()
