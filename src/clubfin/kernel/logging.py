"""
Structured logging for clubfin.

Every top-level operation (a transaction save, a delete, an item change)
runs in its own correlation scope: the engine's budget adjustments, skips
and store writes it causes all carry the same correlation_id.

JSON output is the default when ENVIRONMENT=production.
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Identity fields never written to logs. Amounts, fiscal years and months
# stay: a treasurer reconciles a budget from them.
REDACTED_FIELDS = frozenset(
    {"user_id", "updated_by", "created_by", "email", "display_name", "password", "token"}
)


def is_production() -> bool:
    """True when the ENVIRONMENT variable is 'production' (default: development)."""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def get_correlation_id() -> str:
    """Correlation ID of the current scope (empty outside any operation)."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> contextvars.Token[str]:
    """
    Adopt a correlation ID from outside (e.g. a request header).

    Returns the token that correlation_id_var.reset() takes to end the scope.
    """
    return correlation_id_var.set(correlation_id)


def _add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    cid = correlation_id_var.get()
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def _redact_processor(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    return redact_context(event_dict)


def configure_logging(
    *,
    json_output: bool | None = None,
    log_level: str = "INFO",
) -> None:
    """
    Configure structlog over stdlib logging.

    Args:
        json_output: JSON lines (True) or console output (False);
            None follows is_production()
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    if json_output is None:
        json_output = is_production()

    # stderr keeps CLI stdout clean for tables and JSON
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_correlation_id,
        _redact_processor,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Mask identity fields in a log context.

    Example:
        >>> redact_context({"user_id": "treasurer", "amount": "3000"})
        {"user_id": "***REDACTED***", "amount": "3000"}
    """
    return {k: "***REDACTED***" if k in REDACTED_FIELDS else v for k, v in context.items()}


class LogOperation:
    """
    Log start, completion or failure of one operation, with its duration

    The outermost LogOperation opens a correlation scope and closes it on
    exit; nested operations (the engine inside a save) share it.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = redact_context(context)
        self.start_time: float = 0.0
        self._scope: contextvars.Token[str] | None = None

    @property
    def correlation_id(self) -> str:
        return correlation_id_var.get()

    def __enter__(self) -> "LogOperation":
        if not correlation_id_var.get():
            self._scope = correlation_id_var.set(secrets.token_urlsafe(16))
        self.start_time = time.perf_counter()
        self.logger.info(f"{self.operation} started", operation=self.operation, **self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        try:
            if exc_type is None:
                self.logger.info(
                    f"{self.operation} completed",
                    operation=self.operation,
                    duration_ms=duration_ms,
                    **self.context,
                )
            else:
                # Stack traces only outside production
                self.logger.error(
                    f"{self.operation} failed",
                    operation=self.operation,
                    duration_ms=duration_ms,
                    error=str(exc_val),
                    error_type=exc_type.__name__,
                    exc_info=not is_production(),
                    **self.context,
                )
        finally:
            if self._scope is not None:
                correlation_id_var.reset(self._scope)
                self._scope = None
