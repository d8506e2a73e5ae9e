"""
Error handling decorators and utilities for Relay.

Provides decorators for consistent error handling across inbound
real-time event handlers.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .exceptions import RelayError
from .response import error_event

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def handle_event_errors(event_name: str, logger: Optional[logging.Logger] = None):
    """Decorator that converts handler failures into ``error`` events.

    Wraps an async router method ``(self, conn, payload)``. RelayErrors are
    logged at warning level (they are expected: bad ids, unauthorized
    actions) and an ``error`` event is sent back to the calling connection
    only. Unexpected exceptions are logged with stack traces and reported
    with a generic message. Nothing is broadcast on failure.

    Args:
        event_name: Inbound event name for log and payload context
        logger: Optional logger instance (defaults to an event-specific logger)

    Example:
        >>> class ChatRouter:
        ...     @handle_event_errors("join_chat")
        ...     async def join_chat(self, conn, payload):
        ...         if not payload.customer_id:
        ...             raise ValidationError("Invalid customer id")
    """

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"relay.events.{event_name}")

        @wraps(func)
        async def wrapper(self, conn, *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(self, conn, *args, **kwargs)
            except RelayError as e:
                log.warning(f"[{event_name}] {e.code.value}: {e.message} (conn={conn.connection_id})")
                await conn.send("error", error_event(e, event=event_name))
            except Exception as e:
                log.error(f"[{event_name}] Unexpected error: {e}", exc_info=True)
                await conn.send("error", error_event(e, event=event_name))
            return None

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Args:
        logger: Logger instance to use
        error: The exception to log
        context: Optional context string to prefix the message
        include_traceback: Whether to include the full stack trace

    Example:
        >>> log_error(logger, err, context="Responder")
        # Logs: "[Responder] ORACLE_TIMEOUT: Text oracle timed out"
    """
    if isinstance(error, RelayError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)
