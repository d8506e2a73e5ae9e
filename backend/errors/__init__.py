"""
Relay Error Handling Module

Provides standardized error codes, exceptions, and event payload builders
for consistent error handling across the real-time layer.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        RelayError,
        AuthError,
        AuthorizationError,
        ValidationError,
        OracleFailure,

        # Payload builders
        error_event,

        # Decorators
        handle_event_errors,
        log_error,
    )

Example:
    from errors import handle_event_errors, AuthorizationError

    class ChatRouter:
        @handle_event_errors("join_chat")
        async def join_chat(self, conn, payload):
            if conn.identity.is_customer and conn.identity.user_id != payload.customer_id:
                raise AuthorizationError("Unauthorized access", action="join_chat")
            ...
"""

from .codes import ErrorCode
from .exceptions import (
    RelayError,
    AuthError,
    AuthorizationError,
    ValidationError,
    OracleFailure,
)
from .response import (
    GENERIC_ERROR_MESSAGE,
    error_event,
)
from .handlers import (
    handle_event_errors,
    log_error,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "RelayError",
    "AuthError",
    "AuthorizationError",
    "ValidationError",
    "OracleFailure",
    # Payload builders
    "GENERIC_ERROR_MESSAGE",
    "error_event",
    # Decorators
    "handle_event_errors",
    "log_error",
]
