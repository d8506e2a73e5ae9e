"""
Custom exception hierarchy for Relay.

All exceptions inherit from RelayError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the user can retry/fix the issue
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class RelayError(Exception):
    """Base exception for all Relay errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class AuthError(RelayError):
    """Bad or missing credential at connect time.

    Terminates the connection attempt. ``reason`` is ``"missing"`` when no
    credential was presented and ``"invalid"`` when verification failed.
    """

    code = ErrorCode.AUTH_INVALID
    recoverable = False

    def __init__(self, reason: str, details: Optional[str] = None, **context: Any):
        self.reason = reason
        code = ErrorCode.AUTH_MISSING if reason == "missing" else ErrorCode.AUTH_INVALID
        super().__init__(reason, details, code=code, **context)


class AuthorizationError(RelayError):
    """Authenticated, but not permitted to perform this action."""

    code = ErrorCode.AUTHZ_FORBIDDEN
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        action: Optional[str] = None,
        role: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if action:
            ctx["action"] = action
        if role:
            ctx["role"] = role
        super().__init__(message, details, **ctx)


class ValidationError(RelayError):
    """Error during input validation."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if parameter:
            ctx["parameter"] = parameter
        if expected:
            ctx["expected"] = expected
        if received is not None:
            ctx["received"] = received
        super().__init__(message, details, **ctx)


class OracleFailure(RelayError):
    """External text-generation or sentiment service failed.

    Always recovered locally (fallback responder, neutral sentiment) and never
    surfaced to the end user as an error.
    """

    code = ErrorCode.ORACLE_UNAVAILABLE
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        oracle: Optional[str] = None,
        timeout: bool = False,
        code: Optional[ErrorCode] = None,
        **context: Any,
    ):
        if timeout:
            code = ErrorCode.ORACLE_TIMEOUT
        ctx = {**context}
        if oracle:
            ctx["oracle"] = oracle
        self.timeout = timeout
        super().__init__(message, details, code=code, **ctx)
