"""
Standard error payload builders for Relay.

Every user-facing failure in the real-time layer reaches the client as an
``error`` event carrying one of these payloads.
"""

from typing import Optional
from .codes import ErrorCode
from .exceptions import RelayError

GENERIC_ERROR_MESSAGE = "Something went wrong processing your request"


def error_event(error: RelayError | Exception, event: Optional[str] = None) -> dict:
    """Build the payload of an outbound ``error`` event.

    Args:
        error: The exception to convert
        event: Optional inbound event name that triggered the failure

    Returns:
        Dict with ``message`` and ``code`` (plus ``event`` when given)

    Example:
        >>> from errors import AuthorizationError, error_event
        >>> error_event(AuthorizationError("Unauthorized access"), event="join_chat")
        {"message": "Unauthorized access", "code": "AUTHZ_FORBIDDEN", "event": "join_chat"}
    """
    if isinstance(error, RelayError):
        payload = {"message": error.message, "code": error.code.value}
    else:
        # Never leak internals of unexpected exceptions to the client
        payload = {"message": GENERIC_ERROR_MESSAGE, "code": ErrorCode.INTERNAL_UNEXPECTED.value}

    if event:
        payload["event"] = event
    return payload
