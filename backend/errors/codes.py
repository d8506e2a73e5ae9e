"""
Error codes for Relay.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error events.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for Relay.

    Categories:
    - AUTH_*: Credential problems at connect time
    - AUTHZ_*: Authenticated but not permitted for the action
    - VALIDATION_*: Malformed input
    - ORACLE_*: External text/sentiment service failures
    - RATE_*: Throttling
    - INTERNAL_*: Internal/unexpected errors
    """

    # Authentication errors (handshake)
    AUTH_MISSING = "AUTH_MISSING"
    AUTH_INVALID = "AUTH_INVALID"

    # Authorization errors (per action)
    AUTHZ_FORBIDDEN = "AUTHZ_FORBIDDEN"
    AUTHZ_STAFF_ONLY = "AUTHZ_STAFF_ONLY"
    AUTHZ_ALREADY_ASSIGNED = "AUTHZ_ALREADY_ASSIGNED"

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_ID = "VALIDATION_INVALID_ID"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
    VALIDATION_UNKNOWN_EVENT = "VALIDATION_UNKNOWN_EVENT"

    # Oracle errors (external services)
    ORACLE_UNAVAILABLE = "ORACLE_UNAVAILABLE"
    ORACLE_TIMEOUT = "ORACLE_TIMEOUT"
    ORACLE_RESPONSE_INVALID = "ORACLE_RESPONSE_INVALID"

    # Throttling
    RATE_LIMITED = "RATE_LIMITED"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_CONFIG_ERROR = "INTERNAL_CONFIG_ERROR"
