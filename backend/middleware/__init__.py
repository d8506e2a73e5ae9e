"""
Relay Middleware - Connection and message throttling.

- rate_limit: Rate limiting for the chat WebSocket
"""

from .rate_limit import (
    RateLimitType,
    check_rate_limit,
    check_ws_connection_limit,
    check_ws_message_limit,
)

__all__ = ["RateLimitType", "check_rate_limit", "check_ws_connection_limit", "check_ws_message_limit"]
