"""
Rate Limiting - Redis-backed throttling for the chat WebSocket.

Provides rate limiting for:
- WebSocket connections (per client IP)
- WebSocket messages (per connection)

Uses Redis INCR with EXPIRE as a fixed-window counter. When Redis is
unavailable, traffic is allowed in development and denied in production.

Usage:
    allowed, error_msg = await check_ws_message_limit(conn.connection_id)
    if not allowed:
        await conn.send("error", {"message": error_msg, "code": "RATE_LIMITED"})
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from config import runtime_config
from services.redis_client import RedisUnavailable, get_redis

logger = logging.getLogger(__name__)


class RateLimitType(Enum):
    """Rate limit types with their Redis key patterns."""
    WS_CONNECTION = "relay:rl:conn"    # Per IP
    WS_MESSAGE = "relay:rl:msg"        # Per connection


def _default_limit(limit_type: RateLimitType) -> int:
    if limit_type == RateLimitType.WS_CONNECTION:
        return runtime_config.rate_limit_ws_conn
    return runtime_config.rate_limit_ws_msg


async def check_rate_limit(
    limit_type: RateLimitType,
    identifier: str,
    limit: Optional[int] = None,
    window_seconds: int = 60,
) -> Tuple[bool, int, int]:
    """
    Check if request is within rate limit.

    Args:
        limit_type: Type of rate limit to check
        identifier: Unique identifier (IP, connection id)
        limit: Max requests per window (uses config default if None)
        window_seconds: Time window in seconds

    Returns:
        Tuple of (allowed, current_count, limit)
    """
    if limit is None:
        limit = _default_limit(limit_type)

    # In production, deny requests when Redis is unavailable (fail-closed)
    fail_closed = runtime_config.is_production

    redis = await get_redis()
    if redis.fallback_mode:
        if fail_closed:
            logger.warning("Rate limiting fail-closed (Redis unavailable in production)")
            return (False, 0, limit)
        logger.debug("Rate limiting disabled (Redis fallback mode)")
        return (True, 0, limit)

    key = f"{limit_type.value}:{identifier}"

    try:
        count = await redis.incr(key)
    except RedisUnavailable as e:
        if fail_closed:
            logger.error(f"Rate limit check failed (fail-closed): {e}")
            return (False, 0, limit)
        logger.warning(f"Rate limit check failed: {e}, allowing request")
        return (True, 0, limit)

    # Set TTL on first request in window
    if count == 1:
        await redis.expire(key, window_seconds)

    allowed = count <= limit
    if not allowed:
        logger.warning(
            f"Rate limit exceeded: {limit_type.name} for {identifier} "
            f"({count}/{limit} in {window_seconds}s)"
        )

    return (allowed, count, limit)


async def check_ws_connection_limit(client_ip: str) -> Tuple[bool, str]:
    """
    Check WebSocket connection rate limit.

    Args:
        client_ip: Client IP address

    Returns:
        Tuple of (allowed, error_message)
    """
    allowed, count, limit = await check_rate_limit(RateLimitType.WS_CONNECTION, client_ip)

    if not allowed:
        return (False, f"Connection rate limit exceeded ({count}/{limit}/min)")

    return (True, "")


async def check_ws_message_limit(connection_id: str) -> Tuple[bool, str]:
    """
    Check WebSocket message rate limit.

    Args:
        connection_id: Connection identifier

    Returns:
        Tuple of (allowed, error_message)
    """
    key = f"{RateLimitType.WS_MESSAGE.value}:{connection_id}"
    allowed, count, limit = await check_rate_limit(RateLimitType.WS_MESSAGE, connection_id)

    if not allowed:
        redis = await get_redis()
        reset_in = max(0, await redis.get_ttl(key))
        return (
            False,
            f"Message rate limit exceeded ({count}/{limit}/min). "
            f"Try again in {reset_in} seconds.",
        )

    return (True, "")
