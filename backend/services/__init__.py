"""
Relay Services - Oracle clients and shared infrastructure.

- llm_client: Text oracle over an OpenAI-compatible API
- sentiment_client: Sentiment oracle over HTTP
- auth_tokens: JWT issue/verify for chat connections
- redis_client: Redis connection manager with health checks and fallback
"""

from .redis_client import RedisManager, get_redis

__all__ = ["RedisManager", "get_redis"]
