"""
Sentiment Client - httpx wrapper for the external sentiment classifier.

Contract:
    POST {url} {"text": "..."}
    -> {"score": -1..1, "emotion": "...", "needsHuman": bool, "confidence": 0..1}

Any transport, status or schema failure raises OracleFailure; callers
degrade to neutral sentiment.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from config import runtime_config
from errors import ErrorCode, OracleFailure

logger = logging.getLogger(__name__)


class SentimentResult(BaseModel):
    """Validated sentiment oracle response."""

    model_config = ConfigDict(populate_by_name=True)

    score: float = Field(ge=-1.0, le=1.0)
    emotion: str = "neutral"
    needs_human: bool = Field(default=False, alias="needsHuman")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class SentimentClient:
    """Async client for the sentiment oracle."""

    def __init__(self, url: str, timeout: float = 3.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def classify(self, text: str) -> SentimentResult:
        try:
            resp = await self._client.post(self.url, json={"text": text})
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise OracleFailure("Sentiment oracle timed out", oracle="sentiment", timeout=True) from e
        except (httpx.HTTPError, ValueError) as e:
            raise OracleFailure("Sentiment oracle request failed", details=str(e), oracle="sentiment") from e

        try:
            return SentimentResult.model_validate(data)
        except PydanticValidationError as e:
            raise OracleFailure(
                "Sentiment oracle returned an invalid response",
                details=str(e),
                oracle="sentiment",
                code=ErrorCode.ORACLE_RESPONSE_INVALID,
            ) from e

    async def close(self) -> None:
        await self._client.aclose()


_sentiment_client: Optional[SentimentClient] = None


def get_sentiment_client() -> Optional[SentimentClient]:
    """Get the shared client, or None when no sentiment oracle is configured."""
    global _sentiment_client
    if not runtime_config.sentiment_url:
        return None
    if _sentiment_client is None:
        _sentiment_client = SentimentClient(runtime_config.sentiment_url, timeout=runtime_config.sentiment_timeout_s)
        logger.info(f"Sentiment client configured: {runtime_config.sentiment_url}")
    return _sentiment_client


async def close_sentiment_client() -> None:
    global _sentiment_client
    if _sentiment_client is not None:
        await _sentiment_client.close()
        _sentiment_client = None
