"""
LLM Client - wraps the OpenAI SDK to talk to any OpenAI-compatible endpoint.

Used by the response generator as its text oracle:
    complete(system_prompt, history, message) -> text

Key translations:
- History: [{"role": "user"|"assistant", "content": ...}] passed through as-is
- Thinking: <think>...</think> inline tags from local models are stripped
- Failures: transport errors and empty completions raise OracleFailure
"""

import logging
import re
import time
from typing import Dict, List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from config import runtime_config
from errors import ErrorCode, OracleFailure
from logging_config import log_llm

logger = logging.getLogger(__name__)

_THINK_PATTERN = re.compile(r"<think>(.*?)</think>", re.DOTALL)


def _strip_thinking(content: str) -> str:
    """Remove <think>...</think> blocks that local reasoning models emit inline."""
    if not content:
        return ""
    return _THINK_PATTERN.sub("", content).strip()


def build_messages(system_prompt: str, history: List[Dict[str, str]], message: str) -> List[Dict[str, str]]:
    """Build the chat message list for one completion call."""
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": turn["role"], "content": turn["content"]} for turn in history)
    messages.append({"role": "user", "content": message})
    return messages


class LLMClient:
    """Async text oracle over an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "not-needed",
        model: str = "default",
        timeout: float = 10.0,
    ):
        """
        Args:
            base_url: API root including the version prefix (e.g., "http://localhost:8081/v1")
            api_key: Bearer key; local servers accept any value
            model: Model name sent with every request
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._timeout = timeout
        self._openai = AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key or "not-needed",
            timeout=timeout,
            max_retries=0,
        )

    async def is_healthy(self, timeout: float = 3.0) -> bool:
        """Probe the endpoint's model listing."""
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.get(f"{self.base_url}/models")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def complete(
        self,
        system_prompt: str,
        history: List[Dict[str, str]],
        message: str,
        options: Optional[Dict] = None,
    ) -> str:
        """Generate one assistant turn.

        Args:
            system_prompt: Persona and knowledge instruction
            history: Prior turns, oldest first
            message: New user message
            options: Generation options (temperature, max_tokens)

        Returns:
            The completion text

        Raises:
            OracleFailure: On transport error or empty completion
        """
        options = options or {}
        kwargs = {
            "model": self.model,
            "messages": build_messages(system_prompt, history, message),
        }
        if "temperature" in options:
            kwargs["temperature"] = options["temperature"]
        if "max_tokens" in options:
            kwargs["max_tokens"] = options["max_tokens"]

        log_llm(logger, "start", model=self.model)
        start = time.monotonic()
        try:
            response = await self._openai.chat.completions.create(stream=False, **kwargs)
        except OpenAIError as e:
            raise OracleFailure("Text oracle request failed", details=str(e), oracle="llm") from e

        content = ""
        if response.choices:
            content = _strip_thinking(response.choices[0].message.content or "")
        log_llm(logger, "end", model=self.model, duration=time.monotonic() - start)

        if not content:
            raise OracleFailure(
                "Text oracle returned an empty completion",
                oracle="llm",
                code=ErrorCode.ORACLE_RESPONSE_INVALID,
            )
        return content

    async def close(self) -> None:
        await self._openai.close()


_llm_client: Optional[LLMClient] = None


def get_llm_client() -> Optional[LLMClient]:
    """Get the shared client, or None when the text oracle is disabled."""
    global _llm_client
    if not runtime_config.llm_enabled:
        return None
    if _llm_client is None:
        _llm_client = LLMClient(
            base_url=runtime_config.llm_base_url,
            api_key=runtime_config.llm_api_key,
            model=runtime_config.llm_model,
            timeout=runtime_config.llm_timeout_s,
        )
        logger.info(f"LLM client configured: {_llm_client.base_url} model={_llm_client.model}")
    return _llm_client


async def close_llm_client() -> None:
    global _llm_client
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None
