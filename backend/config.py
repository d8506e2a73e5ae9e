"""
Runtime Configuration for Relay.

Provides a singleton RuntimeConfig class that allows dynamic adjustment of
chat routing parameters at runtime, without requiring service restart.

Usage:
    from config import runtime_config
    window = runtime_config.dedup_window_ms
    runtime_config.update(typing_cap_ms=1000, llm_temperature=0.5)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List
from threading import Lock

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "relay-local-dev-secret"

DEFAULT_WELCOME_MESSAGE = (
    "Hi there! I'm the eShop virtual assistant. Ask me about shipping, returns, "
    "payments or discounts, or ask for a human agent at any time."
)


def _env_bool(key: str, default: str) -> bool:
    return os.environ.get(key, default).strip().lower() == "true"


def _first_env(*keys: str, default: str) -> str:
    """Return the first non-empty environment value from keys, else default."""
    for key in keys:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return default


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for runtime-adjustable parameters.

    All values have defaults from environment variables, but can be
    changed at runtime via the update() method.
    """

    # Environment mode - controls security behavior (development, staging, production)
    relay_env: str = field(default_factory=lambda: os.environ.get("RELAY_ENV", "development"))

    # Credentials
    jwt_secret: str = field(
        default_factory=lambda: _first_env("RELAY_JWT_SECRET", "JWT_SECRET", default=DEFAULT_JWT_SECRET)
    )
    jwt_algorithm: str = field(default_factory=lambda: os.environ.get("RELAY_JWT_ALGORITHM", "HS256"))

    # Comma-separated list of allowed browser origins
    cors_origins: str = field(
        default_factory=lambda: os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    )

    # Text oracle (any OpenAI-compatible endpoint)
    llm_enabled: bool = field(default_factory=lambda: _env_bool("LLM_ENABLED", "true"))
    llm_base_url: str = field(
        default_factory=lambda: _first_env("LLM_BASE_URL", "OPENAI_BASE_URL", default="http://localhost:8081/v1")
    )
    llm_api_key: str = field(default_factory=lambda: _first_env("LLM_API_KEY", "OPENAI_API_KEY", default="relay"))
    llm_model: str = field(default_factory=lambda: os.environ.get("LLM_MODEL", "gpt-4o-mini"))
    llm_temperature: float = field(default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.7")))
    llm_max_output_tokens: int = field(default_factory=lambda: int(os.environ.get("LLM_MAX_OUTPUT_TOKENS", "150")))
    llm_timeout_s: float = field(default_factory=lambda: float(os.environ.get("LLM_TIMEOUT_S", "10")))

    # Sentiment oracle - empty URL disables it (neutral sentiment)
    sentiment_url: str = field(default_factory=lambda: os.environ.get("SENTIMENT_URL", "").strip())
    sentiment_timeout_s: float = field(default_factory=lambda: float(os.environ.get("SENTIMENT_TIMEOUT_S", "3")))

    # Duplicate suppression
    dedup_window_ms: int = field(default_factory=lambda: int(os.environ.get("DEDUP_WINDOW_MS", "2000")))
    dedup_capacity: int = field(default_factory=lambda: int(os.environ.get("DEDUP_CAPACITY", "10")))

    # Simulated typing cadence
    typing_ms_per_char: int = field(default_factory=lambda: int(os.environ.get("TYPING_MS_PER_CHAR", "20")))
    typing_cap_ms: int = field(default_factory=lambda: int(os.environ.get("TYPING_CAP_MS", "1500")))

    # Bot prompt history
    prompt_context_turns: int = field(default_factory=lambda: int(os.environ.get("PROMPT_CONTEXT_TURNS", "10")))
    prompt_history_cap: int = field(default_factory=lambda: int(os.environ.get("PROMPT_HISTORY_CAP", "20")))

    # Escalation thresholds
    escalation_history_turns: int = field(
        default_factory=lambda: int(os.environ.get("ESCALATION_HISTORY_TURNS", "8"))
    )  # Prior turns before the long-conversation rule applies
    escalation_long_message_chars: int = field(
        default_factory=lambda: int(os.environ.get("ESCALATION_LONG_MESSAGE_CHARS", "100"))
    )
    escalation_long_message_count: int = field(
        default_factory=lambda: int(os.environ.get("ESCALATION_LONG_MESSAGE_COUNT", "3"))
    )
    emotion_score_threshold: float = field(
        default_factory=lambda: float(os.environ.get("EMOTION_SCORE_THRESHOLD", "-0.4"))
    )
    emotion_confidence_threshold: float = field(
        default_factory=lambda: float(os.environ.get("EMOTION_CONFIDENCE_THRESHOLD", "0.7"))
    )

    # Welcome message on customer join
    welcome_enabled: bool = field(default_factory=lambda: _env_bool("WELCOME_ENABLED", "true"))
    welcome_delay_ms: int = field(default_factory=lambda: int(os.environ.get("WELCOME_DELAY_MS", "1000")))
    welcome_message: str = field(
        default_factory=lambda: os.environ.get("WELCOME_MESSAGE", DEFAULT_WELCOME_MESSAGE)
    )

    # Handoff behavior
    deliver_bot_reply_after_handoff: bool = field(
        default_factory=lambda: _env_bool("DELIVER_BOT_REPLY_AFTER_HANDOFF", "true")
    )  # false drops a bot reply when an agent joined during the typing delay
    single_agent_assignment: bool = field(
        default_factory=lambda: _env_bool("SINGLE_AGENT_ASSIGNMENT", "false")
    )  # false keeps last-writer-wins on concurrent agent joins

    # Redis (rate limit counters)
    redis_enabled: bool = field(default_factory=lambda: _env_bool("REDIS_ENABLED", "true"))
    redis_url: str = field(default_factory=lambda: os.environ.get("REDIS_URL", "redis://localhost:6379/0"))

    # Rate limiting settings (per minute)
    rate_limit_ws_conn: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_WS_CONN", "30"))
    )  # WebSocket connections per IP
    rate_limit_ws_msg: int = field(
        default_factory=lambda: int(os.environ.get("RATE_LIMIT_WS_MSG", "30"))
    )  # Messages per connection

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "llm_temperature": (0.0, 2.0),
        "llm_max_output_tokens": (16, 4096),
        "llm_timeout_s": (1.0, 120.0),
        "sentiment_timeout_s": (0.5, 60.0),
        "dedup_window_ms": (0, 60000),
        "dedup_capacity": (1, 1000),
        "typing_ms_per_char": (0, 1000),
        "typing_cap_ms": (0, 10000),
        "prompt_context_turns": (1, 100),
        "prompt_history_cap": (2, 1000),
        "escalation_history_turns": (0, 1000),
        "escalation_long_message_chars": (1, 10000),
        "escalation_long_message_count": (1, 100),
        "emotion_score_threshold": (-1.0, 1.0),
        "emotion_confidence_threshold": (0.0, 1.0),
        "welcome_delay_ms": (0, 60000),
        "rate_limit_ws_conn": (1, 1000),
        "rate_limit_ws_msg": (1, 1000),
    }, repr=False, compare=False)

    @property
    def is_production(self) -> bool:
        return self.relay_env.strip().lower() == "production"

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update configuration values at runtime.

        Args:
            **kwargs: Key-value pairs to update (e.g., dedup_window_ms=1500)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key.startswith("_"):
                    ignored.append(key)
                    continue

                if hasattr(self, key):
                    if key == "llm_base_url" and isinstance(value, str):
                        cleaned = value.strip()
                        if not cleaned.startswith(("http://", "https://")):
                            ignored.append(key)
                            logger.warning(f"Config rejected invalid URL: {key}={value!r}")
                            continue
                        value = cleaned.rstrip("/")

                    # Validate numeric ranges
                    if key in self._VALIDATION_RANGES:
                        lo, hi = self._VALIDATION_RANGES[key]
                        if not (lo <= value <= hi):
                            ignored.append(key)
                            logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                            continue

                    old_value = getattr(self, key)
                    setattr(self, key, value)
                    updated.append(key)
                    logger.info(f"Config updated: {key} = {value} (was {old_value})")
                else:
                    ignored.append(key)
                    logger.warning(f"Config ignored unknown key: {key}")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored, "update_count": self._update_count}

    def get_cors_origins(self) -> List[str]:
        """Get list of allowed CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_llm_params(self) -> Dict[str, Any]:
        """Get LLM parameters for OpenAI API calls."""
        return {
            "temperature": self.llm_temperature,
            "max_tokens": self.llm_max_output_tokens,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Export current config as dict (excludes internal fields and secrets)."""
        from dataclasses import fields as dataclass_fields

        result = {}
        for field_info in dataclass_fields(self):
            if field_info.name.startswith("_") or field_info.name in {"jwt_secret", "llm_api_key"}:
                continue
            result[field_info.name] = getattr(self, field_info.name)
        return result

    def reset_to_defaults(self) -> Dict[str, Any]:
        """Reset all values to environment defaults."""
        defaults = RuntimeConfig()
        changes = {}

        with self._lock:
            for key in self.to_dict().keys():
                old_value = getattr(self, key)
                new_value = getattr(defaults, key)
                if old_value != new_value:
                    setattr(self, key, new_value)
                    changes[key] = {"old": old_value, "new": new_value}
                    logger.info(f"Config reset: {key} = {new_value}")

            self._update_count += 1

        return {"reset": True, "changes": changes, "update_count": self._update_count}


# Singleton instance
runtime_config = RuntimeConfig()


def get_config() -> RuntimeConfig:
    """Get the singleton config instance."""
    return runtime_config
