"""
Shared pytest fixtures and helpers for the Relay chat core tests.

Everything here is in-process: fake connections record outbound frames,
a fake clock drives the dedup window, and typing delays resolve instantly.
"""

import asyncio
import os
from dataclasses import dataclass, field
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Keep tests off real infrastructure before any module reads the config
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("LLM_ENABLED", "false")
os.environ.setdefault("SENTIMENT_URL", "")

from config import RuntimeConfig  # noqa: E402
from errors import OracleFailure  # noqa: E402
from routers.chat_orchestration import (  # noqa: E402
    ChatRouter,
    Connection,
    ConnectionHub,
    ConversationStore,
    EmotionDetector,
    EscalationPolicy,
    Identity,
    ResponseGenerator,
    Role,
)
from services.auth_tokens import create_access_token  # noqa: E402
from services.sentiment_client import SentimentResult  # noqa: E402

TEST_SECRET = "relay-test-secret-0123456789abcdef"


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class FakeConnection(Connection):
    """Connection that records every frame it is sent."""

    def __init__(self, identity: Identity, connection_id: Optional[str] = None, fail: bool = False):
        super().__init__(identity, connection_id)
        self.frames: List[dict] = []
        self.fail = fail

    async def _transmit(self, frame: dict) -> None:
        if self.fail:
            raise ConnectionError("socket gone")
        self.frames.append(frame)

    def events(self, name: Optional[str] = None) -> List[dict]:
        """Payloads of received frames, optionally filtered by event name."""
        return [f["data"] for f in self.frames if name is None or f["event"] == name]

    def event_names(self) -> List[str]:
        return [f["event"] for f in self.frames]

    def clear(self) -> None:
        self.frames.clear()


def customer(user_id="42", username="alice", **kwargs) -> FakeConnection:
    return FakeConnection(Identity(str(user_id), username, Role.CUSTOMER), **kwargs)


def staff(user_id="7", username="bob", **kwargs) -> FakeConnection:
    return FakeConnection(Identity(str(user_id), username, Role.STAFF), **kwargs)


async def instant_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


def make_llm_client(reply: str = "Happy to help!", side_effect=None) -> MagicMock:
    """Mock LLMClient whose complete() returns a canned reply."""
    client = MagicMock()
    client.complete = AsyncMock(return_value=reply, side_effect=side_effect)
    return client


def make_sentiment_client(score: float = 0.0, needs_human: bool = False, confidence: float = 0.9, side_effect=None):
    """Mock SentimentClient whose classify() returns a fixed result."""
    client = MagicMock()
    result = SentimentResult(score=score, emotion="neutral", needsHuman=needs_human, confidence=confidence)
    client.classify = AsyncMock(return_value=result, side_effect=side_effect)
    return client


def make_config(**overrides) -> RuntimeConfig:
    config = RuntimeConfig()
    config.update(**{"welcome_enabled": False, **overrides})
    return config


@dataclass
class ChatHarness:
    router: ChatRouter
    store: ConversationStore
    hub: ConnectionHub
    responder: ResponseGenerator
    policy: EscalationPolicy
    clock: FakeClock
    config: RuntimeConfig
    connections: List[FakeConnection] = field(default_factory=list)

    def connect(self, conn: FakeConnection) -> FakeConnection:
        """Register a connection the way PresenceGateway.attach does."""
        self.hub.register(conn)
        if conn.identity.is_staff:
            self.hub.join(conn, "staff")
        self.connections.append(conn)
        return conn

    async def send(self, conn: FakeConnection, customer_id, message: str, **extra) -> None:
        await self.router.dispatch(conn, "send_message", {"customerId": customer_id, "message": message, **extra})


def make_harness(
    llm_client=None,
    sentiment_client=None,
    rng=None,
    **config_overrides,
) -> ChatHarness:
    """Wire a chat core with fakes. Typing and welcome delays resolve instantly."""
    clock = FakeClock()
    config = make_config(**config_overrides)
    store = ConversationStore(clock=clock, dedup_window_ms=config.dedup_window_ms, dedup_capacity=config.dedup_capacity)
    hub = ConnectionHub()
    responder = ResponseGenerator(llm_client, rng=rng, timeout=config.llm_timeout_s)
    emotion = EmotionDetector(sentiment_client, score_threshold=-0.4, confidence_threshold=0.7)
    policy = EscalationPolicy(store, emotion, bot_available=lambda: responder.available)
    router = ChatRouter(store, policy, responder, hub, config=config, sleep=instant_sleep)
    return ChatHarness(router, store, hub, responder, policy, clock, config)


def token_for(user_id, username: str, role: str, **kwargs) -> str:
    return create_access_token(user_id, username, role, secret=TEST_SECRET, **kwargs)["token"]


@pytest.fixture
def harness():
    return make_harness()


@pytest.fixture
def failing_oracle():
    return make_llm_client(side_effect=OracleFailure("down", oracle="llm"))
