"""
Relay Conversation Store - per-customer conversation state

In-memory, process-wide store keyed by customer id. Owns every Conversation
and Message plus the per-customer dedup window. All mutation happens on the
single event loop thread, so no locking is used.
"""

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Tuple

from config import runtime_config

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    """Who is handling a conversation."""

    BOT_HANDLED = "bot_handled"
    ESCALATING = "escalating"  # handed off, waiting for an agent
    HUMAN_HANDLED = "human_handled"


class Author(str, Enum):
    CUSTOMER = "customer"
    BOT = "bot"
    STAFF = "staff"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """A single chat message. Immutable once created."""

    customer_id: str
    author: Author
    content: str
    timestamp: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    username: Optional[str] = None
    is_automatic: bool = False
    is_handoff: bool = False
    is_system: bool = False

    @property
    def is_customer(self) -> bool:
        return self.author == Author.CUSTOMER

    def to_event(self) -> Dict:
        """Serialize as a ``receive_message`` payload."""
        payload = {
            "id": self.id,
            "userId": self.customer_id,
            "message": self.content,
            "author": self.author.value,
            "isCustomer": self.is_customer,
            "isAutomatic": self.is_automatic,
            "isHandoff": self.is_handoff,
            "isSystem": self.is_system,
            "timestamp": datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat(),
        }
        if self.username:
            payload["username"] = self.username
        return payload


@dataclass
class Conversation:
    """Conversation state for one customer.

    Attributes:
        customer_id: Stable customer identifier
        created_at: Creation time (clock seconds)
        messages: Append-only message history in insertion order
        state: Bot, escalating or human handled
        agent_name: Display name of the assigned agent, if any
        agent_connection_id: Connection that claimed the conversation, if any
    """

    customer_id: str
    created_at: float
    messages: List[Message] = field(default_factory=list)
    state: ConversationState = ConversationState.BOT_HANDLED
    agent_name: Optional[str] = None
    agent_connection_id: Optional[str] = None

    @property
    def has_human_agent(self) -> bool:
        return self.state == ConversationState.HUMAN_HANDLED


class DedupWindow:
    """Bounded ring of recently delivered ``(author, content, timestamp_ms)`` entries.

    Text only matches text from the same side of the conversation.
    """

    def __init__(self, window_ms: int, capacity: int):
        self.window_ms = window_ms
        self._entries: Deque[Tuple[Author, str, float]] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def contains(self, author: Author, content: str, now_ms: float) -> bool:
        return any(
            who == author and text == content and now_ms - ts < self.window_ms
            for who, text, ts in self._entries
        )

    def record(self, author: Author, content: str, now_ms: float) -> None:
        self._entries.append((author, content, now_ms))


class ConversationStore:
    """Process-wide conversation state keyed by customer id.

    Args:
        clock: Returns the current time in seconds (injectable for tests)
        dedup_window_ms: Duplicate suppression interval (defaults from config)
        dedup_capacity: Entries kept per customer (defaults from config)
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        dedup_window_ms: Optional[int] = None,
        dedup_capacity: Optional[int] = None,
    ):
        self._clock = clock
        self._dedup_window_ms = dedup_window_ms if dedup_window_ms is not None else runtime_config.dedup_window_ms
        self._dedup_capacity = dedup_capacity if dedup_capacity is not None else runtime_config.dedup_capacity
        self._conversations: Dict[str, Conversation] = {}
        self._dedup: Dict[str, DedupWindow] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, customer_id: str) -> bool:
        return customer_id in self._conversations

    def now(self) -> float:
        return self._clock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def get(self, customer_id: str) -> Optional[Conversation]:
        return self._conversations.get(customer_id)

    def get_or_create(self, customer_id: str) -> Conversation:
        conversation = self._conversations.get(customer_id)
        if conversation is None:
            conversation = Conversation(customer_id=customer_id, created_at=self._clock())
            self._conversations[customer_id] = conversation
            logger.debug(f"Conversation created for customer {customer_id}")
        return conversation

    def clear(self, customer_id: str) -> bool:
        """Erase a conversation entirely: history, agent state and dedup window.

        Returns:
            True if a conversation existed
        """
        self._dedup.pop(customer_id, None)
        existed = self._conversations.pop(customer_id, None) is not None
        if existed:
            logger.info(f"Conversation cleared for customer {customer_id}")
        return existed

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def create_message(self, customer_id: str, author: Author, content: str, **flags) -> Message:
        """Build a Message stamped with the store clock (not yet stored)."""
        if flags.get("id") is None:
            flags.pop("id", None)
        return Message(customer_id=customer_id, author=author, content=content, timestamp=self._clock(), **flags)

    def append(self, message: Message) -> Message:
        self.get_or_create(message.customer_id).messages.append(message)
        return message

    def history(self, customer_id: str) -> List[Message]:
        """Snapshot of the stored messages, oldest first."""
        conversation = self._conversations.get(customer_id)
        return list(conversation.messages) if conversation else []

    # -------------------------------------------------------------------------
    # Human agent state
    # -------------------------------------------------------------------------

    def state(self, customer_id: str) -> ConversationState:
        conversation = self._conversations.get(customer_id)
        return conversation.state if conversation else ConversationState.BOT_HANDLED

    def has_human_agent(self, customer_id: str) -> bool:
        return self.state(customer_id) == ConversationState.HUMAN_HANDLED

    def mark_escalating(self, customer_id: str) -> None:
        """Record a bot-to-human handoff that no agent has picked up yet."""
        conversation = self.get_or_create(customer_id)
        if conversation.state == ConversationState.BOT_HANDLED:
            conversation.state = ConversationState.ESCALATING

    def resume_bot(self, customer_id: str) -> None:
        """Hand a waiting conversation back to the bot; an assigned agent is kept."""
        conversation = self._conversations.get(customer_id)
        if conversation is not None and conversation.state == ConversationState.ESCALATING:
            conversation.state = ConversationState.BOT_HANDLED

    def assign_agent(self, customer_id: str, agent_name: Optional[str], connection_id: Optional[str]) -> Conversation:
        """Mark the conversation human handled. Last writer wins."""
        conversation = self.get_or_create(customer_id)
        conversation.state = ConversationState.HUMAN_HANDLED
        conversation.agent_name = agent_name
        conversation.agent_connection_id = connection_id
        return conversation

    def release_agent(self, customer_id: str) -> Optional[str]:
        """Return the conversation to the bot, keeping history.

        Returns:
            The name of the agent that was assigned, if any
        """
        conversation = self._conversations.get(customer_id)
        if conversation is None:
            return None
        agent_name = conversation.agent_name
        conversation.state = ConversationState.BOT_HANDLED
        conversation.agent_name = None
        conversation.agent_connection_id = None
        return agent_name

    # -------------------------------------------------------------------------
    # Dedup window
    # -------------------------------------------------------------------------

    def is_duplicate(self, customer_id: str, content: str, author: Author = Author.CUSTOMER) -> bool:
        """True if the same author sent the same text for this customer within the window.

        Known false positive: a customer legitimately repeating a short reply
        inside the window is dropped too.
        """
        window = self._dedup.get(customer_id)
        if window is None:
            return False
        return window.contains(author, content, self._clock() * 1000)

    def record_delivery(self, customer_id: str, content: str, author: Author = Author.CUSTOMER) -> None:
        window = self._dedup.get(customer_id)
        if window is None:
            window = DedupWindow(self._dedup_window_ms, self._dedup_capacity)
            self._dedup[customer_id] = window
        window.record(author, content, self._clock() * 1000)

    def stats(self) -> Dict[str, int]:
        counts = {state.value: 0 for state in ConversationState}
        for conversation in self._conversations.values():
            counts[conversation.state.value] += 1
        return {"conversations": len(self._conversations), **counts}
