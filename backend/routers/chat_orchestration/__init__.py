"""
Relay Chat Orchestration - chat routing and handoff core

Components (leaf to root):
- ConversationStore: Per-customer history, agent state and dedup window
- EmotionDetector: Sentiment signals from the external oracle
- EscalationPolicy: Ordered bot-vs-human decision cascade
- ResponseGenerator: Bot reply text (LLM oracle with keyword fallback)
- PresenceGateway / ConnectionHub: Connection identity and room membership
- ChatRouter: Real-time event handlers tying it all together

Handoff lifecycle:
    BOT_HANDLED --(policy escalates)--> ESCALATING --(agent joins)--> HUMAN_HANDLED
    HUMAN_HANDLED --(end_session / leave_chat / agent disconnect)--> BOT_HANDLED

    An agent can also claim a conversation straight from BOT_HANDLED.
"""

from .conversation_store import (
    Author,
    Conversation,
    ConversationState,
    ConversationStore,
    Message,
)
from .emotion import EmotionDetector, EmotionResult
from .escalation import EscalationDecision, EscalationPolicy, EscalationReason
from .responder import ResponseGenerator
from .presence import (
    STAFF_ROOM,
    Connection,
    ConnectionHub,
    Handshake,
    Identity,
    PresenceGateway,
    Role,
    customer_room,
)
from .router import ChatRouter

__all__ = [
    "Author",
    "Conversation",
    "ConversationState",
    "ConversationStore",
    "Message",
    "EmotionDetector",
    "EmotionResult",
    "EscalationDecision",
    "EscalationPolicy",
    "EscalationReason",
    "ResponseGenerator",
    "STAFF_ROOM",
    "Connection",
    "ConnectionHub",
    "Handshake",
    "Identity",
    "PresenceGateway",
    "Role",
    "customer_room",
    "ChatRouter",
]
