"""
Relay Escalation Policy - bot vs. human decision per customer message

Ordered cascade, first matching rule wins:

    1. Not from a customer              -> bot (bot logic never applies to staff text)
    2. Text oracle unavailable          -> bot (keyword fallback, never silence)
    3. Human agent already assigned     -> human
    4. Explicit human request phrase    -> human
    5. Escalation keyword stem          -> human
    6. Money amount AND refund terms    -> human
    7. Emotion detector says escalate   -> human
    8. Complex issue AND intensity      -> human
    9. Long conversation, long messages -> human
   10. Otherwise                        -> bot

Keyword lists live in escalation_keywords.py and are policy, not contract.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from config import runtime_config

from . import escalation_keywords as kw
from .conversation_store import ConversationStore, Message
from .emotion import EmotionDetector

logger = logging.getLogger(__name__)


class EscalationReason(str, Enum):
    NON_CUSTOMER = "non_customer"
    BOT_UNAVAILABLE = "bot_unavailable"
    HUMAN_ASSIGNED = "human_assigned"
    HUMAN_REQUESTED = "human_requested"
    ESCALATION_KEYWORD = "escalation_keyword"
    REFUND_AMOUNT = "refund_amount"
    NEGATIVE_EMOTION = "negative_emotion"
    COMPLEX_ISSUE = "complex_issue"
    LONG_CONVERSATION = "long_conversation"
    DEFAULT = "default"


# Shown to staff in human_needed events
REASON_DESCRIPTIONS = {
    EscalationReason.HUMAN_ASSIGNED: "Human agent already assigned",
    EscalationReason.HUMAN_REQUESTED: "Customer requested a human agent",
    EscalationReason.ESCALATION_KEYWORD: "Escalation keyword detected",
    EscalationReason.REFUND_AMOUNT: "Refund or payment issue involving an amount",
    EscalationReason.NEGATIVE_EMOTION: "Negative emotion detected",
    EscalationReason.COMPLEX_ISSUE: "Complex support issue",
    EscalationReason.LONG_CONVERSATION: "Long, complicated conversation",
}


@dataclass(frozen=True)
class EscalationDecision:
    use_bot: bool
    reason: EscalationReason

    @property
    def description(self) -> str:
        return REASON_DESCRIPTIONS.get(self.reason, self.reason.value)


def _contains_any(text: str, needles: Sequence[str]) -> bool:
    return any(needle in text for needle in needles)


class EscalationPolicy:
    """Stateless decision function over a message and its conversation context.

    Args:
        store: Conversation store, read for the human-agent flag
        emotion: Emotion detector used by the sentiment rule
        bot_available: Returns False when the text oracle is globally unavailable
    """

    def __init__(
        self,
        store: ConversationStore,
        emotion: EmotionDetector,
        bot_available: Callable[[], bool],
        history_turns: Optional[int] = None,
        long_message_chars: Optional[int] = None,
        long_message_count: Optional[int] = None,
    ):
        self.store = store
        self.emotion = emotion
        self.bot_available = bot_available
        self.history_turns = history_turns if history_turns is not None else runtime_config.escalation_history_turns
        self.long_message_chars = (
            long_message_chars if long_message_chars is not None else runtime_config.escalation_long_message_chars
        )
        self.long_message_count = (
            long_message_count if long_message_count is not None else runtime_config.escalation_long_message_count
        )

    async def evaluate(
        self,
        message: str,
        customer_id: str,
        history: Sequence[Message] = (),
        is_customer: bool = True,
    ) -> EscalationDecision:
        """Run the cascade.

        Args:
            message: Message text
            customer_id: Conversation the message belongs to
            history: Stored messages up to and including this one, oldest first
            is_customer: Whether the message was authored by the customer
        """
        if not is_customer:
            return EscalationDecision(True, EscalationReason.NON_CUSTOMER)

        if not self.bot_available():
            return EscalationDecision(True, EscalationReason.BOT_UNAVAILABLE)

        if self.store.has_human_agent(customer_id):
            return EscalationDecision(False, EscalationReason.HUMAN_ASSIGNED)

        text = (message or "").lower()

        if _contains_any(text, kw.HUMAN_REQUEST_PHRASES):
            return EscalationDecision(False, EscalationReason.HUMAN_REQUESTED)

        if _contains_any(text, kw.ESCALATION_KEYWORDS):
            return EscalationDecision(False, EscalationReason.ESCALATION_KEYWORD)

        if kw.MONEY_PATTERN.search(text) and kw.REFUND_TERMS_PATTERN.search(text):
            return EscalationDecision(False, EscalationReason.REFUND_AMOUNT)

        if await self.emotion.needs_human_intervention(message, history):
            return EscalationDecision(False, EscalationReason.NEGATIVE_EMOTION)

        if _contains_any(text, kw.COMPLEX_ISSUE_KEYWORDS) and _contains_any(text, kw.INTENSITY_MARKERS):
            return EscalationDecision(False, EscalationReason.COMPLEX_ISSUE)

        if self._is_long_conversation(message, history):
            return EscalationDecision(False, EscalationReason.LONG_CONVERSATION)

        return EscalationDecision(True, EscalationReason.DEFAULT)

    async def should_use_bot(
        self,
        message: str,
        customer_id: str,
        history: Sequence[Message] = (),
        is_customer: bool = True,
    ) -> bool:
        decision = await self.evaluate(message, customer_id, history, is_customer)
        return decision.use_bot

    def _is_long_conversation(self, message: str, history: Sequence[Message]) -> bool:
        prior = list(history)[:-1]
        if len(prior) <= self.history_turns or len(message or "") <= self.long_message_chars:
            return False
        long_messages = sum(1 for m in prior if m.is_customer and len(m.content) > self.long_message_chars)
        return long_messages >= self.long_message_count
