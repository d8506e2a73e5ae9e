"""
Relay Response Generator - bot reply text

Calls the text oracle with a fixed eShop persona and a rolling per-customer
prompt history. Whenever the oracle is disabled, fails or times out, the
reply comes from a keyword table, else a random generic acknowledgment.
The customer always gets some text back.
"""

import asyncio
import logging
import random
from collections import deque
from typing import Deque, Dict, List, Optional

from config import runtime_config
from errors import OracleFailure
from services.llm_client import LLMClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful, friendly customer support assistant for an e-commerce store called eShop.
Your goal is to assist customers with their inquiries about products, orders, shipping, returns, and other related topics.
Be concise, accurate, and friendly in your responses.

Here are some facts about eShop:
- We offer free shipping on orders over $50
- Our return policy allows returns within 30 days of purchase
- We accept all major credit cards, PayPal, and Apple Pay
- Standard shipping takes 3-5 business days
- Express shipping takes 1-2 business days
- New customers can use code "WELCOME10" for 10% off their first purchase
- Our customer service hours are Monday-Friday, 9am-6pm EST

If you don't know the answer to a question, acknowledge that and offer to connect the customer with a human representative."""

EMPTY_MESSAGE_REPLY = "I'm here to help! Feel free to ask any questions about our products or services."

# Sent as a customer turn to get a personalized welcome
WELCOME_PROMPT = "I'm a new customer just browsing the site"

# First entry whose keyword is a substring of the lowercased message wins
KEYWORD_RESPONSES = [
    (
        ["hello", "hi", "hey", "greetings"],
        "Hello! Welcome to eShop customer support. How can I help you today?",
    ),
    (
        ["shipping", "delivery", "ship", "deliver", "when", "arrive"],
        "We typically process and ship orders within 1-2 business days. Standard shipping takes 3-5 "
        "business days, while express shipping takes 1-2 business days.",
    ),
    (
        ["return", "refund", "exchange", "money back", "policy"],
        "Our return policy allows returns within 30 days of purchase. Please ensure the item is in its "
        "original packaging. You can initiate a return from your order history page.",
    ),
    (
        ["payment", "pay", "credit card", "paypal", "payment methods", "visa", "mastercard", "debit"],
        "We accept all major credit cards (Visa, MasterCard, American Express), PayPal, and bank "
        "transfers. All payments are securely processed.",
    ),
    (
        ["discount", "coupon", "promo", "code", "sale", "offer"],
        "You can apply discount codes during checkout. Join our newsletter for exclusive offers and "
        'promotions! Use code "WELCOME10" for 10% off your first purchase.',
    ),
    (
        ["thank", "thanks", "appreciate", "helpful"],
        "You're welcome! Is there anything else I can help you with today?",
    ),
    (
        ["goodbye", "bye", "see you", "talk later", "end chat"],
        "Thank you for chatting with us! Feel free to reach out anytime you need assistance. Have a great day!",
    ),
]

GENERIC_RESPONSES = [
    "I'm not sure I understand your question. Could you please provide more details?",
    "I'd like to help you with that. Could you please elaborate more on your inquiry?",
    "I apologize, but I didn't quite catch that. Could you rephrase your question?",
    "For this specific query, I'll need to connect you with one of our customer service representatives. "
    "They'll be with you shortly.",
    "Thank you for your patience. Let me look into this for you. In the meantime, can you provide more "
    "information about your question?",
]


class ResponseGenerator:
    """Produces bot replies from the text oracle or the deterministic fallback.

    Args:
        llm_client: Text oracle, or None to always use the fallback
        rng: Random source for the generic pool (injectable for tests)
        context_turns: Prompt history turns sent with each request
        history_cap: Prompt history turns retained per conversation
        timeout: Seconds before an oracle call counts as failed
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        system_prompt: str = SYSTEM_PROMPT,
        rng: Optional[random.Random] = None,
        context_turns: Optional[int] = None,
        history_cap: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.llm_client = llm_client
        self.system_prompt = system_prompt
        self._rng = rng or random.Random()
        self.context_turns = context_turns if context_turns is not None else runtime_config.prompt_context_turns
        self.history_cap = history_cap if history_cap is not None else runtime_config.prompt_history_cap
        self.timeout = timeout if timeout is not None else runtime_config.llm_timeout_s
        self._contexts: Dict[str, Deque[Dict[str, str]]] = {}

    @property
    def available(self) -> bool:
        """Whether the text oracle is configured at all."""
        return self.llm_client is not None

    def prompt_history(self, conversation_id: str) -> List[Dict[str, str]]:
        return list(self._contexts.get(conversation_id, ()))

    def clear_context(self, conversation_id: str) -> None:
        """Drop the rolling prompt history; stored chat history is untouched."""
        self._contexts.pop(conversation_id, None)

    async def generate(self, message: str, conversation_id: str) -> str:
        """Reply to one customer message."""
        if not message or not message.strip():
            return EMPTY_MESSAGE_REPLY
        reply = await self._ask_oracle(message, conversation_id)
        if reply is None:
            return self.fallback_response(message)
        return reply

    async def welcome(self, conversation_id: str, default: str) -> str:
        """Personalized greeting for a customer who just joined.

        The exchange is dropped from the prompt history afterwards, and
        ``default`` is used whenever the text oracle does not answer.
        """
        try:
            reply = await self._ask_oracle(WELCOME_PROMPT, conversation_id)
        finally:
            self.clear_context(conversation_id)
        return reply or default

    async def _ask_oracle(self, message: str, conversation_id: str) -> Optional[str]:
        """Oracle reply recorded in the prompt history, or None on failure."""
        if self.llm_client is None:
            return None

        context = self._contexts.get(conversation_id)
        if context is None:
            context = deque(maxlen=self.history_cap)
            self._contexts[conversation_id] = context
        prior = list(context)[-self.context_turns:]
        context.append({"role": "user", "content": message})

        try:
            reply = await asyncio.wait_for(
                self.llm_client.complete(
                    self.system_prompt,
                    prior,
                    message,
                    options=runtime_config.get_llm_params(),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Text oracle timed out after {self.timeout}s, using fallback (conversation={conversation_id})")
            return None
        except OracleFailure as e:
            logger.warning(f"Text oracle failed, using fallback (conversation={conversation_id}): {e}")
            return None

        reply = reply.strip()
        context.append({"role": "assistant", "content": reply})
        return reply

    def fallback_response(self, message: str) -> str:
        """Keyword table first, then a random generic acknowledgment."""
        if not message or not message.strip():
            return EMPTY_MESSAGE_REPLY
        lowered = message.lower()
        for keywords, response in KEYWORD_RESPONSES:
            if any(keyword in lowered for keyword in keywords):
                return response
        return self._rng.choice(GENERIC_RESPONSES)
