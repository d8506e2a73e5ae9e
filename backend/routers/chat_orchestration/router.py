"""
Relay Chat Router - real-time session orchestration

Binds connections to conversation rooms, enforces role-based authorization,
runs the escalation policy on customer messages and either schedules a bot
reply or hands the conversation to the staff pool.

All handlers run on the single event loop. A bot reply (typing indicator,
oracle call, typing delay, delivery) runs as a tracked background task so
the sender's connection keeps processing events meanwhile.

Handler failures never escape: handle_event_errors turns them into an
``error`` event for the calling connection only.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from config import RuntimeConfig, runtime_config
from errors import (
    AuthorizationError,
    ErrorCode,
    ValidationError,
    error_event,
    handle_event_errors,
    log_error,
)
from logging_config import log_handoff, log_message_in, log_message_out

from . import schemas
from .conversation_store import Author, ConversationStore
from .escalation import EscalationDecision, EscalationPolicy
from .presence import STAFF_ROOM, Connection, ConnectionHub, customer_room
from .responder import ResponseGenerator

logger = logging.getLogger(__name__)

HANDOFF_NOTICE = (
    "I notice you might be experiencing some frustration. I'm connecting you with a customer service "
    "representative who will be with you shortly to help resolve your concern."
)

DEFAULT_AGENT_NAME = "Customer Support"


def departure_notice(agent_name: Optional[str]) -> str:
    return (
        f"{agent_name or 'Customer support'} has left the chat. Our virtual assistant will keep helping "
        "you, and another representative will assist you if needed."
    )


def _require_customer_id(customer_id: str) -> str:
    if not customer_id or customer_id == "undefined":
        raise ValidationError(
            "Invalid customer id",
            code=ErrorCode.VALIDATION_INVALID_ID,
            parameter="customerId",
            received=customer_id,
        )
    return customer_id


def _require_staff(conn: Connection, message: str, action: str) -> None:
    if not conn.identity.is_staff:
        raise AuthorizationError(
            message,
            code=ErrorCode.AUTHZ_STAFF_ONLY,
            action=action,
            role=conn.identity.role.value,
        )


class ChatRouter:
    """Real-time session orchestrator.

    Args:
        store: Conversation state
        policy: Bot-vs-human decision
        responder: Bot reply text
        hub: Room membership and fan-out
        config: Runtime settings (typing cadence, welcome, handoff options)
        sleep: Awaitable delay, injectable for tests
    """

    def __init__(
        self,
        store: ConversationStore,
        policy: EscalationPolicy,
        responder: ResponseGenerator,
        hub: ConnectionHub,
        config: RuntimeConfig = runtime_config,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.policy = policy
        self.responder = responder
        self.hub = hub
        self.config = config
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Callable[[Connection, Any], Awaitable[Any]]] = {
            schemas.JOIN_CHAT: self.join_chat,
            schemas.JOIN_CHAT_AS_AGENT: self.join_as_agent,
            schemas.HUMAN_JOINED: self.announce_agent,
            schemas.SEND_MESSAGE: self.send_message,
            schemas.END_SESSION: self.end_session,
            schemas.LEAVE_CHAT: self.leave_chat,
            schemas.CLEAR_CHAT: self.clear_conversation,
        }

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def dispatch(self, conn: Connection, event: str, data: Any) -> None:
        """Route one inbound event to its handler."""
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event {event!r} from {conn.connection_id}")
            error = ValidationError("Unknown event", code=ErrorCode.VALIDATION_UNKNOWN_EVENT, received=str(event))
            await conn.send(schemas.ERROR, error_event(error, event=str(event)))
            return
        await handler(conn, data)

    # -------------------------------------------------------------------------
    # Joining
    # -------------------------------------------------------------------------

    @handle_event_errors(schemas.JOIN_CHAT)
    async def join_chat(self, conn: Connection, data: Any) -> None:
        """Subscribe to a customer room and reset the bot's prompt context.

        Customers may only join their own room; staff may join any.
        """
        payload = schemas.parse_payload(schemas.CustomerPayload, data)
        customer_id = payload.customer_id
        identity = conn.identity

        if identity.is_customer and identity.user_id != customer_id:
            raise AuthorizationError("Unauthorized access", action=schemas.JOIN_CHAT, role=identity.role.value)
        _require_customer_id(customer_id)

        self.hub.join(conn, customer_room(customer_id))
        self.store.get_or_create(customer_id)
        self.responder.clear_context(customer_id)
        logger.info(f"{identity.role.value} {identity.user_id} joined chat {customer_id}")

        if identity.is_customer and self.config.welcome_enabled:
            self._spawn(self._send_welcome(customer_id), name=f"welcome_{customer_id}")

    @handle_event_errors(schemas.JOIN_CHAT_AS_AGENT)
    async def join_as_agent(self, conn: Connection, data: Any) -> None:
        """Claim a customer's conversation for a staff connection, disabling the bot."""
        _require_staff(conn, "Unauthorized: Only support staff can join as agents", schemas.JOIN_CHAT_AS_AGENT)
        payload = schemas.parse_payload(schemas.AgentPayload, data)
        customer_id = _require_customer_id(payload.customer_id)
        agent_name = payload.agent_name or conn.identity.username or DEFAULT_AGENT_NAME

        conversation = self.store.get(customer_id)
        if (
            self.config.single_agent_assignment
            and conversation is not None
            and conversation.has_human_agent
            and conversation.agent_connection_id not in (None, conn.connection_id)
        ):
            raise AuthorizationError(
                "Conversation is already handled by another agent",
                code=ErrorCode.AUTHZ_ALREADY_ASSIGNED,
                action=schemas.JOIN_CHAT_AS_AGENT,
                agent=conversation.agent_name,
            )

        # A connection handles one customer at a time
        if conn.agent_for and conn.agent_for != customer_id:
            self._drop_claim(conn, conn.agent_for)

        self.hub.join(conn, customer_room(customer_id))
        conn.agent_for = customer_id
        conn.agent_name = agent_name
        self.store.assign_agent(customer_id, agent_name, conn.connection_id)
        log_handoff(logger, customer_id, "agent_joined", agent=agent_name)

        await conn.send(
            schemas.JOIN_CONFIRMATION,
            {"customerId": customer_id, "message": f"You have joined the chat with customer {customer_id}"},
        )

    @handle_event_errors(schemas.HUMAN_JOINED)
    async def announce_agent(self, conn: Connection, data: Any) -> None:
        """Tell the customer a human agent has joined."""
        _require_staff(conn, "Unauthorized: Only support staff can join chats", schemas.HUMAN_JOINED)
        payload = schemas.parse_payload(schemas.AgentPayload, data)
        customer_id = _require_customer_id(payload.customer_id)

        await self.hub.broadcast(
            customer_room(customer_id),
            schemas.HUMAN_JOINED,
            {"customerId": customer_id, "agentName": payload.agent_name or DEFAULT_AGENT_NAME},
        )

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    @handle_event_errors(schemas.SEND_MESSAGE)
    async def send_message(self, conn: Connection, data: Any) -> None:
        """Store and route one chat message."""
        payload = schemas.parse_payload(schemas.SendMessagePayload, data)
        identity = conn.identity

        # Authorship comes from the authenticated role, never from the payload flag
        is_customer = identity.is_customer
        if payload.is_customer is not None and payload.is_customer != is_customer:
            logger.debug(f"Ignoring isCustomer={payload.is_customer} from {identity.role.value} {identity.user_id}")

        customer_id = _require_customer_id(payload.customer_id)
        text = payload.message
        author = Author.CUSTOMER if is_customer else Author.STAFF

        if self.store.is_duplicate(customer_id, text, author):
            logger.info(f"Duplicate message dropped for customer {customer_id}")
            return

        if is_customer and identity.user_id != customer_id:
            raise AuthorizationError(
                "Unauthorized: Cannot send messages on behalf of other users",
                action=schemas.SEND_MESSAGE,
                role=identity.role.value,
            )
        if not is_customer and not identity.is_staff:
            raise AuthorizationError(
                "Unauthorized: Only staff can send support messages",
                code=ErrorCode.AUTHZ_STAFF_ONLY,
                action=schemas.SEND_MESSAGE,
                role=identity.role.value,
            )

        self.store.record_delivery(customer_id, text, author)

        if not is_customer:
            await self._deliver_staff_message(conn, customer_id, text, payload)
            return

        message = self.store.append(
            self.store.create_message(
                customer_id,
                Author.CUSTOMER,
                text,
                id=payload.id,
                username=payload.username or identity.username,
            )
        )
        log_message_in(logger, text, customer=customer_id)

        has_human = self.store.has_human_agent(customer_id)
        decision: Optional[EscalationDecision] = None
        if not has_human:
            history = self.store.history(customer_id)
            decision = await self.policy.evaluate(text, customer_id, history, is_customer=True)

        if has_human or not decision.use_bot:
            await self.hub.broadcast(STAFF_ROOM, schemas.RECEIVE_MESSAGE, message.to_event())

        if has_human:
            return

        if decision.use_bot:
            self.store.resume_bot(customer_id)
            self._spawn(self._bot_reply(customer_id, text), name=f"bot_reply_{customer_id}")
        else:
            await self._hand_off(customer_id, text, decision)

    async def _deliver_staff_message(self, conn: Connection, customer_id: str, text: str, payload) -> None:
        message = self.store.append(
            self.store.create_message(
                customer_id,
                Author.STAFF,
                text,
                id=payload.id,
                username=payload.username or conn.identity.username,
            )
        )
        # Room members plus every customer tab, in case a tab has not joined the room yet
        targets = self.hub.members(customer_room(customer_id)) + self.hub.connections_for_customer(customer_id)
        await self.hub.send_to(targets, schemas.RECEIVE_MESSAGE, message.to_event())
        log_message_out(logger, Author.STAFF.value, customer_id)

    async def _hand_off(self, customer_id: str, text: str, decision: EscalationDecision) -> None:
        self.store.mark_escalating(customer_id)
        log_handoff(logger, customer_id, "escalated", reason=decision.reason.value)

        await self.hub.broadcast(
            STAFF_ROOM,
            schemas.HUMAN_NEEDED,
            {"customerId": customer_id, "message": text, "reason": decision.description},
        )
        notice = self.store.append(
            self.store.create_message(customer_id, Author.BOT, HANDOFF_NOTICE, is_automatic=True, is_handoff=True)
        )
        await self.hub.broadcast(customer_room(customer_id), schemas.RECEIVE_MESSAGE, notice.to_event())

    def typing_delay(self, reply: str) -> float:
        """Simulated typing time in seconds."""
        delay_ms = min(len(reply) * self.config.typing_ms_per_char, self.config.typing_cap_ms)
        return delay_ms / 1000

    async def _bot_reply(self, customer_id: str, text: str) -> None:
        room = customer_room(customer_id)
        await self.hub.broadcast(room, schemas.TYPING_INDICATOR, {"isTyping": True})

        try:
            reply = await self.responder.generate(text, customer_id)
        except Exception as e:
            log_error(logger, e, context=f"Bot reply {customer_id}")
            reply = self.responder.fallback_response(text)

        await self._sleep(self.typing_delay(reply))
        await self.hub.broadcast(room, schemas.TYPING_INDICATOR, {"isTyping": False})

        if not self.config.deliver_bot_reply_after_handoff and self.store.has_human_agent(customer_id):
            logger.info(f"Bot reply dropped, agent joined customer {customer_id} during typing")
            return

        message = self.store.append(self.store.create_message(customer_id, Author.BOT, reply, is_automatic=True))
        await self.hub.broadcast(room, schemas.RECEIVE_MESSAGE, message.to_event())
        log_message_out(logger, Author.BOT.value, customer_id)

    async def _send_welcome(self, customer_id: str) -> None:
        try:
            text = await self.responder.welcome(customer_id, default=self.config.welcome_message)
        except Exception as e:
            log_error(logger, e, context=f"Welcome {customer_id}")
            text = self.config.welcome_message

        await self._sleep(self.config.welcome_delay_ms / 1000)
        message = self.store.append(self.store.create_message(customer_id, Author.BOT, text, is_automatic=True))
        await self.hub.broadcast(customer_room(customer_id), schemas.RECEIVE_MESSAGE, message.to_event())

    # -------------------------------------------------------------------------
    # Leaving
    # -------------------------------------------------------------------------

    @handle_event_errors(schemas.END_SESSION)
    async def end_session(self, conn: Connection, data: Any) -> None:
        """Hand the conversation back to the bot, telling the customer."""
        _require_staff(conn, "Unauthorized: Only support staff can end sessions", schemas.END_SESSION)
        payload = schemas.parse_payload(schemas.AgentPayload, data)
        customer_id = _require_customer_id(payload.customer_id)
        agent_name = payload.agent_name or conn.agent_name

        await self._announce_departure(customer_id, agent_name, "Agent ended the session")
        self._drop_claim(conn, customer_id)

    @handle_event_errors(schemas.LEAVE_CHAT)
    async def leave_chat(self, conn: Connection, data: Any) -> None:
        """Silent departure: the customer is not notified."""
        _require_staff(conn, "Unauthorized: Only support staff can leave chats", schemas.LEAVE_CHAT)
        payload = schemas.parse_payload(schemas.CustomerPayload, data)
        customer_id = _require_customer_id(payload.customer_id)

        self.store.release_agent(customer_id)
        self._drop_claim(conn, customer_id)
        log_handoff(logger, customer_id, "agent_left", silent=True)

    @handle_event_errors(schemas.CLEAR_CHAT)
    async def clear_conversation(self, conn: Connection, data: Any) -> None:
        """Erase a conversation: history, dedup window, agent state and bot context."""
        payload = schemas.parse_payload(schemas.CustomerPayload, data)
        customer_id = payload.customer_id
        identity = conn.identity

        if identity.is_customer and identity.user_id != customer_id:
            raise AuthorizationError("Unauthorized access", action=schemas.CLEAR_CHAT, role=identity.role.value)
        _require_customer_id(customer_id)

        self.store.clear(customer_id)
        self.responder.clear_context(customer_id)

    async def disconnect(self, conn: Connection) -> None:
        """Forget a closed connection; an agent's customer gets a departure notice."""
        self.hub.unregister(conn)
        customer_id = conn.agent_for
        if customer_id:
            conn.agent_for = None
            await self._announce_departure(customer_id, conn.agent_name, "Agent disconnected")

    async def _announce_departure(self, customer_id: str, agent_name: Optional[str], reason: str) -> None:
        self.store.release_agent(customer_id)
        log_handoff(logger, customer_id, "agent_left", agent=agent_name, reason=reason)

        room = customer_room(customer_id)
        notice = self.store.append(
            self.store.create_message(customer_id, Author.SYSTEM, departure_notice(agent_name), is_system=True)
        )
        await self.hub.broadcast(room, schemas.RECEIVE_MESSAGE, notice.to_event())
        await self.hub.broadcast(
            room,
            schemas.STAFF_LEFT,
            {"customerId": customer_id, "reason": reason, "canContinue": True},
        )

    def _drop_claim(self, conn: Connection, customer_id: str) -> None:
        self.hub.leave(conn, customer_room(customer_id))
        if conn.agent_for == customer_id:
            conn.agent_for = None
            conn.agent_name = None

    # -------------------------------------------------------------------------
    # Background tasks
    # -------------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[None], name: str) -> asyncio.Task:
        task = asyncio.create_task(self._run_guarded(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_guarded(self, coro: Awaitable[None], name: str) -> None:
        try:
            await coro
        except Exception as e:
            log_error(logger, e, context=name)

    async def drain(self) -> None:
        """Wait until every scheduled bot reply and welcome message has been delivered."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding background work."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} pending chat task(s)")
