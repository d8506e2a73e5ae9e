"""
Tests for ChatRouter: event handlers, handoff lifecycle and delivery rules.

Strategy:
    - Wire the real chat core with fake connections (see conftest.make_harness)
    - The text oracle is an AsyncMock; typing delays resolve instantly
    - Background bot replies are awaited with router.drain()
"""

import asyncio

from errors import ErrorCode
from routers.chat_orchestration import ConversationState
from routers.chat_orchestration.responder import GENERIC_RESPONSES, KEYWORD_RESPONSES
from routers.chat_orchestration.router import HANDOFF_NOTICE, departure_notice

from conftest import customer, make_harness, make_llm_client, staff

GREETING_REPLY = KEYWORD_RESPONSES[0][1]


def _bot_messages(conn):
    return [m for m in conn.events("receive_message") if m["author"] == "bot"]


async def _join(h, conn, customer_id="42"):
    await h.router.dispatch(conn, "join_chat", customer_id)


async def _claim(h, agent, customer_id="42", agent_name=None):
    data = {"customerId": customer_id}
    if agent_name:
        data["agentName"] = agent_name
    await h.router.dispatch(agent, "join_chat_as_agent", data)


class TestJoinChat:
    """Test room subscription."""

    def test_customer_joins_own_room(self):
        h = make_harness()
        shopper = h.connect(customer())

        asyncio.run(_join(h, shopper))
        assert "user_42" in shopper.rooms
        assert "42" in h.store
        assert shopper.frames == []

    def test_customer_cannot_join_other_room(self):
        h = make_harness()
        shopper = h.connect(customer())

        asyncio.run(_join(h, shopper, "43"))
        assert "user_43" not in shopper.rooms
        assert shopper.events("error") == [
            {"message": "Unauthorized access", "code": "AUTHZ_FORBIDDEN", "event": "join_chat"}
        ]

    def test_staff_joins_any_room(self):
        h = make_harness()
        agent = h.connect(staff())

        asyncio.run(_join(h, agent, "43"))
        assert "user_43" in agent.rooms

    def test_undefined_id_rejected(self):
        h = make_harness()
        agent = h.connect(staff())

        asyncio.run(_join(h, agent, "undefined"))
        assert agent.events("error")[0]["code"] == ErrorCode.VALIDATION_INVALID_ID.value
        assert len(h.store) == 0

    def test_join_resets_prompt_context(self):
        """Rejoining starts a fresh bot context; stored history is kept."""
        h = make_harness(llm_client=make_llm_client("Sure!"))
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "do you sell jackets")
            await h.router.drain()
            assert h.responder.prompt_history("42")
            await _join(h, shopper)

        asyncio.run(scenario())
        assert h.responder.prompt_history("42") == []
        assert len(h.store.history("42")) == 2

    def test_welcome_message_for_customers(self):
        h = make_harness(welcome_enabled=True, welcome_message="Welcome to eShop!")
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await _join(h, agent)
            await h.router.drain()

        asyncio.run(scenario())
        welcome = shopper.events("receive_message")
        assert len(welcome) == 1
        assert welcome[0]["message"] == "Welcome to eShop!"
        assert welcome[0]["isAutomatic"] is True
        assert len(h.store.history("42")) == 1

    def test_welcome_disabled(self):
        h = make_harness(welcome_enabled=False)
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.router.drain()

        asyncio.run(scenario())
        assert shopper.frames == []

    def test_welcome_from_oracle(self):
        """The oracle writes the welcome and the exchange leaves no prompt context."""
        llm = make_llm_client("Hi Alice, looking for anything special today?")
        h = make_harness(llm_client=llm, welcome_enabled=True, welcome_message="Welcome to eShop!")
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.router.drain()

        asyncio.run(scenario())
        assert [m["message"] for m in shopper.events("receive_message")] == [
            "Hi Alice, looking for anything special today?"
        ]
        assert h.responder.prompt_history("42") == []
        llm.complete.assert_awaited_once()

    def test_welcome_falls_back_to_configured_text(self, failing_oracle):
        h = make_harness(llm_client=failing_oracle, welcome_enabled=True, welcome_message="Welcome to eShop!")
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.router.drain()

        asyncio.run(scenario())
        assert [m["message"] for m in shopper.events("receive_message")] == ["Welcome to eShop!"]
        assert h.responder.prompt_history("42") == []


class TestBotReply:
    """Test the bot path of send_message."""

    def test_hello_scenario(self):
        """Typing on, typing off, then the bot reply, to the customer room only."""
        llm = make_llm_client("Hello! How can I help you today?")
        h = make_harness(llm_client=llm)
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(scenario())
        assert shopper.event_names() == ["typing_indicator", "typing_indicator", "receive_message"]
        assert shopper.events("typing_indicator") == [{"isTyping": True}, {"isTyping": False}]
        reply = shopper.events("receive_message")[0]
        assert reply["message"] == "Hello! How can I help you today?"
        assert reply["author"] == "bot"
        assert reply["isAutomatic"] is True
        assert reply["isCustomer"] is False

        # Staff do not see bot-handled traffic
        assert agent.frames == []
        assert [m.author.value for m in h.store.history("42")] == ["customer", "bot"]
        assert h.store.state("42") == ConversationState.BOT_HANDLED

    def test_bot_unavailable_uses_fallback(self):
        """Without a text oracle even a human request gets a fallback reply."""
        h = make_harness()
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "I want to speak to a human")
            await h.router.drain()

        asyncio.run(scenario())
        assert _bot_messages(shopper)[0]["message"] in GENERIC_RESPONSES
        assert agent.events("human_needed") == []

    def test_oracle_crash_still_replies(self):
        """An unexpected responder error falls back to the keyword table."""
        h = make_harness(llm_client=make_llm_client(side_effect=RuntimeError("bug")))
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(scenario())
        assert _bot_messages(shopper)[0]["message"] == GREETING_REPLY
        assert shopper.events("typing_indicator")[-1] == {"isTyping": False}

    def test_typing_delay(self):
        h = make_harness(typing_ms_per_char=20, typing_cap_ms=1500)
        assert h.router.typing_delay("x" * 10) == 0.2
        assert h.router.typing_delay("x" * 500) == 1.5

    def test_sleep_receives_typing_delay(self):
        """The injected sleep is awaited with the computed typing delay."""
        llm = make_llm_client("x" * 10)
        h = make_harness(llm_client=llm)
        delays = []

        async def recording_sleep(seconds):
            delays.append(seconds)

        h.router._sleep = recording_sleep
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(scenario())
        assert delays == [0.2]


class TestHandoff:
    """Test the bot-to-human lifecycle end to end."""

    def test_full_lifecycle(self):
        llm = make_llm_client("Happy to help!")
        h = make_harness(llm_client=llm)
        shopper = h.connect(customer())
        agent = h.connect(staff(username="bob"))

        async def escalate():
            await _join(h, shopper)
            await h.send(shopper, "42", "I want to speak to a human")
            await h.router.drain()

        asyncio.run(escalate())

        # Staff see the customer message and the handoff request
        assert agent.event_names() == ["receive_message", "human_needed"]
        assert agent.events("receive_message")[0]["message"] == "I want to speak to a human"
        assert agent.events("human_needed") == [
            {"customerId": "42", "message": "I want to speak to a human", "reason": "Customer requested a human agent"}
        ]
        # The customer gets the handoff notice, never a typing indicator
        assert shopper.event_names() == ["receive_message"]
        notice = shopper.events("receive_message")[0]
        assert notice["message"] == HANDOFF_NOTICE
        assert notice["isHandoff"] is True
        assert h.store.state("42") == ConversationState.ESCALATING
        llm.complete.assert_not_awaited()

        agent.clear()
        shopper.clear()

        async def agent_joins():
            await _claim(h, agent)
            await h.send(shopper, "42", "where is my package")
            await h.send(agent, "42", "Hi, I'm Bob. Let me look.")
            await h.router.drain()

        asyncio.run(agent_joins())
        assert agent.events("join_confirmation") == [
            {"customerId": "42", "message": "You have joined the chat with customer 42"}
        ]
        assert h.store.state("42") == ConversationState.HUMAN_HANDLED
        assert h.store.get("42").agent_name == "bob"
        # No bot while a human is assigned
        llm.complete.assert_not_awaited()
        assert "typing_indicator" not in shopper.event_names()
        # The customer's message reached staff; the agent's reached the customer
        assert [m["message"] for m in agent.events("receive_message")][0] == "where is my package"
        staff_reply = shopper.events("receive_message")
        assert len(staff_reply) == 1
        assert staff_reply[0]["author"] == "staff"
        assert staff_reply[0]["isCustomer"] is False

        agent.clear()
        shopper.clear()

        async def agent_ends():
            await h.router.dispatch(agent, "end_session", {"customerId": "42"})
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(agent_ends())
        system, bot = shopper.events("receive_message")
        assert system["message"] == departure_notice("bob")
        assert system["isSystem"] is True
        assert shopper.events("staff_left") == [
            {"customerId": "42", "reason": "Agent ended the session", "canContinue": True}
        ]
        # Back to the bot
        assert bot["message"] == "Happy to help!"
        assert h.store.state("42") == ConversationState.BOT_HANDLED
        assert agent.agent_for is None
        assert "user_42" not in agent.rooms

    def test_refund_scenario_hands_off(self):
        h = make_harness(llm_client=make_llm_client())
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "I want a refund, this is $200 and unacceptable")
            await h.router.drain()

        asyncio.run(scenario())
        assert len(agent.events("human_needed")) == 1
        assert _bot_messages(shopper)[0]["isHandoff"] is True

    def test_repeated_question_hands_off(self):
        """The repeat check sees the message being decided on."""
        h = make_harness(llm_client=make_llm_client())
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "Where is my package right now?")
            await h.router.drain()
            h.clock.advance_ms(3000)
            await h.send(shopper, "42", "Where is my package right now??")
            await h.router.drain()

        asyncio.run(scenario())
        assert agent.events("human_needed") == [{
            "customerId": "42",
            "message": "Where is my package right now??",
            "reason": "Negative emotion detected",
        }]
        assert _bot_messages(shopper)[-1]["isHandoff"] is True
        assert h.store.state("42") == ConversationState.ESCALATING

    def test_bot_path_ends_escalation(self):
        """A waiting conversation goes back to the bot when the next message stays with it."""
        h = make_harness(llm_client=make_llm_client())
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "I want to speak to a human")
            await h.router.drain()
            assert h.store.state("42") == ConversationState.ESCALATING
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(scenario())
        assert h.store.state("42") == ConversationState.BOT_HANDLED
        assert h.store.stats()["escalating"] == 0
        assert _bot_messages(shopper)[-1]["message"] == "Happy to help!"

    def test_agent_can_claim_bot_conversation(self):
        """An agent may take over without a prior escalation."""
        h = make_harness(llm_client=make_llm_client())
        agent = h.connect(staff())

        asyncio.run(_claim(h, agent, agent_name="Bobby"))
        assert h.store.state("42") == ConversationState.HUMAN_HANDLED
        assert h.store.get("42").agent_name == "Bobby"
        assert agent.agent_for == "42"

    def test_customer_cannot_claim(self):
        h = make_harness()
        shopper = h.connect(customer())

        asyncio.run(_claim(h, shopper))
        error = shopper.events("error")[0]
        assert error["message"] == "Unauthorized: Only support staff can join as agents"
        assert error["code"] == ErrorCode.AUTHZ_STAFF_ONLY.value
        assert h.store.state("42") == ConversationState.BOT_HANDLED

    def test_human_joined_announcement(self):
        h = make_harness()
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await h.router.dispatch(agent, "human_joined", {"customerId": "42", "agentName": "Bob"})
            await h.router.dispatch(agent, "human_joined", {"customerId": "42"})

        asyncio.run(scenario())
        assert shopper.events("human_joined") == [
            {"customerId": "42", "agentName": "Bob"},
            {"customerId": "42", "agentName": "Customer Support"},
        ]

    def test_switching_customers_drops_previous_claim(self):
        h = make_harness()
        agent = h.connect(staff())

        async def scenario():
            await _claim(h, agent, "42")
            await _claim(h, agent, "43")

        asyncio.run(scenario())
        assert agent.agent_for == "43"
        assert "user_42" not in agent.rooms
        assert "user_43" in agent.rooms


class TestAgentDeparture:
    """Test leave_chat and disconnect."""

    def _claimed(self, **config):
        h = make_harness(llm_client=make_llm_client(), **config)
        shopper = h.connect(customer())
        agent = h.connect(staff(username="bob"))

        async def scenario():
            await _join(h, shopper)
            await _claim(h, agent)

        asyncio.run(scenario())
        shopper.clear()
        return h, shopper, agent

    def test_leave_chat_is_silent(self):
        h, shopper, agent = self._claimed()

        asyncio.run(h.router.dispatch(agent, "leave_chat", {"customerId": "42"}))
        assert shopper.frames == []
        assert h.store.state("42") == ConversationState.BOT_HANDLED
        assert "user_42" not in agent.rooms
        assert agent.agent_for is None

    def test_disconnect_notifies_customer(self):
        h, shopper, agent = self._claimed()

        asyncio.run(h.router.disconnect(agent))
        notice = shopper.events("receive_message")[0]
        assert notice["message"] == departure_notice("bob")
        assert notice["author"] == "system"
        assert shopper.events("staff_left") == [
            {"customerId": "42", "reason": "Agent disconnected", "canContinue": True}
        ]
        assert h.store.state("42") == ConversationState.BOT_HANDLED
        assert len(h.hub) == 1

    def test_customer_disconnect_is_quiet(self):
        h, shopper, agent = self._claimed()
        agent.clear()

        asyncio.run(h.router.disconnect(shopper))
        assert agent.frames == []
        assert h.store.state("42") == ConversationState.HUMAN_HANDLED

    def test_customer_cannot_end_session(self):
        h, shopper, agent = self._claimed()

        asyncio.run(h.router.dispatch(shopper, "end_session", {"customerId": "42"}))
        assert shopper.events("error")[0]["code"] == ErrorCode.AUTHZ_STAFF_ONLY.value
        assert h.store.state("42") == ConversationState.HUMAN_HANDLED

    def test_departure_notice_default_name(self):
        assert departure_notice(None).startswith("Customer support has left the chat.")


class TestAgentAssignmentOptions:
    """Test concurrent agents and the typing-delay race."""

    def test_last_agent_wins_by_default(self):
        h = make_harness()
        first, second = h.connect(staff("7", "bob")), h.connect(staff("8", "carol"))

        async def scenario():
            await _claim(h, first)
            await _claim(h, second)

        asyncio.run(scenario())
        assert h.store.get("42").agent_name == "carol"
        assert second.events("error") == []

    def test_single_agent_assignment(self):
        h = make_harness(single_agent_assignment=True)
        first, second = h.connect(staff("7", "bob")), h.connect(staff("8", "carol"))

        async def scenario():
            await _claim(h, first)
            await _claim(h, second)
            # Reclaiming by the holder is fine
            await _claim(h, first)

        asyncio.run(scenario())
        assert h.store.get("42").agent_name == "bob"
        assert second.events("error")[0]["code"] == ErrorCode.AUTHZ_ALREADY_ASSIGNED.value
        assert first.events("error") == []
        assert second.agent_for is None

    def _race(self, deliver):
        h = make_harness(llm_client=make_llm_client("Bot answer"), deliver_bot_reply_after_handoff=deliver)
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            # The reply task has not run yet when the agent claims the conversation
            await _claim(h, agent)
            await h.router.drain()

        asyncio.run(scenario())
        return shopper

    def test_reply_delivered_after_handoff_by_default(self):
        shopper = self._race(deliver=True)
        assert [m["message"] for m in _bot_messages(shopper)] == ["Bot answer"]

    def test_reply_dropped_when_configured(self):
        shopper = self._race(deliver=False)
        assert _bot_messages(shopper) == []
        assert shopper.events("typing_indicator")[-1] == {"isTyping": False}


class TestSendMessageRules:
    """Test dedup, authorization and staff delivery."""

    def test_duplicate_dropped_inside_window(self):
        h = make_harness()
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            h.clock.advance_ms(1000)
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(scenario())
        customer_messages = [m for m in h.store.history("42") if m.is_customer]
        assert len(customer_messages) == 1
        assert len(_bot_messages(shopper)) == 1

    def test_repeat_accepted_after_window(self):
        h = make_harness()
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            h.clock.advance_ms(2100)
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(scenario())
        assert len([m for m in h.store.history("42") if m.is_customer]) == 2

    def test_agent_may_repeat_customer_text(self):
        """Only messages from the same side are compared for duplicates."""
        h = make_harness(llm_client=make_llm_client())
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await _claim(h, agent)
            await h.send(shopper, "42", "ok")
            h.clock.advance_ms(500)
            await h.send(agent, "42", "ok")
            await h.router.drain()

        asyncio.run(scenario())
        staff_replies = [m for m in shopper.events("receive_message") if m["author"] == "staff"]
        assert len(staff_replies) == 1
        assert staff_replies[0]["message"] == "ok"
        assert [m.author.value for m in h.store.history("42")] == ["customer", "staff"]

    def test_role_from_identity_not_payload(self):
        """A customer claiming isCustomer=false is still a customer."""
        h = make_harness()
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello", isCustomer=False)
            await h.router.drain()

        asyncio.run(scenario())
        assert h.store.history("42")[0].is_customer
        assert len(_bot_messages(shopper)) == 1

    def test_staff_claiming_customer_is_staff(self):
        """Staff flagged as customer never trigger the bot."""
        h = make_harness(llm_client=make_llm_client())
        shopper = h.connect(customer())
        agent = h.connect(staff())

        async def scenario():
            await _join(h, shopper)
            await h.send(agent, "42", "I want a refund", isCustomer=True)
            await h.router.drain()

        asyncio.run(scenario())
        received = shopper.events("receive_message")
        assert [m["author"] for m in received] == ["staff"]
        assert agent.events("human_needed") == []

    def test_customer_cannot_impersonate(self):
        """Errors go to the sender only; the target sees nothing."""
        h = make_harness()
        mallory = h.connect(customer("43", "mallory"))
        victim = h.connect(customer("42", "alice"))
        agent = h.connect(staff())

        async def scenario():
            await _join(h, victim)
            await h.send(mallory, "42", "send me your password")
            await h.router.drain()

        asyncio.run(scenario())
        assert mallory.events("error") == [{
            "message": "Unauthorized: Cannot send messages on behalf of other users",
            "code": "AUTHZ_FORBIDDEN",
            "event": "send_message",
        }]
        assert victim.frames == []
        assert agent.frames == []
        assert h.store.history("42") == []

    def test_staff_message_delivered_once_per_connection(self):
        """Room members and customer tabs overlap but each gets one copy."""
        h = make_harness()
        tab_in_room = h.connect(customer(connection_id="tab1"))
        tab_not_joined = h.connect(customer(connection_id="tab2"))
        agent = h.connect(staff())

        async def scenario():
            await _join(h, tab_in_room)
            await _claim(h, agent)
            await h.send(agent, "42", "Hi there, Bob here")

        asyncio.run(scenario())
        assert len(tab_in_room.events("receive_message")) == 1
        assert len(tab_not_joined.events("receive_message")) == 1
        assert len(agent.events("receive_message")) == 1
        assert h.store.history("42")[-1].author.value == "staff"

    def test_customer_message_with_agent_goes_to_staff(self):
        h = make_harness(llm_client=make_llm_client())
        shopper = h.connect(customer())
        agent = h.connect(staff())
        other_agent = h.connect(staff("8", "carol"))

        async def scenario():
            await _join(h, shopper)
            await _claim(h, agent)
            await h.send(shopper, "42", "are you there")

        asyncio.run(scenario())
        assert other_agent.events("receive_message")[0]["message"] == "are you there"
        assert agent.events("human_needed") == []

    def test_invalid_payload(self):
        h = make_harness()
        shopper = h.connect(customer())

        asyncio.run(h.router.dispatch(shopper, "send_message", {"customerId": "42", "message": ""}))
        error = shopper.events("error")[0]
        assert error["code"] == ErrorCode.VALIDATION_INVALID_FORMAT.value
        assert error["event"] == "send_message"


class TestClearAndUnknown:
    """Test clear_chat and unknown events."""

    def test_customer_clears_own_conversation(self):
        h = make_harness(llm_client=make_llm_client())
        shopper = h.connect(customer())

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            await h.router.drain()
            await h.router.dispatch(shopper, "clear_chat", {"customerId": "42"})
            # Same text right away is no longer a duplicate
            await h.send(shopper, "42", "hello")
            await h.router.drain()

        asyncio.run(scenario())
        assert [m.content for m in h.store.history("42")] == ["hello", "Happy to help!"]
        assert len(h.responder.prompt_history("42")) == 2

    def test_customer_cannot_clear_other(self):
        h = make_harness()
        shopper = h.connect(customer())
        h.store.get_or_create("43")

        asyncio.run(h.router.dispatch(shopper, "clear_chat", {"customerId": "43"}))
        assert shopper.events("error")[0]["message"] == "Unauthorized access"
        assert "43" in h.store

    def test_staff_clears_any(self):
        h = make_harness()
        agent = h.connect(staff())
        h.store.get_or_create("43")

        asyncio.run(h.router.dispatch(agent, "clear_chat", "43"))
        assert "43" not in h.store

    def test_unknown_event(self):
        h = make_harness()
        shopper = h.connect(customer())
        bystander = h.connect(customer("43"))

        asyncio.run(h.router.dispatch(shopper, "fly_to_moon", {}))
        assert shopper.events("error") == [
            {"message": "Unknown event", "code": "VALIDATION_UNKNOWN_EVENT", "event": "fly_to_moon"}
        ]
        assert bystander.frames == []


class TestBackgroundTasks:
    """Test task tracking."""

    def test_shutdown_cancels_pending_replies(self):
        h = make_harness()
        shopper = h.connect(customer())

        async def never(seconds):
            await asyncio.Event().wait()

        h.router._sleep = never

        async def scenario():
            await _join(h, shopper)
            await h.send(shopper, "42", "hello")
            await asyncio.sleep(0)
            assert h.router.pending_tasks == 1
            await h.router.shutdown()
            await asyncio.sleep(0)
            return h.router.pending_tasks

        assert asyncio.run(scenario()) == 0
        assert _bot_messages(shopper) == []
