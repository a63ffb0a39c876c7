"""Tests for AssistantSessionCoordinator."""

from __future__ import annotations

import pytest

from wfassist.domain.session_coordinator import AssistantSessionCoordinator
from wfassist.errors import AssistantServiceError, InvalidSuggestionError, SessionInvariantError
from wfassist.events import (
    ChatSessionEnded,
    ChatSessionStarted,
    ChatVisibilityChanged,
    ChatWidthChanged,
    MessagesChanged,
    ServiceErrorReported,
    SessionIdAssigned,
)
from wfassist.models.messages import CodeDiffMessage, CodeDiffState, ErrorMessage, TextMessage
from wfassist.models.payloads import EventRequest, InitErrorHelpRequest, UserMessageRequest
from wfassist.services.settings import Settings

ASSISTANT_REPLY = {"type": "assistant-message", "content": "Check the input field.", "title": "Hint"}
CODE_DIFF = {
    "type": "code-diff",
    "description": "Fix the expression",
    "codeDiff": "- a\n+ b",
    "suggestionId": "sugg-1",
    "solution_count": 1,
}


# =============================================================================
# Window State
# =============================================================================


class TestWindow:
    def test_initial_state(self, coordinator: AssistantSessionCoordinator) -> None:
        assert coordinator.messages == ()
        assert coordinator.session_id is None
        assert coordinator.active_error_context is None
        assert coordinator.window_open is False
        assert coordinator.window_width == 275

    def test_open_and_close(self, coordinator, recorder_factory) -> None:
        recorder = recorder_factory(ChatVisibilityChanged)

        coordinator.open_chat()
        assert coordinator.window_open is True
        coordinator.open_chat()
        coordinator.close_chat()

        assert coordinator.window_open is False
        assert [event.open for event in recorder.events] == [True, False]

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [(10, 250), (9999, 425), (300, 300), (250, 250), (425, 425), (-5.5, 250), (333.7, 333)],
    )
    def test_width_is_clamped(self, coordinator, requested, expected) -> None:
        assert coordinator.update_window_width(requested) == expected
        assert coordinator.window_width == expected

    def test_width_change_publishes_once(self, coordinator, recorder_factory) -> None:
        recorder = recorder_factory(ChatWidthChanged)

        coordinator.update_window_width(9999)
        coordinator.update_window_width(500)

        assert [event.width for event in recorder.events] == [425]

    def test_initial_width_comes_from_settings(self, transport, workflow) -> None:
        coordinator = AssistantSessionCoordinator(
            transport, workflow, settings_provider=lambda: Settings(chat_width=1000)
        )
        assert coordinator.window_width == 425

    def test_assistant_open_requires_feature_flag(self, transport, workflow) -> None:
        settings = Settings(ai_assistant_enabled=False)
        coordinator = AssistantSessionCoordinator(
            transport, workflow, settings_provider=lambda: settings
        )
        coordinator.open_chat()

        assert coordinator.is_assistant_enabled is False
        assert coordinator.is_assistant_open is False

        settings.ai_assistant_enabled = True
        assert coordinator.is_assistant_open is True


# =============================================================================
# init_error_helper
# =============================================================================


class TestInitErrorHelper:
    @pytest.mark.asyncio
    async def test_new_session_round_trip(
        self, coordinator, transport, make_context, recorder_factory
    ) -> None:
        recorder = recorder_factory(MessagesChanged, ChatSessionStarted, SessionIdAssigned)
        transport.queue_chat("session-42", ASSISTANT_REPLY, CODE_DIFF)

        started = await coordinator.init_error_helper(make_context("Set1", "Bad input"))

        assert started is True
        assert coordinator.session_id == "session-42"
        assert coordinator.window_open is True
        messages = coordinator.messages
        assert len(messages) == 2
        assert isinstance(messages[0], TextMessage)
        assert messages[0].content == "Check the input field."
        assert messages[0].title == "Hint"
        assert messages[0].streaming is False
        assert isinstance(messages[1], CodeDiffMessage)
        assert messages[1].suggestion_id == "sugg-1"

        change_events = recorder.of_type(MessagesChanged)
        # placeholder pushed while streaming, then resolved
        assert change_events[0].message_count == 1
        assert change_events[0].streaming is True
        assert change_events[-1].streaming is False
        assert recorder.of_type(ChatSessionStarted)[0].node_name == "Set1"
        assert recorder.of_type(SessionIdAssigned)[0].session_id == "session-42"

    @pytest.mark.asyncio
    async def test_placeholder_is_present_while_request_is_pending(
        self, coordinator, transport, make_context
    ) -> None:
        seen: list[tuple] = []
        original = transport.converse

        async def spying_converse(request):
            seen.append(coordinator.messages)
            return await original(request)

        transport.converse = spying_converse
        transport.queue_chat("s", ASSISTANT_REPLY)

        await coordinator.init_error_helper(make_context())

        assert len(seen[0]) == 1
        placeholder = seen[0][0]
        assert isinstance(placeholder, TextMessage)
        assert placeholder.content == ""
        assert placeholder.streaming is True
        assert all(message.content for message in coordinator.messages)

    @pytest.mark.asyncio
    async def test_request_payload(self, coordinator, transport, make_context) -> None:
        transport.queue_chat("s", ASSISTANT_REPLY)

        await coordinator.init_error_helper(make_context("Set1", "Bad input", line_number=3))

        request = transport.chat_requests[0]
        assert isinstance(request, InitErrorHelpRequest)
        payload = request.to_payload()
        assert payload["action"] == "init-error-help"
        assert payload["user"] == {"firstName": "Ada"}
        assert payload["node"] == {"name": "Set1"}
        assert payload["error"]["message"] == "Bad input"
        assert payload["error"]["lineNumber"] == 3

    @pytest.mark.asyncio
    async def test_user_name_provider_wins_over_settings(
        self, transport, workflow, settings, make_context
    ) -> None:
        coordinator = AssistantSessionCoordinator(
            transport,
            workflow,
            settings_provider=lambda: settings,
            user_name_provider=lambda: "Grace",
        )
        transport.queue_chat("s", ASSISTANT_REPLY)

        await coordinator.init_error_helper(make_context())

        assert transport.chat_requests[0].user_first_name == "Grace"

    @pytest.mark.asyncio
    async def test_same_context_is_idempotent(self, coordinator, transport, make_context) -> None:
        transport.queue_chat("s", ASSISTANT_REPLY)
        await coordinator.init_error_helper(make_context("Set1", "Bad input"))
        before = coordinator.messages

        again = await coordinator.init_error_helper(
            make_context("Set1", "Bad input", stack="different stack", line_number=9)
        )

        assert again is False
        assert coordinator.messages == before
        assert len(transport.chat_requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("node", "message"), [("Code", "Bad input"), ("Set1", "Other error")])
    async def test_different_context_resets_log(
        self, coordinator, transport, make_context, node, message
    ) -> None:
        transport.queue_chat("first", ASSISTANT_REPLY)
        await coordinator.init_error_helper(make_context("Set1", "Bad input"))
        transport.queue_chat_error("down")
        await coordinator.send_message("thanks")
        assert len(coordinator.messages) == 3

        transport.queue_chat("second", {"type": "assistant-message", "content": "New help"})
        started = await coordinator.init_error_helper(make_context(node, message))

        assert started is True
        assert [m.content for m in coordinator.messages] == ["New help"]
        assert coordinator.session_id == "second"
        assert coordinator.active_error_context.node.name == node

    @pytest.mark.asyncio
    async def test_reset_clears_session_id_before_request(
        self, coordinator, transport, make_context
    ) -> None:
        transport.queue_chat("first", ASSISTANT_REPLY)
        await coordinator.init_error_helper(make_context("Set1", "Bad input"))
        transport.queue_chat_error("down")

        await coordinator.init_error_helper(make_context("Code", "Other"))

        assert coordinator.session_id is None

    @pytest.mark.asyncio
    async def test_service_failure_appends_error_notice(
        self, coordinator, transport, make_context, recorder_factory
    ) -> None:
        recorder = recorder_factory(ServiceErrorReported)
        transport.queue_chat_error("connection refused")

        await coordinator.init_error_helper(make_context())

        messages = coordinator.messages
        assert len(messages) == 1
        assert isinstance(messages[0], ErrorMessage)
        assert messages[0].content == (
            "There was an error reaching the service: (connection refused)"
        )
        assert coordinator.session_id is None
        assert coordinator.is_streaming() is False
        assert recorder.events[0].error == "connection refused"

    @pytest.mark.asyncio
    async def test_unexpected_transport_exception_is_reported(
        self, coordinator, transport, make_context
    ) -> None:
        transport.chat_replies.append(RuntimeError("socket closed"))

        await coordinator.init_error_helper(make_context())

        assert coordinator.messages[-1].content.endswith("(socket closed)")

    @pytest.mark.asyncio
    async def test_end_session_marks_session_ended(
        self, coordinator, transport, make_context, recorder_factory
    ) -> None:
        recorder = recorder_factory(ChatSessionEnded)
        transport.queue_chat("s-end", ASSISTANT_REPLY, {"type": "end-session"})

        await coordinator.init_error_helper(make_context())

        assert coordinator.session_ended is True
        assert len(coordinator.messages) == 1
        assert recorder.events[0].session_id == "s-end"

        transport.queue_chat("s-new", ASSISTANT_REPLY)
        await coordinator.init_error_helper(make_context("Code", "another"))
        assert coordinator.session_ended is False


# =============================================================================
# send_message
# =============================================================================


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_appends_user_then_response(self, coordinator, transport, make_context) -> None:
        transport.queue_chat("s", ASSISTANT_REPLY)
        await coordinator.init_error_helper(make_context())
        transport.queue_chat("s", {"type": "assistant-message", "content": "Try this"})

        await coordinator.send_message("How do I fix it?", quick_reply_type="resolved")

        roles_and_content = [(m.role, m.content) for m in coordinator.messages]
        assert roles_and_content == [
            ("assistant", "Check the input field."),
            ("user", "How do I fix it?"),
            ("assistant", "Try this"),
        ]
        request = transport.chat_requests[-1]
        assert isinstance(request, UserMessageRequest)
        assert request.to_payload() == {
            "action": "user-message",
            "content": "How do I fix it?",
            "quickReplyType": "resolved",
        }

    @pytest.mark.asyncio
    async def test_works_without_error_context(self, coordinator, transport) -> None:
        transport.queue_chat("fresh", ASSISTANT_REPLY)

        await coordinator.send_message("hello")

        assert [m.role for m in coordinator.messages] == ["user", "assistant"]
        assert coordinator.session_id == "fresh"
        assert coordinator.active_error_context is None

    @pytest.mark.asyncio
    async def test_failure_keeps_user_message(self, coordinator, transport) -> None:
        transport.queue_chat_error("timeout")

        await coordinator.send_message("hello")

        messages = coordinator.messages
        assert [type(m) for m in messages] == [TextMessage, ErrorMessage]
        assert messages[0].content == "hello"

    @pytest.mark.asyncio
    async def test_code_diff_survives_finalize(self, coordinator, transport) -> None:
        transport.queue_chat("s", CODE_DIFF)

        await coordinator.send_message("fix it")

        assert isinstance(coordinator.messages[-1], CodeDiffMessage)
        assert len(coordinator.messages) == 2

    @pytest.mark.asyncio
    async def test_quick_replies_are_kept(self, coordinator, transport) -> None:
        reply = dict(ASSISTANT_REPLY)
        reply["quickReplies"] = [
            {"label": "It worked", "type": "resolved", "isFeedback": True},
            {"label": "Try again", "type": "retry"},
        ]
        transport.queue_chat("s", reply)

        await coordinator.send_message("hi")

        quick_replies = coordinator.messages[-1].quick_replies
        assert [(q.label, q.type, q.is_feedback) for q in quick_replies] == [
            ("It worked", "resolved", True),
            ("Try again", "retry", False),
        ]


# =============================================================================
# send_event
# =============================================================================


class TestSendEvent:
    @pytest.mark.asyncio
    async def test_does_not_touch_log(self, coordinator, transport) -> None:
        transport.queue_chat("s-event")

        response = await coordinator.send_event("errored-node-execution-success")

        assert response.session_id == "s-event"
        assert coordinator.messages == ()
        assert isinstance(transport.chat_requests[0], EventRequest)
        assert transport.chat_requests[0].to_payload() == {
            "action": "event",
            "event": "errored-node-execution-success",
        }

    @pytest.mark.asyncio
    async def test_unknown_event_is_rejected(self, coordinator, transport) -> None:
        with pytest.raises(ValueError):
            await coordinator.send_event("something-else")  # type: ignore[arg-type]
        assert transport.chat_requests == []

    @pytest.mark.asyncio
    async def test_failure_is_raised(self, coordinator, transport) -> None:
        transport.queue_chat_error("down")

        with pytest.raises(AssistantServiceError):
            await coordinator.send_event("errored-node-errored-again")
        assert coordinator.messages == ()


# =============================================================================
# Suggestions
# =============================================================================


class TestApplySuggestion:
    async def _open_with_diff(self, coordinator, transport, make_context) -> int:
        transport.queue_chat("session-9", ASSISTANT_REPLY, CODE_DIFF)
        await coordinator.init_error_helper(make_context("Set1", "Bad input"))
        return 1

    @pytest.mark.asyncio
    async def test_successful_apply(self, coordinator, transport, workflow, make_context) -> None:
        index = await self._open_with_diff(coordinator, transport, make_context)
        transport.queue_apply({"jsCode": "return [];", "newKey": {"x": 1}})

        applied = await coordinator.apply_suggestion(index)

        assert applied is True
        message = coordinator.messages[index]
        assert message.replaced is True
        assert message.replacing is False
        assert message.error is False
        request = transport.apply_requests[0]
        assert request.to_payload() == {"sessionId": "session-9", "suggestionId": "sugg-1"}

        record = coordinator.suggestions["sugg-1"]
        assert set(record.previous_parameters) == set(record.suggested_parameters)
        assert record.previous_parameters == {"jsCode": "return items;", "newKey": None}
        node = workflow.get_node("Set1")
        for key, value in record.suggested_parameters.items():
            assert node.parameters[key] == value
        assert node.parameters["mode"] == "manual"

    @pytest.mark.asyncio
    async def test_non_code_diff_fails_before_transport(
        self, coordinator, transport, make_context
    ) -> None:
        await self._open_with_diff(coordinator, transport, make_context)

        with pytest.raises(InvalidSuggestionError):
            await coordinator.apply_suggestion(0)
        with pytest.raises(InvalidSuggestionError):
            await coordinator.apply_suggestion(7)
        assert transport.apply_requests == []

    @pytest.mark.asyncio
    async def test_requires_error_context(self, coordinator, transport) -> None:
        transport.queue_chat("s", CODE_DIFF)
        await coordinator.send_message("no context")

        with pytest.raises(SessionInvariantError):
            await coordinator.apply_suggestion(1)
        assert transport.apply_requests == []
        assert coordinator.messages[1].replacing is False

    @pytest.mark.asyncio
    async def test_requires_session_id(self, coordinator, transport, make_context) -> None:
        index = await self._open_with_diff(coordinator, transport, make_context)
        coordinator.session.session_id = None

        with pytest.raises(SessionInvariantError, match="session id"):
            await coordinator.apply_suggestion(index)
        assert transport.apply_requests == []
        assert coordinator.messages[index].state is CodeDiffState.IDLE

    @pytest.mark.asyncio
    async def test_service_failure_flags_message(
        self, coordinator, transport, workflow, make_context
    ) -> None:
        index = await self._open_with_diff(coordinator, transport, make_context)
        transport.queue_apply_error()

        applied = await coordinator.apply_suggestion(index)

        message = coordinator.messages[index]
        assert applied is False
        assert message.error is True
        assert message.replacing is False
        assert message.replaced is False
        assert coordinator.suggestions == {}
        assert workflow.get_node("Set1").parameters["jsCode"] == "return items;"
        # the log keeps its history
        assert len(coordinator.messages) == 2

    @pytest.mark.asyncio
    async def test_undo_is_a_no_op(self, coordinator, transport, workflow, make_context) -> None:
        index = await self._open_with_diff(coordinator, transport, make_context)
        transport.queue_apply({"jsCode": "return [];"})
        await coordinator.apply_suggestion(index)

        undone = await coordinator.undo_suggestion(index)

        assert undone is False
        assert workflow.get_node("Set1").parameters["jsCode"] == "return [];"
        assert coordinator.messages[index].replaced is True
        assert "sugg-1" in coordinator.suggestions

    @pytest.mark.asyncio
    async def test_undo_rejects_non_code_diff(self, coordinator, transport, make_context) -> None:
        await self._open_with_diff(coordinator, transport, make_context)

        with pytest.raises(InvalidSuggestionError):
            await coordinator.undo_suggestion(0)
