"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

import pytest

from wfassist.domain.session_coordinator import AssistantSessionCoordinator
from wfassist.errors import AssistantServiceError
from wfassist.events import Event, EventBus
from wfassist.models.error_context import ErrorContext, ErrorDetails, NodeIdentity
from wfassist.models.payloads import (
    ApplySuggestionRequest,
    ApplySuggestionResponse,
    ChatResponse,
    parse_message_response,
)
from wfassist.services.settings import Settings
from wfassist.services.workflow import InMemoryWorkflow, WorkflowNode
from wfassist.utils import logging as logging_utils


class FakeTransport:
    """Scripted assistant transport recording every request."""

    def __init__(self) -> None:
        self.chat_requests: list[Any] = []
        self.apply_requests: list[ApplySuggestionRequest] = []
        self.chat_replies: list[ChatResponse | Exception] = []
        self.apply_replies: list[ApplySuggestionResponse | Exception] = []

    def queue_chat(self, session_id: str = "session-1", *messages: dict[str, Any]) -> None:
        parsed = [parse_message_response(message) for message in messages]
        self.chat_replies.append(
            ChatResponse(session_id=session_id, messages=[m for m in parsed if m is not None])
        )

    def queue_chat_error(self, message: str = "boom") -> None:
        self.chat_replies.append(AssistantServiceError(message, status_code=500))

    def queue_apply(self, parameters: dict[str, Any]) -> None:
        self.apply_replies.append(ApplySuggestionResponse(parameters=parameters))

    def queue_apply_error(self, message: str = "apply failed") -> None:
        self.apply_replies.append(AssistantServiceError(message))

    async def converse(self, request: Any) -> ChatResponse:
        self.chat_requests.append(request)
        reply = self.chat_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def apply_suggestion(self, request: ApplySuggestionRequest) -> ApplySuggestionResponse:
        self.apply_requests.append(request)
        reply = self.apply_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class EventRecorder:
    """Collects published events of the given types."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def workflow() -> InMemoryWorkflow:
    return InMemoryWorkflow(
        [
            WorkflowNode(
                name="Set1",
                type="n8n-nodes-base.set",
                parameters={"jsCode": "return items;", "mode": "manual", "options": {"a": 1}},
            ),
            WorkflowNode(name="Code", type="n8n-nodes-base.code", parameters={"jsCode": ""}),
        ]
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(ai_assistant_enabled=True, user_first_name="Ada")


@pytest.fixture
def coordinator(
    transport: FakeTransport,
    workflow: InMemoryWorkflow,
    settings: Settings,
    event_bus: EventBus,
) -> AssistantSessionCoordinator:
    return AssistantSessionCoordinator(
        transport,
        workflow,
        settings_provider=lambda: settings,
        event_bus=event_bus,
    )


@pytest.fixture
def make_context() -> Callable[..., ErrorContext]:
    def _make(node: str = "Set1", message: str = "Bad input", **error: Any) -> ErrorContext:
        return ErrorContext(
            node=NodeIdentity(name=node),
            error=ErrorDetails(name=error.pop("name", "NodeOperationError"), message=message, **error),
        )

    return _make


@pytest.fixture
def recorder_factory(event_bus: EventBus) -> Callable[..., EventRecorder]:
    def _make(*event_types: type[Event]) -> EventRecorder:
        return EventRecorder(event_bus, *event_types)

    return _make


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("WFASSIST_"):
            monkeypatch.delenv(name)


@pytest.fixture
def restore_logging(monkeypatch: pytest.MonkeyPatch):
    """Undo root logger changes made by the logging helpers."""

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(logging_utils, "_active", None)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.captureWarnings(False)
