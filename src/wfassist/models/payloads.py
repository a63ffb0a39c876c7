"""Wire payloads exchanged with the remote assistant service.

Requests serialize to the camelCase JSON the service expects. Responses
are parsed leniently: unknown message types are dropped with a warning so
a newer service does not break older editors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Literal, Mapping, Sequence, Union

from ..errors import AssistantServiceError
from .error_context import ErrorDetails, NodeIdentity
from .messages import QuickReply

LOGGER = logging.getLogger(__name__)

InteractionEventName = Literal["errored-node-execution-success", "errored-node-errored-again"]
INTERACTION_EVENTS: tuple[str, ...] = (
    "errored-node-execution-success",
    "errored-node-errored-again",
)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class InitErrorHelpRequest:
    """Opens a conversation about a node error."""

    action: ClassVar[str] = "init-error-help"

    error: ErrorDetails
    node: NodeIdentity
    user_first_name: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "user": {"firstName": self.user_first_name},
            "error": self.error.to_payload(),
            "node": self.node.to_payload(),
        }


@dataclass(slots=True)
class UserMessageRequest:
    """A message typed (or quick-replied) by the user."""

    action: ClassVar[str] = "user-message"

    content: str
    quick_reply_type: str | None = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"action": self.action, "content": self.content}
        if self.quick_reply_type is not None:
            payload["quickReplyType"] = self.quick_reply_type
        return payload


@dataclass(slots=True)
class EventRequest:
    """Notifies the service about something that happened in the editor."""

    action: ClassVar[str] = "event"

    event: InteractionEventName

    def __post_init__(self) -> None:
        if self.event not in INTERACTION_EVENTS:
            raise ValueError(f"Unknown interaction event: {self.event!r}")

    def to_payload(self) -> Dict[str, Any]:
        return {"action": self.action, "event": self.event}


ChatRequestPayload = Union[InitErrorHelpRequest, UserMessageRequest, EventRequest]


@dataclass(slots=True)
class ApplySuggestionRequest:
    session_id: str
    suggestion_id: str

    def to_payload(self) -> Dict[str, Any]:
        return {"sessionId": self.session_id, "suggestionId": self.suggestion_id}


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class AssistantTextResponse:
    type: ClassVar[str] = "assistant-message"

    content: str
    title: str | None = None
    quick_replies: list[QuickReply] = field(default_factory=list)


@dataclass(slots=True)
class CodeDiffResponse:
    type: ClassVar[str] = "code-diff"

    description: str
    code_diff: str
    suggestion_id: str
    solution_count: int = 1
    quick_replies: list[QuickReply] = field(default_factory=list)


@dataclass(slots=True)
class EndSessionResponse:
    type: ClassVar[str] = "end-session"

    quick_replies: list[QuickReply] = field(default_factory=list)


MessageResponse = Union[AssistantTextResponse, CodeDiffResponse, EndSessionResponse]


@dataclass(slots=True)
class ChatResponse:
    """Reply to any chat request: the session id and zero or more messages."""

    session_id: str
    messages: list[MessageResponse] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ChatResponse:
        if not isinstance(payload, Mapping):
            raise AssistantServiceError(
                f"Unexpected chat response of type {type(payload).__name__}"
            )
        session_id = payload.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise AssistantServiceError("Chat response is missing a sessionId")
        raw_messages = payload.get("messages") or []
        if not isinstance(raw_messages, Sequence) or isinstance(raw_messages, (str, bytes)):
            raise AssistantServiceError("Chat response messages must be a list")
        messages = [
            message
            for message in (parse_message_response(item) for item in raw_messages)
            if message is not None
        ]
        return cls(session_id=session_id, messages=messages)


@dataclass(slots=True)
class ApplySuggestionResponse:
    parameters: dict[str, Any]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ApplySuggestionResponse:
        parameters = payload.get("parameters") if isinstance(payload, Mapping) else None
        if not isinstance(parameters, Mapping):
            raise AssistantServiceError("Suggestion response is missing parameters")
        return cls(parameters=dict(parameters))


def parse_message_response(payload: Any) -> MessageResponse | None:
    """Convert one raw service message into its typed response, or ``None``."""

    if not isinstance(payload, Mapping):
        LOGGER.warning("Ignoring non-mapping assistant message: %r", payload)
        return None
    quick_replies = [
        QuickReply.from_payload(reply)
        for reply in payload.get("quickReplies") or []
        if isinstance(reply, Mapping)
    ]
    message_type = payload.get("type")
    if message_type == AssistantTextResponse.type:
        return AssistantTextResponse(
            content=str(payload.get("content") or ""),
            title=payload.get("title"),
            quick_replies=quick_replies,
        )
    if message_type == CodeDiffResponse.type:
        return CodeDiffResponse(
            description=str(payload.get("description") or ""),
            code_diff=str(payload.get("codeDiff") or ""),
            suggestion_id=str(payload.get("suggestionId") or ""),
            solution_count=int(payload.get("solution_count") or 1),
            quick_replies=quick_replies,
        )
    if message_type == EndSessionResponse.type:
        return EndSessionResponse(quick_replies=quick_replies)
    LOGGER.warning("Ignoring assistant message with unknown type %r", message_type)
    return None


__all__ = [
    "InteractionEventName",
    "INTERACTION_EVENTS",
    "InitErrorHelpRequest",
    "UserMessageRequest",
    "EventRequest",
    "ChatRequestPayload",
    "ApplySuggestionRequest",
    "AssistantTextResponse",
    "CodeDiffResponse",
    "EndSessionResponse",
    "MessageResponse",
    "ChatResponse",
    "ApplySuggestionResponse",
    "parse_message_response",
]
