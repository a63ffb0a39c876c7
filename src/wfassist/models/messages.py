"""Chat log entries rendered by the assistant panel.

Each entry is one of three explicit variants. Consumers branch on the
concrete class (or the ``type`` tag when serialized), never on which
attributes happen to be present.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Literal, Mapping, Union

ChatRole = Literal["user", "assistant"]


@dataclass(slots=True)
class QuickReply:
    """A canned reply the user can pick instead of typing."""

    label: str
    type: str
    is_feedback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"label": self.label, "type": self.type}
        if self.is_feedback:
            payload["isFeedback"] = True
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> QuickReply:
        return cls(
            label=str(payload.get("label", "")),
            type=str(payload.get("type", "")),
            is_feedback=bool(payload.get("isFeedback", False)),
        )


class CodeDiffState(Enum):
    """Apply lifecycle of a code-diff message.

    Values:
        IDLE: Suggestion shown, not applied.
        REPLACING: Apply request in flight.
        REPLACED: Suggested parameters were written to the node.
        ERROR: The last apply attempt failed.
    """

    IDLE = "idle"
    REPLACING = "replacing"
    REPLACED = "replaced"
    ERROR = "error"


@dataclass(slots=True)
class TextMessage:
    """Plain text from the user or the assistant.

    An assistant entry with empty ``content`` and ``streaming`` set is the
    loading placeholder shown while a round trip is pending.
    """

    type: ClassVar[str] = "text"

    role: ChatRole
    content: str
    title: str | None = None
    quick_replies: list[QuickReply] = field(default_factory=list)
    streaming: bool = False

    @property
    def is_placeholder(self) -> bool:
        return not self.content

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "role": self.role, "content": self.content}
        if self.title is not None:
            payload["title"] = self.title
        if self.quick_replies:
            payload["quickReplies"] = [reply.to_dict() for reply in self.quick_replies]
        if self.streaming:
            payload["streaming"] = True
        return payload


@dataclass(slots=True)
class CodeDiffMessage:
    """A proposed parameter change the user can apply to the errored node."""

    type: ClassVar[str] = "code-diff"

    description: str
    code_diff: str
    suggestion_id: str
    quick_replies: list[QuickReply] = field(default_factory=list)
    replacing: bool = False
    replaced: bool = False
    error: bool = False
    role: ChatRole = "assistant"

    @property
    def is_placeholder(self) -> bool:
        return False

    @property
    def state(self) -> CodeDiffState:
        if self.replacing:
            return CodeDiffState.REPLACING
        if self.replaced:
            return CodeDiffState.REPLACED
        if self.error:
            return CodeDiffState.ERROR
        return CodeDiffState.IDLE

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "role": self.role,
            "description": self.description,
            "codeDiff": self.code_diff,
            "suggestionId": self.suggestion_id,
            "replacing": self.replacing,
            "replaced": self.replaced,
            "error": self.error,
        }
        if self.quick_replies:
            payload["quickReplies"] = [reply.to_dict() for reply in self.quick_replies]
        return payload


@dataclass(slots=True)
class ErrorMessage:
    """Notice shown in the log when the assistant service could not be reached."""

    type: ClassVar[str] = "error"

    content: str
    role: ChatRole = "assistant"

    @property
    def is_placeholder(self) -> bool:
        return not self.content

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "role": self.role, "content": self.content}


ChatMessage = Union[TextMessage, CodeDiffMessage, ErrorMessage]


__all__ = [
    "ChatRole",
    "QuickReply",
    "CodeDiffState",
    "TextMessage",
    "CodeDiffMessage",
    "ErrorMessage",
    "ChatMessage",
]
