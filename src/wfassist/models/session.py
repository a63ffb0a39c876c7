"""Session state owned by the assistant session coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .error_context import ErrorContext

MIN_CHAT_WIDTH = 250
MAX_CHAT_WIDTH = 425
DEFAULT_CHAT_WIDTH = 275


def clamp_chat_width(width: float) -> int:
    """Clamp ``width`` into the supported chat window range."""
    return int(min(max(width, MIN_CHAT_WIDTH), MAX_CHAT_WIDTH))


@dataclass(slots=True)
class ChatSession:
    """Identity and window state of the current assistant conversation.

    Attributes:
        session_id: Assigned by the service on its first response.
        active_error_context: The error the conversation is about, if any.
        window_open: Whether the chat window is shown.
        window_width: Chat window width in pixels, always clamped.
        ended: Set when the service sent an ``end-session`` message.
    """

    session_id: str | None = None
    active_error_context: ErrorContext | None = None
    window_open: bool = False
    window_width: int = DEFAULT_CHAT_WIDTH
    ended: bool = False

    def reset(self, context: ErrorContext | None) -> None:
        """Forget the previous conversation and start one about ``context``."""
        self.session_id = None
        self.active_error_context = context
        self.ended = False


@dataclass(slots=True)
class SuggestionRecord:
    """Before/after parameter snapshots for an applied suggestion."""

    previous_parameters: dict[str, Any] = field(default_factory=dict)
    suggested_parameters: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "MIN_CHAT_WIDTH",
    "MAX_CHAT_WIDTH",
    "DEFAULT_CHAT_WIDTH",
    "clamp_chat_width",
    "ChatSession",
    "SuggestionRecord",
]
