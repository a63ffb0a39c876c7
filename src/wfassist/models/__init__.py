"""Data models shared by the session layer and its transport."""

from .error_context import ErrorContext, ErrorDetails, NodeIdentity
from .messages import (
    ChatMessage,
    CodeDiffMessage,
    CodeDiffState,
    ErrorMessage,
    QuickReply,
    TextMessage,
)
from .payloads import (
    ApplySuggestionRequest,
    ApplySuggestionResponse,
    AssistantTextResponse,
    ChatRequestPayload,
    ChatResponse,
    CodeDiffResponse,
    EndSessionResponse,
    EventRequest,
    InitErrorHelpRequest,
    MessageResponse,
    UserMessageRequest,
)
from .session import ChatSession, SuggestionRecord, clamp_chat_width

__all__ = [
    "ErrorContext",
    "ErrorDetails",
    "NodeIdentity",
    "ChatMessage",
    "CodeDiffMessage",
    "CodeDiffState",
    "ErrorMessage",
    "QuickReply",
    "TextMessage",
    "ApplySuggestionRequest",
    "ApplySuggestionResponse",
    "AssistantTextResponse",
    "ChatRequestPayload",
    "ChatResponse",
    "CodeDiffResponse",
    "EndSessionResponse",
    "EventRequest",
    "InitErrorHelpRequest",
    "MessageResponse",
    "UserMessageRequest",
    "ChatSession",
    "SuggestionRecord",
    "clamp_chat_width",
]
