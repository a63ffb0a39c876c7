"""Exception types raised by the assistant session layer."""

from __future__ import annotations


class AssistantServiceError(RuntimeError):
    """Raised when the remote assistant service rejects or cannot serve a call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SessionInvariantError(AssertionError):
    """Raised when an action is attempted without the session state it requires.

    These are contract violations by the caller. They abort the single
    triggering action and leave the conversation untouched.
    """


class InvalidSuggestionError(SessionInvariantError):
    """Raised when a suggestion is applied to a message that is not a code diff."""

    def __init__(self, index: int, reason: str = "No code diff to apply") -> None:
        super().__init__(f"{reason} (message index {index})")
        self.index = index
        self.reason = reason


__all__ = ["AssistantServiceError", "SessionInvariantError", "InvalidSuggestionError"]
