"""Ordered conversation log with loading-placeholder reconciliation."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from ..events import EventBus, MessagesChanged
from ..models.messages import ChatMessage, CodeDiffMessage, ErrorMessage, TextMessage
from ..models.payloads import (
    AssistantTextResponse,
    CodeDiffResponse,
    EndSessionResponse,
    MessageResponse,
)

LOGGER = logging.getLogger(__name__)


class MessageLog:
    """Append-only list of chat entries.

    Entries are only ever appended. The single exception is
    :meth:`finalize_streaming`, which drops unfulfilled loading
    placeholders once a round trip has resolved, and :meth:`clear`,
    used when a new conversation replaces the old one.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._bus = event_bus
        self._messages: list[ChatMessage] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> ChatMessage:
        return self._messages[index]

    def get(self, index: int) -> ChatMessage | None:
        """Return the entry at ``index``, or None when out of range."""
        if index < 0 or index >= len(self._messages):
            return None
        return self._messages[index]

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def is_streaming(self) -> bool:
        """True while any text entry is still marked as streaming."""
        return any(
            isinstance(message, TextMessage) and message.streaming
            for message in self._messages
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append_user(self, content: str) -> TextMessage:
        message = TextMessage(role="user", content=content)
        self._append(message)
        return message

    def append_assistant_loading(self) -> TextMessage:
        message = TextMessage(role="assistant", content="", streaming=True)
        self._append(message)
        return message

    def append_error(self, content: str) -> ErrorMessage:
        message = ErrorMessage(content=content)
        self._append(message)
        return message

    def append_assistant_batch(self, responses: Iterable[MessageResponse]) -> list[EndSessionResponse]:
        """Append the renderable responses and return the ``end-session`` ones.

        End-session messages are not log entries; the caller decides what
        closing the session means.
        """
        appended = 0
        end_markers: list[EndSessionResponse] = []
        for response in responses:
            if isinstance(response, AssistantTextResponse):
                self._messages.append(
                    TextMessage(
                        role="assistant",
                        content=response.content,
                        title=response.title,
                        quick_replies=list(response.quick_replies),
                    )
                )
                appended += 1
            elif isinstance(response, CodeDiffResponse):
                self._messages.append(
                    CodeDiffMessage(
                        description=response.description,
                        code_diff=response.code_diff,
                        suggestion_id=response.suggestion_id,
                        quick_replies=list(response.quick_replies),
                    )
                )
                appended += 1
            elif isinstance(response, EndSessionResponse):
                end_markers.append(response)
            else:  # pragma: no cover - parse_message_response filters unknown types
                raise TypeError(f"Unsupported assistant response: {type(response).__name__}")
        LOGGER.debug(
            "Appended %d assistant message(s), %d end-session marker(s)",
            appended,
            len(end_markers),
        )
        if appended:
            self._notify()
        return end_markers

    def finalize_streaming(self) -> int:
        """Drop empty placeholders and clear the streaming flag on the rest.

        Returns the number of entries removed. Code-diff entries carry no
        text content and are never removed here.
        """
        kept: list[ChatMessage] = []
        for message in self._messages:
            if message.is_placeholder:
                continue
            if isinstance(message, TextMessage) and message.streaming:
                message.streaming = False
            kept.append(message)
        removed = len(self._messages) - len(kept)
        self._messages = kept
        LOGGER.debug("Finalized streaming: removed %d placeholder(s)", removed)
        self._notify()
        return removed

    def clear(self) -> None:
        if not self._messages:
            return
        self._messages = []
        self._notify()

    def notify_changed(self) -> None:
        """Publish a change for in-place edits made to an entry (e.g. apply flags)."""
        self._notify()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _append(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self._notify()

    def _notify(self) -> None:
        if self._bus is None:
            return
        self._bus.publish(
            MessagesChanged(message_count=len(self._messages), streaming=self.is_streaming())
        )


__all__ = ["MessageLog"]
