"""Event bus and change notifications for the assistant chat session.

Observers (a chat panel, a status bar, tests) subscribe to the events below
instead of polling the coordinator. Publishing is synchronous and happens on
the same event loop that drives the session.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all session events.

    Subclasses are slotted dataclasses::

        @dataclass(slots=True)
        class ChatWidthChanged(Event):
            width: int
    """

    pass


# Events published on every log mutation are not traced on publish
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Session Events
# =============================================================================


@dataclass(slots=True)
class ChatSessionStarted(Event):
    """Emitted when a new error context replaces the active conversation.

    Attributes:
        node_name: Name of the workflow node the error belongs to.
        error_message: The error message that opened the session.
    """

    node_name: str
    error_message: str


@dataclass(slots=True)
class SessionIdAssigned(Event):
    """Emitted when the service hands out (or changes) the session id."""

    session_id: str


@dataclass(slots=True)
class ChatSessionEnded(Event):
    """Emitted when the service closes the conversation with ``end-session``."""

    session_id: str | None


@dataclass(slots=True)
class MessagesChanged(Event):
    """Emitted after any mutation of the message log.

    Attributes:
        message_count: Number of entries in the log after the change.
        streaming: True while an unfulfilled loading placeholder is present.
    """

    message_count: int
    streaming: bool = False


_QUIET_EVENT_TYPES.add(MessagesChanged)


@dataclass(slots=True)
class ServiceErrorReported(Event):
    """Emitted when a round trip to the assistant service fails."""

    error: str


# =============================================================================
# Window Events
# =============================================================================


@dataclass(slots=True)
class ChatVisibilityChanged(Event):
    """Emitted when the chat window is opened or closed."""

    open: bool


@dataclass(slots=True)
class ChatWidthChanged(Event):
    """Emitted when the chat window width changes (already clamped)."""

    width: int


# =============================================================================
# Suggestion Events
# =============================================================================


@dataclass(slots=True)
class SuggestionApplied(Event):
    """Emitted after suggested parameters were written onto a node.

    Attributes:
        suggestion_id: Opaque identifier of the applied suggestion.
        node_name: The node whose parameters were updated.
        parameter_keys: Keys that were replaced on the node.
    """

    suggestion_id: str
    node_name: str
    parameter_keys: tuple[str, ...] = ()


@dataclass(slots=True)
class SuggestionFailed(Event):
    """Emitted when applying a suggestion fails."""

    suggestion_id: str
    error: str


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Example::

        bus = EventBus()
        bus.subscribe(ChatWidthChanged, lambda event: print(event.width))
        bus.publish(ChatWidthChanged(width=300))

    Handlers registered as bound methods are held weakly so an observer
    that goes away does not keep receiving events. The bus is not
    thread-safe; publish from the event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Subscribing the same handler twice results in two invocations.
        """
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Invoke every handler for ``type(event)`` in registration order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if handlers is None:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead_refs: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead_refs.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead_refs:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the handler count for ``event_type``, or across all types."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Any) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "ChatSessionStarted",
    "SessionIdAssigned",
    "ChatSessionEnded",
    "MessagesChanged",
    "ServiceErrorReported",
    "ChatVisibilityChanged",
    "ChatWidthChanged",
    "SuggestionApplied",
    "SuggestionFailed",
]
