"""Assistant session coordinator.

Owns the identity of the single assistant conversation tied to a workflow
error, the chat window state, the message log and the suggestion tracker.
User actions enter here; the coordinator decides whether the conversation
is reused or reset, talks to the assistant service and reconciles the log
once each round trip resolves.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from ..errors import AssistantServiceError, InvalidSuggestionError, SessionInvariantError
from ..events import (
    ChatSessionEnded,
    ChatSessionStarted,
    ChatVisibilityChanged,
    ChatWidthChanged,
    EventBus,
    ServiceErrorReported,
    SessionIdAssigned,
)
from ..models.error_context import ErrorContext
from ..models.messages import ChatMessage, CodeDiffMessage
from ..models.payloads import (
    ChatRequestPayload,
    ChatResponse,
    EventRequest,
    InitErrorHelpRequest,
    InteractionEventName,
    UserMessageRequest,
)
from ..models.session import ChatSession, SuggestionRecord, clamp_chat_width
from ..services.settings import Settings
from ..services.transport import AssistantTransport
from ..services.workflow import WorkflowProvider
from .matcher import is_same_session
from .message_log import MessageLog
from .suggestion_tracker import SuggestionTracker

LOGGER = logging.getLogger(__name__)

SERVICE_ERROR_TEMPLATE = "There was an error reaching the service: ({reason})"


class AssistantSessionCoordinator:
    """Coordinates one assistant conversation about a workflow node error.

    All methods run on a single event loop. Awaiting the transport is the
    only suspension point; overlapping round trips are not serialized and
    may interleave their loading placeholders.

    Events Emitted:
        - ChatSessionStarted: When a new error context resets the conversation
        - SessionIdAssigned: When the service returns a new session id
        - ChatSessionEnded: When the service sends ``end-session``
        - ChatVisibilityChanged / ChatWidthChanged: Window state changes
        - ServiceErrorReported: When a round trip fails
        - MessagesChanged, SuggestionApplied, SuggestionFailed: via the
          message log and the suggestion tracker
    """

    def __init__(
        self,
        transport: AssistantTransport,
        workflow: WorkflowProvider,
        *,
        settings_provider: Callable[[], Settings] | None = None,
        user_name_provider: Callable[[], str | None] | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            transport: Client for the remote assistant service.
            workflow: Access to the nodes of the open workflow.
            settings_provider: Callable returning current settings; used for
                the assistant feature flag and the initial window width.
            user_name_provider: Callable returning the current user's first
                name, sent when a conversation is opened.
            event_bus: Bus for change notifications. A private bus is
                created when omitted.
        """
        self._transport = transport
        self._settings_provider = settings_provider or Settings
        self._user_name_provider = user_name_provider
        self._bus = event_bus if event_bus is not None else EventBus()
        self._log = MessageLog(self._bus)
        self._tracker = SuggestionTracker(
            transport,
            workflow,
            self._bus,
            on_message_changed=self._log.notify_changed,
        )
        self._session = ChatSession(
            window_width=clamp_chat_width(self._settings_provider().chat_width)
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def session(self) -> ChatSession:
        return self._session

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self._log.messages

    @property
    def session_id(self) -> str | None:
        return self._session.session_id

    @property
    def active_error_context(self) -> ErrorContext | None:
        return self._session.active_error_context

    @property
    def suggestions(self) -> Mapping[str, SuggestionRecord]:
        return self._tracker.suggestions

    @property
    def window_open(self) -> bool:
        return self._session.window_open

    @property
    def window_width(self) -> int:
        return self._session.window_width

    @property
    def session_ended(self) -> bool:
        return self._session.ended

    @property
    def is_assistant_enabled(self) -> bool:
        return bool(self._settings_provider().ai_assistant_enabled)

    @property
    def is_assistant_open(self) -> bool:
        return self.is_assistant_enabled and self._session.window_open

    def is_streaming(self) -> bool:
        return self._log.is_streaming()

    def is_node_error_active(self, context: ErrorContext) -> bool:
        """True when ``context`` belongs to the conversation already open."""
        return is_same_session(context, self._session.active_error_context)

    # ------------------------------------------------------------------
    # Window
    # ------------------------------------------------------------------

    def open_chat(self) -> None:
        self._set_window_open(True)

    def close_chat(self) -> None:
        self._set_window_open(False)

    def update_window_width(self, width: float) -> int:
        """Store ``width`` clamped to the supported range and return it."""
        clamped = clamp_chat_width(width)
        if clamped != self._session.window_width:
            self._session.window_width = clamped
            self._bus.publish(ChatWidthChanged(width=clamped))
        return clamped

    def _set_window_open(self, value: bool) -> None:
        if self._session.window_open == value:
            return
        self._session.window_open = value
        self._bus.publish(ChatVisibilityChanged(open=value))

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def init_error_helper(self, context: ErrorContext) -> bool:
        """Open a conversation about ``context`` unless it is already active.

        Returns True when a new conversation was started, False when the
        context matched the active one and nothing changed.
        """
        if self.is_node_error_active(context):
            LOGGER.debug(
                "Error on node %s already has an active session; keeping it",
                context.node.name,
            )
            return False

        self._log.clear()
        self._session.reset(context)
        self._bus.publish(
            ChatSessionStarted(node_name=context.node.name, error_message=context.error.message)
        )
        LOGGER.debug("Starting assistant session for node %s", context.node.name)

        self._log.append_assistant_loading()
        self.open_chat()

        await self._round_trip(
            InitErrorHelpRequest(
                error=context.error,
                node=context.node,
                user_first_name=self._user_first_name(),
            )
        )
        return True

    async def send_message(self, content: str, quick_reply_type: str | None = None) -> None:
        """Send a user message; works with or without an active error context."""
        if self._session.active_error_context is None:
            LOGGER.debug("Sending user message without an active error context")
        self._log.append_user(content)
        self._log.append_assistant_loading()
        await self._round_trip(
            UserMessageRequest(content=content, quick_reply_type=quick_reply_type)
        )

    async def send_event(self, event_name: InteractionEventName) -> ChatResponse:
        """Tell the service about an editor event without touching the log.

        Raises:
            ValueError: If ``event_name`` is not a known interaction event.
            AssistantServiceError: If the service call fails.
        """
        request = EventRequest(event=event_name)
        try:
            response = await self._transport.converse(request)
        except AssistantServiceError:
            LOGGER.warning("Failed to send assistant event %s", event_name, exc_info=True)
            raise
        except Exception as exc:
            LOGGER.warning("Failed to send assistant event %s", event_name, exc_info=True)
            raise AssistantServiceError(str(exc)) from exc
        self._assign_session_id(response.session_id)
        return response

    async def _round_trip(self, request: ChatRequestPayload) -> None:
        try:
            response = await self._transport.converse(request)
        except Exception as exc:
            self._handle_service_error(exc)
            return

        self._assign_session_id(response.session_id)
        end_markers = self._log.append_assistant_batch(response.messages)
        self._log.finalize_streaming()
        if end_markers:
            self._end_session()

    def _handle_service_error(self, exc: Exception) -> None:
        reason = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        LOGGER.warning("Assistant service request failed: %s", reason, exc_info=True)
        self._log.finalize_streaming()
        self._log.append_error(SERVICE_ERROR_TEMPLATE.format(reason=reason))
        self._bus.publish(ServiceErrorReported(error=reason))

    def _assign_session_id(self, session_id: str) -> None:
        if session_id == self._session.session_id:
            return
        self._session.session_id = session_id
        self._bus.publish(SessionIdAssigned(session_id=session_id))

    def _end_session(self) -> None:
        self._session.ended = True
        LOGGER.debug("Assistant session %s ended by the service", self._session.session_id)
        self._bus.publish(ChatSessionEnded(session_id=self._session.session_id))

    def _user_first_name(self) -> str:
        name = self._user_name_provider() if self._user_name_provider is not None else None
        if name:
            return name
        return self._settings_provider().user_first_name or ""

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    async def apply_suggestion(self, index: int) -> bool:
        """Apply the code-diff message at ``index`` to the errored node.

        Returns True when the node was updated, False when the attempt
        failed (the message is then flagged with ``error``).

        Raises:
            InvalidSuggestionError: If ``index`` is not a code-diff message.
            SessionInvariantError: If there is no active error context or
                session id, or the suggestion was already applied.
        """
        message = self._code_diff_at(index)
        context = self._session.active_error_context
        if context is None:
            raise SessionInvariantError("Cannot apply a suggestion without an active error context")
        session_id = self._session.session_id
        if not session_id:
            raise SessionInvariantError("Cannot apply a suggestion before a session id is assigned")
        return await self._tracker.apply(
            message,
            session_id=session_id,
            node_name=context.node.name,
        )

    async def undo_suggestion(self, index: int) -> bool:
        """Revert the suggestion at ``index``; currently unsupported, always False."""
        message = self._code_diff_at(index)
        return self._tracker.undo(message)

    def _code_diff_at(self, index: int) -> CodeDiffMessage:
        message = self._log.get(index)
        if message is None:
            raise InvalidSuggestionError(index, "No message at index")
        if not isinstance(message, CodeDiffMessage):
            raise InvalidSuggestionError(index)
        return message


__all__ = ["AssistantSessionCoordinator", "SERVICE_ERROR_TEMPLATE"]
