"""Applies assistant parameter suggestions and remembers what they replaced."""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Callable, Iterable, Mapping

from ..errors import SessionInvariantError
from ..events import EventBus, SuggestionApplied, SuggestionFailed
from ..models.messages import CodeDiffMessage
from ..models.payloads import ApplySuggestionRequest
from ..models.session import SuggestionRecord
from ..services.transport import AssistantTransport
from ..services.workflow import WorkflowProvider

LOGGER = logging.getLogger(__name__)


class SuggestionTracker:
    """Drives the apply state machine of code-diff messages.

    Each :class:`CodeDiffMessage` moves ``idle -> replacing`` when an
    apply starts and ends in ``replaced`` or ``error``. Successful applies
    are recorded as before/after snapshots keyed by suggestion id. Records
    are kept for the lifetime of the tracker.

    Events Emitted:
        - SuggestionApplied: After parameters were written to the node
        - SuggestionFailed: When the service or the node lookup fails
    """

    def __init__(
        self,
        transport: AssistantTransport,
        workflow: WorkflowProvider,
        event_bus: EventBus | None = None,
        *,
        on_message_changed: Callable[[], None] | None = None,
    ) -> None:
        self._transport = transport
        self._workflow = workflow
        self._bus = event_bus
        self._on_message_changed = on_message_changed
        self._suggestions: dict[str, SuggestionRecord] = {}

    @property
    def suggestions(self) -> Mapping[str, SuggestionRecord]:
        return self._suggestions

    def get(self, suggestion_id: str) -> SuggestionRecord | None:
        return self._suggestions.get(suggestion_id)

    async def apply(self, message: CodeDiffMessage, *, session_id: str, node_name: str) -> bool:
        """Fetch the suggested parameters and write them onto ``node_name``.

        Returns True when the node was updated. Failures are recorded on
        the message (``error``) rather than raised.

        Raises:
            SessionInvariantError: If the message was already applied or
                an apply for it is still in flight.
        """
        if message.replacing:
            raise SessionInvariantError(
                f"Suggestion {message.suggestion_id} is already being applied"
            )
        if message.replaced:
            raise SessionInvariantError(
                f"Suggestion {message.suggestion_id} has already been applied"
            )

        suggestion_id = message.suggestion_id
        message.error = False
        message.replacing = True
        self._changed()
        LOGGER.debug("Applying suggestion %s to node %s", suggestion_id, node_name)

        try:
            response = await self._transport.apply_suggestion(
                ApplySuggestionRequest(session_id=session_id, suggestion_id=suggestion_id)
            )
            suggested = response.parameters
            node = self._workflow.get_node(node_name)
            if node is None:
                raise LookupError(f"Node {node_name!r} is not in the current workflow")

            record = SuggestionRecord(
                previous_parameters=_relevant_parameters(node.parameters, suggested.keys()),
                suggested_parameters=deepcopy(suggested),
            )
            self._workflow.merge_node_parameters(node.name, suggested)
            # Only a merged suggestion gets a record
            self._suggestions[suggestion_id] = record
            message.replaced = True
        except Exception as exc:
            LOGGER.exception("Failed to apply suggestion %s", suggestion_id)
            message.error = True
            if self._bus is not None:
                self._bus.publish(SuggestionFailed(suggestion_id=suggestion_id, error=str(exc)))
            return False
        finally:
            message.replacing = False
            self._changed()

        if self._bus is not None:
            self._bus.publish(
                SuggestionApplied(
                    suggestion_id=suggestion_id,
                    node_name=node_name,
                    parameter_keys=tuple(suggested.keys()),
                )
            )
        return True

    def undo(self, message: CodeDiffMessage) -> bool:
        """Revert an applied suggestion.

        Reverting is not defined yet: nothing is changed and False is
        returned. The recorded ``previous_parameters`` are left intact.
        """
        LOGGER.warning(
            "Undo requested for suggestion %s but undo is not supported; nothing changed",
            message.suggestion_id,
        )
        return False

    def _changed(self) -> None:
        if self._on_message_changed is not None:
            self._on_message_changed()


def _relevant_parameters(parameters: Mapping[str, Any], keys: Iterable[str]) -> dict[str, Any]:
    """Deep-copy the current values of ``keys``; absent keys snapshot as None."""
    return {key: deepcopy(parameters.get(key)) for key in keys}


__all__ = ["SuggestionTracker"]
