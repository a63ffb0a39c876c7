"""Domain layer for the assistant chat session.

Domain components:
    - is_same_session: Error context matching
    - MessageLog: Ordered chat log and streaming placeholder reconciliation
    - SuggestionTracker: Code-diff apply state machine and snapshots
    - AssistantSessionCoordinator: Session identity and orchestration

All components receive their collaborators through the constructor and
announce state changes on the event bus.
"""

from __future__ import annotations

from .matcher import is_same_session
from .message_log import MessageLog
from .suggestion_tracker import SuggestionTracker
from .session_coordinator import AssistantSessionCoordinator

__all__: list[str] = [
    "is_same_session",
    "MessageLog",
    "SuggestionTracker",
    "AssistantSessionCoordinator",
]
