"""Decides whether a surfaced error belongs to the active conversation."""

from __future__ import annotations

from ..models.error_context import ErrorContext


def is_same_session(candidate: ErrorContext | None, active: ErrorContext | None) -> bool:
    """Return True when both contexts name the same node and error message.

    Only ``node.name`` and ``error.message`` are compared, as exact strings.
    Two different failures that produce the same message on the same node
    are therefore treated as one conversation.
    """
    if candidate is None or active is None:
        return False
    return (
        candidate.node.name == active.node.name
        and candidate.error.message == active.error.message
    )


__all__ = ["is_same_session"]
