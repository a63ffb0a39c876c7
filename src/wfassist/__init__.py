"""Session coordination for the workflow error assistant."""

from .bootstrap import AssistantRuntime, create_runtime, load_settings
from .domain.session_coordinator import AssistantSessionCoordinator
from .events import EventBus

__all__ = [
    "AssistantRuntime",
    "AssistantSessionCoordinator",
    "EventBus",
    "create_runtime",
    "load_settings",
]
