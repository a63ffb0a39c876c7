"""Service layer helpers (transport, workflow access, settings)."""

from .settings import SecretVault, Settings, SettingsStore
from .transport import AssistantTransport, HttpAssistantTransport, TransportSettings
from .workflow import InMemoryWorkflow, WorkflowNode, WorkflowProvider

__all__ = [
    "AssistantTransport",
    "HttpAssistantTransport",
    "TransportSettings",
    "InMemoryWorkflow",
    "WorkflowNode",
    "WorkflowProvider",
    "SecretVault",
    "Settings",
    "SettingsStore",
]
