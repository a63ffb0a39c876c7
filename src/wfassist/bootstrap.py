"""Factory that wires an assistant session from persisted settings.

The bootstrap process:
1. Loads :class:`Settings` through :class:`SettingsStore` (file, CLI-style
   overrides, ``WFASSIST_*`` environment)
2. Configures logging from ``debug_logging`` and ``log_dir``
3. Builds the HTTP transport from the settings
4. Instantiates the session coordinator with the caller's workflow

Usage::

    runtime = create_runtime(workflow)
    await runtime.coordinator.init_error_helper(context)
    ...
    await runtime.aclose()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

import httpx

from .domain.session_coordinator import AssistantSessionCoordinator
from .events import EventBus
from .services.settings import Settings, SettingsStore, redact_secret
from .services.transport import HttpAssistantTransport, TransportSettings
from .services.workflow import WorkflowProvider
from .utils import logging as logging_utils

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AssistantRuntime:
    """Components returned by :func:`create_runtime`."""

    settings: Settings
    transport: HttpAssistantTransport
    coordinator: AssistantSessionCoordinator

    @property
    def event_bus(self) -> EventBus:
        return self.coordinator.event_bus

    async def aclose(self) -> None:
        await self.transport.aclose()


def load_settings(
    path: Path | None = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults when the file is unreadable."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def create_runtime(
    workflow: WorkflowProvider,
    *,
    settings: Settings | None = None,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
    client: httpx.AsyncClient | None = None,
    user_name_provider: Callable[[], str | None] | None = None,
    event_bus: EventBus | None = None,
    setup_logging: bool = True,
    console_logging: bool = True,
) -> AssistantRuntime:
    """Create and wire the assistant session components.

    Args:
        workflow: Provider for the nodes of the open workflow.
        settings: Ready settings; when omitted they are loaded from ``store``.
        store: Settings store to load from. Defaults to ``~/.wfassist``.
        overrides: CLI-style overrides applied on load.
        client: Pre-built httpx client, mainly for tests.
        user_name_provider: Returns the current user's first name.
        event_bus: Shared bus; a private one is created when omitted.
        setup_logging: Configure root logging from the settings.
        console_logging: Also log to stderr when configuring logging.
    """

    if settings is None:
        settings = load_settings(store=store, overrides=overrides)
    if setup_logging:
        logging_utils.configure_logging_from_settings(settings, console=console_logging)

    transport = HttpAssistantTransport(TransportSettings.from_settings(settings), client=client)
    coordinator = AssistantSessionCoordinator(
        transport,
        workflow,
        settings_provider=lambda: settings,
        user_name_provider=user_name_provider,
        event_bus=event_bus,
    )
    LOGGER.info(
        "Assistant session ready (service=%s, api_key=%s, enabled=%s)",
        settings.base_url,
        redact_secret(settings.api_key) or "<none>",
        settings.ai_assistant_enabled,
    )
    return AssistantRuntime(settings=settings, transport=transport, coordinator=coordinator)


__all__ = ["AssistantRuntime", "create_runtime", "load_settings"]
