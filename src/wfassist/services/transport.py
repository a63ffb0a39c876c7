"""Async transport to the remote assistant service built on httpx."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Protocol, runtime_checkable

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import AssistantServiceError
from ..models.payloads import (
    ApplySuggestionRequest,
    ApplySuggestionResponse,
    ChatRequestPayload,
    ChatResponse,
)

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .settings import Settings

LOGGER = logging.getLogger(__name__)

CHAT_ENDPOINT = "/ai-assistant/chat"
APPLY_SUGGESTION_ENDPOINT = "/ai-assistant/chat/apply-suggestion"
_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


@runtime_checkable
class AssistantTransport(Protocol):
    """The two remote operations the session coordinator depends on."""

    async def converse(self, request: ChatRequestPayload) -> ChatResponse:
        ...

    async def apply_suggestion(self, request: ApplySuggestionRequest) -> ApplySuggestionResponse:
        ...


@dataclass(slots=True)
class TransportSettings:
    """Subset of settings required to reach the assistant service."""

    base_url: str
    api_key: str = ""
    request_timeout: float | None = 30.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> TransportSettings:
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=dict(settings.default_headers),
            debug_logging=settings.debug_logging,
        )


class _RetryableStatusError(Exception):
    """Internal marker for responses worth retrying (throttling, 5xx)."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class HttpAssistantTransport:
    """Posts chat and apply-suggestion requests with retry semantics."""

    def __init__(
        self,
        settings: TransportSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> TransportSettings:
        return self._settings

    async def converse(self, request: ChatRequestPayload) -> ChatResponse:
        payload = request.to_payload()
        LOGGER.debug("Sending %s request to assistant service", payload["action"])
        body = await self._post(CHAT_ENDPOINT, payload)
        return ChatResponse.from_payload(body)

    async def apply_suggestion(self, request: ApplySuggestionRequest) -> ApplySuggestionResponse:
        LOGGER.debug(
            "Requesting suggestion %s for session %s",
            request.suggestion_id,
            request.session_id,
        )
        body = await self._post(APPLY_SUGGESTION_ENDPOINT, request.to_payload())
        return ApplySuggestionResponse.from_payload(body)

    async def _post(self, path: str, payload: Mapping[str, Any]) -> Any:
        if self._settings.debug_logging:
            self._log_payload(path, payload)
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.post(path, json=dict(payload))
                    if response.status_code in _RETRYABLE_STATUS:
                        raise _RetryableStatusError(response)
        except _RetryableStatusError as exc:
            raise AssistantServiceError(
                _describe_failure(exc.response), status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise AssistantServiceError(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise AssistantServiceError(
                _describe_failure(response), status_code=response.status_code
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise AssistantServiceError(
                "Assistant service returned a non-JSON body",
                status_code=response.status_code,
            ) from exc
        # The REST layer wraps payloads as {"data": ...}
        if isinstance(body, Mapping) and set(body) == {"data"}:
            return body["data"]
        return body

    def _build_client(self, settings: TransportSettings) -> httpx.AsyncClient:
        headers: Dict[str, str] = dict(settings.default_headers or {})
        if settings.api_key:
            headers.setdefault("Authorization", f"Bearer {settings.api_key}")
        return httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            headers=headers,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type((httpx.TransportError, _RetryableStatusError)),
        )

    def _log_payload(self, path: str, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Assistant payload for %s (unserializable): %s", path, payload)
        else:
            LOGGER.debug("Assistant payload for %s:\n%s", path, serialized)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def _describe_failure(response: httpx.Response) -> str:
    detail = ""
    try:
        body = response.json()
    except ValueError:
        detail = response.text.strip()
    else:
        if isinstance(body, Mapping):
            detail = str(body.get("message") or body.get("error") or "")
    if detail:
        return f"{response.status_code}: {detail}"
    return f"Assistant service responded with HTTP {response.status_code}"


__all__ = [
    "AssistantTransport",
    "TransportSettings",
    "HttpAssistantTransport",
    "CHAT_ENDPOINT",
    "APPLY_SUGGESTION_ENDPOINT",
]
