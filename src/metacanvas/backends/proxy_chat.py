"""Chat gateway posting to a completion proxy over HTTP."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from metacanvas import logger
from metacanvas.backends.openai_chat import serialize_messages
from metacanvas.exceptions import BackendError

if TYPE_CHECKING:
    from metacanvas.settings import Settings
    from metacanvas.typing.models import ChatMessage


class ProxyChatGateway:
    """Chat gateway for a proxy that holds the API key server-side.

    The proxy receives `{messages, model, temperature, modelKwargs}` and answers
    with an OpenAI-style completion payload.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        """Initialize gateway.

        Args:
            settings (Settings): Runtime settings.
            client (httpx.AsyncClient | None): HTTP client; defaults to the
                settings-owned LLM client.
        """
        self._settings = settings
        self._client = client

    def build_payload(self, messages: list[ChatMessage]) -> dict[str, Any]:
        """Build the proxy request body."""
        payload: dict[str, Any] = {
            "messages": serialize_messages(messages),
            "model": self._settings.openai_model,
            "temperature": self._settings.openai_temperature,
        }
        if self._settings.is_reasoning_model():
            payload["modelKwargs"] = {
                "reasoning_effort": self._settings.reasoning_effort,
                "verbosity": self._settings.verbosity,
            }
        return payload

    async def ainvoke(self, messages: list[ChatMessage]) -> dict[str, Any]:
        """Send one completion request to the proxy.

        Args:
            messages (list[ChatMessage]): Chat messages.

        Raises:
            BackendError: If the proxy is unreachable or answers with an error.

        Returns:
            dict[str, Any]: Completion payload.
        """
        url = self._settings.llm_proxy_url
        if not url:
            raise BackendError(message="LLM_PROXY_URL is required for the proxy gateway")

        client = self._client or self._settings.select_async_httpx_client("llm")
        if client is None:
            raise BackendError(message="httpx clients are not initialized in settings")

        try:
            response = await client.post(url, json=self.build_payload(messages))
        except httpx.TimeoutException as exc:
            raise BackendError(message="Proxy request timed out", transient=True) from exc
        except httpx.HTTPError as exc:
            raise BackendError(message=f"Proxy request failed: {exc}", transient=True) from exc

        if not response.is_success:
            logger.warning(
                "Proxy answered with an error status",
                extra={"status_code": response.status_code, "body": response.text[:500]},
            )
            raise BackendError(
                message=f"Proxy request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise BackendError(message="Proxy answered with invalid JSON") from exc
        if not isinstance(data, dict):
            raise BackendError(message="Proxy answered with an unexpected payload")
        return data
