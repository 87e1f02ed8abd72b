"""OpenAI-compatible chat completion gateway."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

import openai as openai_sdk

from metacanvas import logger
from metacanvas.exceptions import BackendError

if TYPE_CHECKING:
    from metacanvas.settings import Settings
    from metacanvas.typing.models import ChatMessage


def response_content(payload: dict[str, Any]) -> str:
    """Return `choices[0].message.content` of a completion payload.

    Args:
        payload (dict[str, Any]): OpenAI-style completion payload.

    Raises:
        BackendError: If the payload holds no message content.

    Returns:
        str: Message content.
    """
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise BackendError(message="Completion payload holds no message content") from exc
    if not isinstance(content, str):
        raise BackendError(message="Completion payload holds no message content")
    return content


def serialize_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """Return messages in the wire format of the chat completions API."""
    return [{"role": message.role.to_str(), "content": message.content} for message in messages]


class OpenAIChatGateway:
    """Chat gateway calling an OpenAI-compatible endpoint through the SDK."""

    def __init__(self, settings: Settings) -> None:
        """Initialize gateway.

        Args:
            settings (Settings): Runtime settings.
        """
        self._settings = settings

    def build_payload(self, messages: list[ChatMessage]) -> dict[str, Any]:
        """Build the completion request.

        Reasoning-capable models additionally receive `reasoning_effort` and
        `verbosity`.

        Args:
            messages (list[ChatMessage]): Chat messages.

        Returns:
            dict[str, Any]: Keyword arguments for `chat.completions.create`.
        """
        payload: dict[str, Any] = {
            "model": self._settings.openai_model,
            "messages": serialize_messages(messages),
            "temperature": self._settings.openai_temperature,
        }
        if self._settings.is_reasoning_model():
            payload["reasoning_effort"] = self._settings.reasoning_effort
            payload["verbosity"] = self._settings.verbosity
        return payload

    def _client(self) -> openai_sdk.AsyncOpenAI:
        if not self._settings.openai_api_key:
            raise BackendError(message="OPENAI_API_KEY is required for the OpenAI gateway")

        client = self._settings.select_async_httpx_client("llm")
        if client is None:
            raise BackendError(message="httpx clients are not initialized in settings")
        return openai_sdk.AsyncOpenAI(
            api_key=self._settings.openai_api_key,
            base_url=self._settings.openai_base_url,
            http_client=cast("Any", client),
        )

    async def ainvoke(self, messages: list[ChatMessage]) -> dict[str, Any]:
        """Send one completion request.

        Args:
            messages (list[ChatMessage]): Chat messages.

        Raises:
            BackendError: If the request fails or the endpoint is misconfigured.

        Returns:
            dict[str, Any]: Completion payload.
        """
        openai_client = self._client()
        payload = self.build_payload(messages)

        try:
            completion = await openai_client.chat.completions.create(**payload)
        except openai_sdk.APIStatusError as exc:
            raise BackendError(
                message=f"Chat completion request failed with status {exc.status_code}",
                status_code=exc.status_code,
            ) from exc
        except openai_sdk.APITimeoutError as exc:
            raise BackendError(message="Chat completion request timed out", transient=True) from exc
        except openai_sdk.APIConnectionError as exc:
            raise BackendError(message=f"Chat completion request failed: {exc}", transient=True) from exc
        except Exception as exc:
            raise BackendError(message=f"Chat completion request failed: {exc}") from exc

        data = completion.model_dump(mode="json")
        usage = data.get("usage") or {}
        logger.debug(
            "Chat completion received",
            extra={
                "model": payload["model"],
                "input_tokens": usage.get("prompt_tokens"),
                "output_tokens": usage.get("completion_tokens"),
            },
        )
        return data
