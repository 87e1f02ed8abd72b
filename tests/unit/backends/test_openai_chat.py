from __future__ import annotations

import asyncio
from typing import Any

import httpx
import openai
import pytest

from metacanvas.backends.openai_chat import OpenAIChatGateway, response_content, serialize_messages
from metacanvas.exceptions import BackendError
from metacanvas.prompts import chat_messages
from metacanvas.settings import Settings


class _FakeCompletion:
    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    def model_dump(self, mode: str = "python") -> dict[str, Any]:
        assert mode == "json"
        return self._data


class _FakeCompletions:
    def __init__(self, result: Any = None, exc: Exception | None = None) -> None:
        self.result = result
        self.exc = exc
        self.kwargs: dict[str, Any] = {}

    async def create(self, **kwargs: Any) -> Any:
        self.kwargs = kwargs
        if self.exc is not None:
            raise self.exc
        return self.result


class _FakeClient:
    def __init__(self, completions: _FakeCompletions) -> None:
        self.chat = type("Chat", (), {"completions": completions})()


def _gateway(mocker: Any, completions: _FakeCompletions, **overrides: Any) -> OpenAIChatGateway:
    gateway = OpenAIChatGateway(Settings(openai_api_key="sk-test", **overrides))
    mocker.patch.object(gateway, "_client", return_value=_FakeClient(completions))
    return gateway


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://api.example/v1/chat/completions")


def test_response_content_reads_first_choice() -> None:
    assert response_content({"choices": [{"message": {"content": "hi"}}]}) == "hi"


@pytest.mark.parametrize(
    "payload",
    [{}, {"choices": []}, {"choices": [{"message": {}}]}, {"choices": [{"message": {"content": None}}]}],
)
def test_response_content_rejects_missing_content(payload: dict[str, Any]) -> None:
    with pytest.raises(BackendError, match="no message content"):
        response_content(payload)


def test_serialize_messages_uses_wire_roles() -> None:
    assert serialize_messages(chat_messages("hello")) == [{"role": "user", "content": "hello"}]


def test_payload_for_plain_model() -> None:
    gateway = OpenAIChatGateway(Settings(openai_model="gpt-4.1-mini", openai_temperature=0.3))

    payload = gateway.build_payload(chat_messages("x"))

    assert payload == {"model": "gpt-4.1-mini", "messages": [{"role": "user", "content": "x"}], "temperature": 0.3}


def test_payload_for_reasoning_model_carries_effort_and_verbosity() -> None:
    settings = Settings(openai_model="gpt-5-mini", reasoning_effort="low", verbosity="medium")

    payload = OpenAIChatGateway(settings).build_payload(chat_messages("x"))

    assert payload["reasoning_effort"] == "low"
    assert payload["verbosity"] == "medium"


def test_ainvoke_returns_completion_payload(mocker: Any) -> None:
    data = {"choices": [{"message": {"content": '{"a": 1}'}}], "usage": {"prompt_tokens": 3, "completion_tokens": 2}}
    completions = _FakeCompletions(result=_FakeCompletion(data))
    gateway = _gateway(mocker, completions, openai_model="gpt-4.1-mini")

    assert asyncio.run(gateway.ainvoke(chat_messages("x"))) == data
    assert completions.kwargs["model"] == "gpt-4.1-mini"


@pytest.mark.parametrize(
    ("exc", "message", "retryable"),
    [
        (
            openai.APIStatusError(
                "boom",
                response=httpx.Response(503, request=_request()),
                body=None,
            ),
            "failed with status 503",
            True,
        ),
        (openai.APITimeoutError(request=_request()), "timed out", True),
        (openai.APIConnectionError(request=_request()), "Chat completion request failed", True),
        (RuntimeError("unexpected"), "Chat completion request failed: unexpected", False),
    ],
)
def test_ainvoke_maps_sdk_errors(mocker: Any, exc: Exception, message: str, retryable: bool) -> None:
    gateway = _gateway(mocker, _FakeCompletions(exc=exc))

    with pytest.raises(BackendError, match=message) as exc_info:
        asyncio.run(gateway.ainvoke(chat_messages("x")))
    assert exc_info.value.retryable is retryable


def test_missing_api_key_is_rejected() -> None:
    gateway = OpenAIChatGateway(Settings(openai_api_key=None))

    with pytest.raises(BackendError, match="OPENAI_API_KEY"):
        asyncio.run(gateway.ainvoke(chat_messages("x")))


def test_client_uses_settings_http_client() -> None:
    settings = Settings(openai_api_key="sk-test", openai_base_url="https://llm.example/v1")

    client = OpenAIChatGateway(settings)._client()

    assert isinstance(client, openai.AsyncOpenAI)
    assert str(client.base_url).startswith("https://llm.example/v1")
