"""LLM gateways and HTTP backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from metacanvas.backends.geocoding import PhotonGeocoder
from metacanvas.backends.openai_chat import OpenAIChatGateway, response_content
from metacanvas.backends.proxy_chat import ProxyChatGateway

if TYPE_CHECKING:
    from metacanvas.settings import Settings
    from metacanvas.typing.protocol import ChatGateway


def build_chat_gateway(settings: Settings) -> ChatGateway:
    """Return the proxy gateway when `LLM_PROXY_URL` is set, else the SDK gateway."""
    if settings.llm_proxy_url:
        return ProxyChatGateway(settings)
    return OpenAIChatGateway(settings)


__all__ = [
    "OpenAIChatGateway",
    "PhotonGeocoder",
    "ProxyChatGateway",
    "build_chat_gateway",
    "response_content",
]
