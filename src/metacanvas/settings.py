"""Runtime settings loaded from `.env` and environment variables."""

from __future__ import annotations

import asyncio
import logging
import ssl
from functools import lru_cache
from pathlib import Path
from typing import Any

import certifi
import httpx
from pydantic import Field, PrivateAttr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from metacanvas.exceptions import SettingsError

BUNDLED_SCHEMA_DIR = Path(__file__).parent / "schemas"
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Package settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    project_name: str = "metacanvas"
    app_env: str = Field(
        default="dev",
        validation_alias="APP_ENV",
        description="Application environment, e.g. 'dev', 'prod'.",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level, e.g. 'INFO', 'DEBUG'.",
    )
    log_json: bool = Field(
        default=True,
        validation_alias="LOG_JSON",
        description="Enable JSON formatted logs.",
    )
    log_file: str | None = Field(
        default=None,
        validation_alias="LOG_FILE",
        description="File path for log output.",
    )
    http_proxy: str | None = Field(default=None, validation_alias="HTTP_PROXY", description="HTTP proxy URL.")
    https_proxy: str | None = Field(
        default=None,
        validation_alias="HTTPS_PROXY",
        description="HTTPS proxy URL.",
    )
    all_proxy: str | None = Field(default=None, validation_alias="ALL_PROXY", description="All proxy URL.")
    cert_path: str | None = Field(
        default=None,
        validation_alias="CERT_PATH",
        description="Path to a CA bundle used instead of the system store.",
    )
    max_connections: int = Field(
        default=20,
        validation_alias="MAX_CONNECTIONS",
        description="Maximum number of pooled HTTP connections.",
    )

    llm_timeout_ms: int = Field(
        default=30_000,
        ge=1,
        validation_alias="LLM_TIMEOUT_MS",
        description="Timeout of one LLM gateway call in milliseconds.",
    )
    max_workers: int = Field(
        default=10,
        ge=1,
        validation_alias="MAX_WORKERS",
        description="Number of field extractions running in parallel.",
    )

    openai_base_url: str | None = Field(
        default=None,
        validation_alias="OPENAI_BASE_URL",
        description="Base URL of an OpenAI-compatible endpoint.",
    )
    openai_api_key: str | None = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
        description="API key for the OpenAI-compatible endpoint.",
    )
    openai_model: str = Field(
        default="gpt-4.1-mini",
        validation_alias="OPENAI_MODEL",
        description="Chat model used for field extraction.",
    )
    openai_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        validation_alias="OPENAI_TEMPERATURE",
        description="Sampling temperature.",
    )
    reasoning_effort: str = Field(
        default="medium",
        validation_alias="REASONING_EFFORT",
        description="Reasoning effort sent to reasoning-capable models ('low', 'medium', 'high').",
    )
    verbosity: str = Field(
        default="low",
        validation_alias="VERBOSITY",
        description="Verbosity sent to reasoning-capable models ('low', 'medium', 'high').",
    )
    reasoning_model_prefix: str = Field(
        default="gpt-5",
        validation_alias="REASONING_MODEL_PREFIX",
        description="Model id prefix that marks reasoning-capable models.",
    )
    llm_proxy_url: str | None = Field(
        default=None,
        validation_alias="LLM_PROXY_URL",
        description="Completion proxy URL; when set, requests go through the proxy instead of the SDK.",
    )

    schema_dir: str | None = Field(
        default=None,
        validation_alias="SCHEMA_DIR",
        description="Directory holding the JSON schema files. Defaults to the bundled schemas.",
    )
    core_schema_file: str = Field(
        default="core.json",
        validation_alias="CORE_SCHEMA_FILE",
        description="Schema file providing the core fields.",
    )
    content_type_field_id: str = Field(
        default="ccm:oeh_flex_lrt",
        validation_alias="CONTENT_TYPE_FIELD_ID",
        description="Core field holding the content type; it selects the special schema.",
    )
    content_type_min_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        validation_alias="CONTENT_TYPE_MIN_CONFIDENCE",
        description="Detection confidence that must be exceeded to accept a content type.",
    )
    extraction_confidence: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        validation_alias="EXTRACTION_CONFIDENCE",
        description="Confidence assigned to a non-null extracted value.",
    )

    geocoding_url: str = Field(
        default="https://photon.komoot.io/api/",
        validation_alias="GEOCODING_URL",
        description="Photon-compatible geocoding endpoint.",
    )
    geocoding_language: str = Field(
        default="de",
        validation_alias="GEOCODING_LANGUAGE",
        description="Language of geocoding results.",
    )

    results_dir: str = Field(
        default="results",
        validation_alias="RESULTS_DIR",
        description="Directory to store results.",
    )
    _httpx_clients: dict[str, httpx.AsyncClient] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: object, /) -> None:
        """Initialize derived runtime settings."""
        self._initialize_httpx_clients()

    @property
    def timeout(self) -> float:
        """Return the LLM call timeout in seconds."""
        return self.llm_timeout_ms / 1000

    @property
    def schema_path(self) -> Path:
        """Return the schema directory."""
        return Path(self.schema_dir) if self.schema_dir else BUNDLED_SCHEMA_DIR

    @property
    def httpx_clients(self) -> dict[str, httpx.AsyncClient]:
        """Return cached HTTPX clients."""
        return self._httpx_clients

    def is_reasoning_model(self, model: str | None = None) -> bool:
        """Return whether the model id denotes a reasoning-capable variant."""
        return (model or self.openai_model).startswith(self.reasoning_model_prefix)

    def select_async_httpx_client(self, purpose: str = "llm") -> httpx.AsyncClient | None:
        """Return the async HTTPX client used for `purpose` ('llm' or 'geocoding')."""
        return self._httpx_clients.get(purpose)

    def _initialize_httpx_clients(self) -> None:
        """Create and cache the async HTTPX clients."""
        limits = httpx.Limits(max_connections=self.max_connections)
        self._httpx_clients = {
            "llm": httpx.AsyncClient(**build_httpx_client_kwargs(self), limits=limits),
            "geocoding": httpx.AsyncClient(**build_httpx_client_kwargs(self), limits=limits),
        }

    def close_httpx_clients(self) -> None:
        """Close cached HTTPX clients from a sync context (best effort)."""
        if not self._httpx_clients:
            return

        clients = tuple(self._httpx_clients.items())
        self._httpx_clients = {}
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._aclose_clients(clients))
            return
        logger.warning("close_httpx_clients called inside a running loop; use aclose_httpx_clients")

    async def aclose_httpx_clients(self) -> None:
        """Asynchronously close cached HTTPX clients."""
        if not self._httpx_clients:
            return

        clients = tuple(self._httpx_clients.items())
        self._httpx_clients = {}
        await self._aclose_clients(clients)

    @staticmethod
    async def _aclose_clients(clients: tuple[tuple[str, httpx.AsyncClient], ...]) -> None:
        """Close async HTTPX clients with best effort."""
        for key, client in clients:
            try:
                await client.aclose()
            except Exception:
                logger.warning("Failed to close async HTTPX client", extra={"client_key": key})


def _get_certifi_cafile() -> str:
    """Return the certifi CA bundle path."""
    return certifi.where()


def _cert_store_has_ca(context: ssl.SSLContext) -> bool:
    """Return whether the SSL context loaded at least one CA certificate."""
    return context.cert_store_stats().get("x509_ca", 0) > 0


def build_ssl_context(settings: Settings) -> ssl.SSLContext:
    """Build a strict SSL context from settings.

    Falls back to the certifi bundle when no `CERT_PATH` is configured and the
    host trust store is empty.

    Args:
        settings (Settings): Runtime settings.

    Returns:
        ssl.SSLContext: Configured TLS context.
    """
    ssl_context = ssl.create_default_context(cafile=settings.cert_path)
    if settings.cert_path is None and not _cert_store_has_ca(ssl_context):
        ssl_context = ssl.create_default_context(cafile=_get_certifi_cafile())
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2
    return ssl_context


def build_httpx_client_kwargs(settings: Settings) -> dict[str, Any]:
    """Build kwargs used for `httpx.AsyncClient`.

    Args:
        settings (Settings): Runtime settings.

    Returns:
        dict[str, Any]: Arguments for the client constructor.
    """
    proxy_url = settings.https_proxy or settings.http_proxy or settings.all_proxy

    kwargs: dict[str, Any] = {
        "verify": build_ssl_context(settings),
        "timeout": settings.timeout,
    }
    if proxy_url:
        kwargs["proxy"] = proxy_url
    return kwargs


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance.

    Raises:
        SettingsError: If settings cannot be loaded or validated.

    Returns:
        Settings: The loaded settings instance.
    """
    try:
        return Settings()
    except Exception as exc:
        if _is_missing_settings_error(exc):
            try:
                ensure_env_file_exists()
                return Settings()
            except Exception as retry_exc:
                raise SettingsError(exc=retry_exc) from retry_exc
        raise SettingsError(exc=exc) from exc


def ensure_env_file_exists(
    *,
    env_path: Path = Path(".env"),
    template_path: Path = Path(".env.template"),
) -> None:
    """Create `.env` from template when missing.

    Args:
        env_path (Path): Target environment file path.
        template_path (Path): Template file path.
    """
    if env_path.exists() or not template_path.exists():
        return
    env_path.write_text(template_path.read_text(encoding="utf-8"), encoding="utf-8")
    logger.info(
        "Created environment file from template",
        extra={"env_path": str(env_path), "template_path": str(template_path)},
    )


def _is_missing_settings_error(exc: Exception) -> bool:
    """Return whether the settings failure is due to missing values."""
    if not isinstance(exc, ValidationError):
        return False
    return any(error.get("type") == "missing" for error in exc.errors())
