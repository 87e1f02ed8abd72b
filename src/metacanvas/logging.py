"""Structlog configuration for package-wide logging."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

from metacanvas.settings import Settings, get_settings

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

    from structlog.typing import EventDict, Processor

# Source texts and raw model answers end up in log records; keep records readable.
MAX_LOGGED_VALUE_LENGTH = 300

_LOGGING_CONFIGURED = False


def _rename_event_key(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Store the log event under a "message" key.

    Args:
        logger: The logger instance (unused).
        method_name: The logging method name (unused).
        event_dict: The original event dictionary.

    Returns:
        The event dictionary with "message" instead of "event".
    """
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def _shorten(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_LOGGED_VALUE_LENGTH:
        return f"{value[:MAX_LOGGED_VALUE_LENGTH]}... ({len(value)} chars)"
    if isinstance(value, dict):
        return {key: _shorten(item) for key, item in value.items()}
    return value


def _truncate_long_values(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Shorten long string values, including those nested in `extra`."""
    return {key: value if key == "event" else _shorten(value) for key, value in event_dict.items()}


def _app_context(settings: Settings) -> Processor:
    """Return a processor stamping every record with the application environment."""

    def _add_app_context(
        logger: logging.Logger,  # noqa: ARG001
        method_name: str,  # noqa: ARG001
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("app", settings.project_name)
        event_dict.setdefault("env", settings.app_env)
        return event_dict

    return _add_app_context


def configure_logging(*, settings: Settings | None = None, force: bool = False) -> None:
    """Configure structlog and stdlib logging once for the package.

    Records carry the values bound with `bind_log_context`, the application
    name and environment, an ISO timestamp and the level. They are rendered as
    JSON unless `LOG_JSON` is false.

    Args:
        settings (Settings | None): Runtime settings; defaults to `get_settings()`.
        force (bool): Reconfigure even when logging is already configured.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603

    if _LOGGING_CONFIGURED and not force:
        return

    config = settings or get_settings()
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=handlers,
        force=force,
    )
    # The SDK and httpx log every request at INFO; field batches make dozens of them.
    for noisy in ("httpx", "openai"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    renderer: Any = structlog.processors.JSONRenderer(ensure_ascii=False)
    if not config.log_json:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _app_context(config),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            _truncate_long_values,
            _rename_event_key,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_CONFIGURED = True


def bind_log_context(**values: Any) -> AbstractContextManager[Any]:
    """Bind values to every record logged inside the block, across awaited tasks.

    Tasks created inside the block inherit the values.

    Returns:
        AbstractContextManager[Any]: Context manager restoring the previous values.
    """
    return structlog.contextvars.bound_contextvars(**values)


def get_logger(name: str = "metacanvas") -> structlog.BoundLogger:
    """Return package logger, configuring logging lazily."""
    if not _LOGGING_CONFIGURED:
        configure_logging()
    return structlog.get_logger(name)
