"""MetaCanvas package."""

from metacanvas.async_runner import run_async
from metacanvas.exceptions import (
    AsyncExecutionError,
    BackendError,
    DependencyError,
    ExtractionError,
    GeocodingError,
    PackageError,
    SchemaStoreError,
    SettingsError,
)
from metacanvas.logging import configure_logging, get_logger
from metacanvas.settings import Settings, get_settings

__version__ = "0.1.0"

# Initialize package logger at import time via `get_logger`.
logger = get_logger("metacanvas")

__all__ = [
    "AsyncExecutionError",
    "BackendError",
    "DependencyError",
    "ExtractionError",
    "GeocodingError",
    "PackageError",
    "SchemaStoreError",
    "Settings",
    "SettingsError",
    "__version__",
    "configure_logging",
    "get_logger",
    "get_settings",
    "logger",
    "run_async",
]
