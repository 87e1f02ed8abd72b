"""Package exceptions."""

from __future__ import annotations

from dataclasses import dataclass

# Gateway statuses worth retrying on a later extraction run.
_RETRYABLE_STATUS_CODES = frozenset({408, 409, 429})


class PackageError(Exception):
    """Root exception for the package."""


@dataclass(frozen=True)
class SettingsError(PackageError):
    """Raised when settings cannot be loaded or validated."""

    message: str = "Failed to load settings"
    exc: BaseException | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message}: {self.exc}" if self.exc else self.message


@dataclass(frozen=True)
class AsyncExecutionError(PackageError):
    """Raised when a coroutine run through `run_async` on a worker thread fails."""

    result: BaseException
    message: str = "Async operation failed"

    def __str__(self) -> str:
        return f"{self.message}: {self.result}"


@dataclass(frozen=True)
class BackendError(PackageError):
    """Raised when a chat gateway call fails or returns an unusable payload.

    Attributes:
        message: Human readable reason, shown as the field error in the canvas.
        status_code: HTTP status returned by the gateway, if it answered.
        transient: Set when the request never got an answer (timeout or
            connection error).
    """

    message: str
    status_code: int | None = None
    transient: bool = False

    @property
    def retryable(self) -> bool:
        """Whether re-running the field extraction may succeed."""
        if self.transient:
            return True
        if self.status_code is None:
            return False
        return self.status_code >= 500 or self.status_code in _RETRYABLE_STATUS_CODES  # noqa: PLR2004

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ExtractionError(PackageError):
    """Raised when a batch extraction cannot run at all."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class DependencyError(PackageError):
    """Raised when runtime dependencies of a command are missing."""

    missing_package: list[str]
    message: str

    def __str__(self) -> str:
        """Return error message payload."""
        return f"Missing runtime dependencies for '{self.message}': {', '.join(self.missing_package)}"


@dataclass
class SchemaStoreError(PackageError):
    """Raised when a schema file cannot be found or decoded.

    Attributes:
        message: Reason the schema could not be used.
        schema_file: Schema or vocabulary file the error relates to, if known.
    """

    message: str
    schema_file: str | None = None

    def __str__(self) -> str:
        if self.schema_file and self.schema_file not in self.message:
            return f"{self.message} [{self.schema_file}]"
        return self.message


@dataclass(frozen=True)
class GeocodingError(PackageError):
    """Raised when the geocoding endpoint cannot be reached."""

    query: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (query={self.query!r})"
