"""Runtime dependency checks for the package and its CLI commands."""

from __future__ import annotations

import importlib.util

from metacanvas.exceptions import DependencyError

# Distribution name -> import name, per entry point.
REQUIREMENTS: dict[str, dict[str, str]] = {
    "package import": {
        "httpx": "httpx",
        "pydantic": "pydantic",
        "pydantic-settings": "pydantic_settings",
        "structlog": "structlog",
        "certifi": "certifi",
    },
    "extract": {
        "openai": "openai",
        "httpx": "httpx",
    },
}


def _is_module_available(module_name: str) -> bool:
    return importlib.util.find_spec(module_name) is not None


def missing_dependencies(purpose: str) -> list[str]:
    """Return the distributions missing for an entry point.

    Args:
        purpose (str): Key of `REQUIREMENTS`, e.g. `"extract"`.

    Returns:
        list[str]: Missing distribution names, in declaration order.
    """
    return [package for package, module in REQUIREMENTS[purpose].items() if not _is_module_available(module)]


def _ensure(purpose: str) -> None:
    missing = missing_dependencies(purpose)
    if missing:
        raise DependencyError(missing_package=missing, message=purpose)


def ensure_package_dependencies() -> None:
    """Validate required dependencies at package import time.

    Raises:
        DependencyError: If required runtime dependencies are missing.
    """
    _ensure("package import")


def ensure_cli_dependencies_for_extract() -> None:
    """Validate the dependencies `metacanvas extract` needs to reach a gateway.

    Raises:
        DependencyError: If one or more required modules are missing.
    """
    _ensure("extract")
