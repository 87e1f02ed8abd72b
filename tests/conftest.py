"""Shared fixtures and directory-based test markers."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from metacanvas.schema_store import SchemaStore
from metacanvas.settings import BUNDLED_SCHEMA_DIR, get_settings

if TYPE_CHECKING:
    from collections.abc import Iterator

# tests/<folder>/ -> marker declared in pyproject.toml
_MARKER_FOLDERS = ("unit", "integration", "end2end")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test with the name of its top-level folder under tests/."""
    tests_root = (Path(config.rootpath) / "tests").resolve()
    for item in items:
        try:
            folder = item.path.resolve().relative_to(tests_root).parts[0]
        except ValueError:
            continue
        if folder in _MARKER_FOLDERS:
            item.add_marker(getattr(pytest.mark, folder))


@pytest.fixture(autouse=True)
def _fresh_settings_cache() -> Iterator[None]:
    """Keep `get_settings()` from leaking an instance between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def bundled() -> SchemaStore:
    """Schema store over the schemas shipped with the package."""
    return SchemaStore(root=BUNDLED_SCHEMA_DIR)
