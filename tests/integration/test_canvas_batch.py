from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from metacanvas.canvas import CanvasStore
from metacanvas.exceptions import BackendError
from metacanvas.field_extractor import FieldExtractor
from metacanvas.settings import Settings
from metacanvas.typing.enums import FieldStatus
from metacanvas.typing.models import (
    ChatMessage,
    ContentTypeConcept,
    FieldDefinition,
    FieldGroupInfo,
)
from metacanvas.worker_pool import FieldExtractionWorkerPool

if TYPE_CHECKING:
    from metacanvas.typing.models import ExtractionResult, ExtractionTask


class _InMemorySchemas:
    """Schema source holding three core fields and no special schemas."""

    def __init__(self) -> None:
        self.fields = [
            FieldDefinition(id="title", label="Titel", required=True, group="basic"),
            FieldDefinition(id="summary", label="Zusammenfassung", group="basic"),
            FieldDefinition(id="keywords", label="Schlagworte", datatype="array", multiple=True, group="topics"),
        ]

    def get_fields(self, schema_file: str) -> list[FieldDefinition]:
        return self.fields if schema_file == "core.json" else []

    def get_groups(self, schema_file: str) -> list[FieldGroupInfo]:
        return []

    def get_output_template(self, schema_file: str) -> dict[str, Any]:
        return {"title": None, "summary": None, "keywords": []}

    def get_content_type_concepts(self) -> list[ContentTypeConcept]:
        return []


class _FlakyGateway:
    def __init__(self) -> None:
        self.calls = 0

    async def ainvoke(self, messages: list[ChatMessage]) -> dict[str, Any]:
        self.calls += 1
        prompt = messages[0].content
        await asyncio.sleep(0)
        if "Feld: summary" in prompt:
            raise BackendError(message="Chat completion request timed out")
        if "Feld: keywords" in prompt:
            content = "Mathematik, Brüche"
        else:
            content = json.dumps({"title": "Bruchrechnung verstehen"})
        return {"choices": [{"message": {"content": content}}]}


class _CountingExtractor:
    def __init__(self, inner: FieldExtractor) -> None:
        self.inner = inner
        self.in_flight = 0
        self.peak = 0

    async def __call__(self, task: ExtractionTask) -> ExtractionResult:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            return await self.inner(task)
        finally:
            self.in_flight -= 1


def test_batch_resolves_with_one_failing_field() -> None:
    settings = Settings(extraction_confidence=0.85)
    gateway = _FlakyGateway()
    extractor = _CountingExtractor(FieldExtractor(gateway, settings))
    pool = FieldExtractionWorkerPool(extractor, max_workers=2)
    store = CanvasStore(_InMemorySchemas(), gateway, pool, settings=settings)
    progress: list[float] = []
    store.subscribe(lambda state: progress.append(state.extraction_progress))

    state = asyncio.run(store.start_extraction("Bruchrechnung verstehen: Mathematik und Brüche"))

    statuses = {field.field_id: field.status for field in state.core_fields}
    assert statuses == {"title": FieldStatus.FILLED, "summary": FieldStatus.ERROR, "keywords": FieldStatus.FILLED}
    assert state.find_field("summary").extraction_error == "Chat completion request timed out"
    assert state.find_field("keywords").value == ["Mathematik", "Brüche"]
    assert state.filled_fields == 2
    assert state.total_fields == 3
    assert round(state.extraction_progress, 2) == 66.67
    assert state.is_extracting is False
    assert extractor.peak <= 2
    assert gateway.calls == 3
    assert progress == sorted(progress)
    assert store.get_metadata() == {
        "title": "Bruchrechnung verstehen",
        "summary": None,
        "keywords": ["Mathematik", "Brüche"],
    }
