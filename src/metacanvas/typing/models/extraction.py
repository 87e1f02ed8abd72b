"""Extraction task, result and gateway payload models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from metacanvas.typing.enums import ChatRole
from metacanvas.typing.models.canvas import CanvasFieldState


class ExtractionTask(BaseModel):
    """One field to extract from a source text."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    field: CanvasFieldState
    source_text: str
    priority: int

    @classmethod
    def for_field(cls, field: CanvasFieldState, source_text: str) -> ExtractionTask:
        """Build a task prioritized by the field's required flag."""
        return cls(field=field, source_text=source_text, priority=field.definition.priority)


class ExtractionResult(BaseModel):
    """Outcome of one worker invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    field_id: str
    value: Any = None
    confidence: float = 0.0
    error: str | None = None


class WorkerPoolStatus(BaseModel):
    """Snapshot of the worker pool occupancy."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    active_workers: int
    queue_length: int
    max_workers: int


class ChatMessage(BaseModel):
    """Single chat completion message."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    role: ChatRole
    content: str


class ContentTypeDetection(BaseModel):
    """Classifier answer selecting a special schema."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    schema_file: str = Field(alias="schema")
    confidence: float = 0.0


class JsonParseOutcome(BaseModel):
    """Result of the strict JSON parsing tier."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    found: bool
    value: Any = None
