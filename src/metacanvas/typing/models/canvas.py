"""Runtime canvas state models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from metacanvas.typing.enums import FieldStatus
from metacanvas.typing.models.schema import FieldDefinition


class CanvasFieldState(BaseModel):
    """Field definition plus its extraction status and current value."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    definition: FieldDefinition
    status: FieldStatus = FieldStatus.EMPTY
    value: Any = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    extraction_error: str | None = None
    is_parent: bool = False
    sub_fields: list[CanvasFieldState] = Field(default_factory=list)
    parent_id: str | None = None
    shape_key: str | None = None
    item_index: int | None = None

    @property
    def field_id(self) -> str:
        """Return the schema field id."""
        return self.definition.id

    @classmethod
    def from_definition(cls, definition: FieldDefinition) -> CanvasFieldState:
        """Build the initial empty state of a field.

        Args:
            definition (FieldDefinition): Schema field.

        Returns:
            CanvasFieldState: Empty field state.
        """
        return cls(definition=definition, value=[] if definition.multiple else None)


class FieldGroup(BaseModel):
    """Fields sharing a schema and a group id."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    label: str
    schema_name: str
    order: int
    fields: list[CanvasFieldState]


class CanvasState(BaseModel):
    """Root aggregate owned by the canvas store."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    source_text: str = ""
    detected_content_type: str | None = None
    content_type_confidence: float = 0.0
    selected_content_type: str | None = None
    core_fields: list[CanvasFieldState] = Field(default_factory=list)
    special_fields: list[CanvasFieldState] = Field(default_factory=list)
    field_groups: list[FieldGroup] = Field(default_factory=list)
    is_extracting: bool = False
    extraction_progress: float = 0.0
    total_fields: int = 0
    filled_fields: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def all_fields(self) -> list[CanvasFieldState]:
        """Return core fields followed by special fields."""
        return [*self.core_fields, *self.special_fields]

    def find_field(self, field_id: str) -> CanvasFieldState | None:
        """Return a top-level field or a shape sub-field by id."""
        for field in self.all_fields:
            if field.field_id == field_id:
                return field
            for sub_field in field.sub_fields:
                if sub_field.field_id == field_id:
                    return sub_field
        return None
