"""Schema-centric domain models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from metacanvas.typing.enums import VocabularyType

REQUIRED_PRIORITY = 10
OPTIONAL_PRIORITY = 5


class VocabularyConcept(BaseModel):
    """One permitted value of a controlled vocabulary."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    label: str
    label_en: str | None = None
    uri: str | None = None
    alt_labels: list[str] = Field(default_factory=list, alias="altLabels")
    description: str | None = None
    schema_file: str | None = None


class Vocabulary(BaseModel):
    """Value space attached to a field."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: VocabularyType = VocabularyType.CLOSED
    concepts: list[VocabularyConcept] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> VocabularyType:
        """Load unknown vocabulary types as closed vocabularies.

        Args:
            value (Any): Raw vocabulary type.

        Returns:
            VocabularyType: Known vocabulary type.
        """
        try:
            return VocabularyType(str(value).lower())
        except ValueError:
            return VocabularyType.CLOSED

    @property
    def is_controlled(self) -> bool:
        """Return whether values outside the concept list are rejected."""
        return self.type.is_controlled


class ValidationRules(BaseModel):
    """Field validation constraints."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    pattern: str | None = None
    min_length: int | None = Field(default=None, alias="minLength")
    max_length: int | None = Field(default=None, alias="maxLength")


class ShapeField(BaseModel):
    """Sub-field of a composite ("shaped") field."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    label: str = ""
    description: str = ""
    datatype: str = "string"
    required: bool = False


class FieldDefinition(BaseModel):
    """Single schema field definition, immutable for a session."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    uri: str | None = None
    label: str
    description: str = ""
    group: str = "other"
    group_label: str = "Sonstige"
    group_order: int = 999
    schema_name: str = "Core"
    ai_fillable: bool = True
    datatype: str = "string"
    multiple: bool = False
    required: bool = False
    vocabulary: Vocabulary | None = None
    validation: ValidationRules | None = None
    shape: list[ShapeField] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)

    @property
    def has_vocabulary(self) -> bool:
        """Return whether the field lists permitted concepts."""
        return self.vocabulary is not None and bool(self.vocabulary.concepts)

    @property
    def is_controlled(self) -> bool:
        """Return whether the field rejects values outside its vocabulary."""
        return self.vocabulary is not None and self.vocabulary.is_controlled

    @property
    def has_shape(self) -> bool:
        """Return whether the field declares composite sub-fields."""
        return bool(self.shape)

    @property
    def is_structured(self) -> bool:
        """Return whether values are objects that must keep their structure."""
        return self.has_shape or self.datatype == "object"

    @property
    def expects_array(self) -> bool:
        """Return whether the model should answer with a list."""
        return self.multiple or self.datatype == "array"

    @property
    def priority(self) -> int:
        """Return the extraction queue priority."""
        return REQUIRED_PRIORITY if self.required else OPTIONAL_PRIORITY


class FieldGroupInfo(BaseModel):
    """Group declared by a schema file."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    label: str


class ContentTypeConcept(BaseModel):
    """Content type option offered to the classifier."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str
    schema_file: str
    description: str | None = None
    uri: str | None = None
