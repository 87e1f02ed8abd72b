"""Typing-centric domain modules."""

from metacanvas.typing.enums import ChatRole, FieldStatus, ValueKind, VocabularyType
from metacanvas.typing.models import (
    CanvasFieldState,
    CanvasState,
    ChatMessage,
    ContentTypeConcept,
    ContentTypeDetection,
    ExtractionResult,
    ExtractionTask,
    FieldDefinition,
    FieldGroup,
    FieldGroupInfo,
    GeocodingResult,
    ShapeField,
    Vocabulary,
    VocabularyConcept,
    WorkerPoolStatus,
)
from metacanvas.typing.protocol import ChatGateway, FieldExtractorFn, SchemaSource

__all__ = [
    "CanvasFieldState",
    "CanvasState",
    "ChatGateway",
    "ChatMessage",
    "ChatRole",
    "ContentTypeConcept",
    "ContentTypeDetection",
    "ExtractionResult",
    "ExtractionTask",
    "FieldDefinition",
    "FieldExtractorFn",
    "FieldGroup",
    "FieldGroupInfo",
    "FieldStatus",
    "GeocodingResult",
    "SchemaSource",
    "ShapeField",
    "ValueKind",
    "Vocabulary",
    "VocabularyConcept",
    "VocabularyType",
    "WorkerPoolStatus",
]
