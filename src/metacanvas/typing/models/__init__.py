"""Core domain model exports."""

from metacanvas.typing.models.canvas import CanvasFieldState, CanvasState, FieldGroup
from metacanvas.typing.models.extraction import (
    ChatMessage,
    ContentTypeDetection,
    ExtractionResult,
    ExtractionTask,
    JsonParseOutcome,
    WorkerPoolStatus,
)
from metacanvas.typing.models.geocoding import EnrichedAddress, GeocodingResult, OsmData
from metacanvas.typing.models.schema import (
    OPTIONAL_PRIORITY,
    REQUIRED_PRIORITY,
    ContentTypeConcept,
    FieldDefinition,
    FieldGroupInfo,
    ShapeField,
    ValidationRules,
    Vocabulary,
    VocabularyConcept,
)

__all__ = [
    "OPTIONAL_PRIORITY",
    "REQUIRED_PRIORITY",
    "CanvasFieldState",
    "CanvasState",
    "ChatMessage",
    "ContentTypeConcept",
    "ContentTypeDetection",
    "EnrichedAddress",
    "ExtractionResult",
    "ExtractionTask",
    "FieldDefinition",
    "FieldGroup",
    "FieldGroupInfo",
    "GeocodingResult",
    "JsonParseOutcome",
    "OsmData",
    "ShapeField",
    "ValidationRules",
    "Vocabulary",
    "VocabularyConcept",
    "WorkerPoolStatus",
]
