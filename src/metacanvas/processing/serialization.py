"""Serialization of the canvas state into the enriched metadata document."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from metacanvas import logger
from metacanvas.processing.shapes import reconstruct_object_from_sub_fields

if TYPE_CHECKING:
    from metacanvas.typing.models import CanvasState, VocabularyConcept


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def map_value_to_label_uri(value: Any, concepts: list[VocabularyConcept]) -> dict[str, Any]:
    """Map a stored value to its `{label, uri}` pair.

    Lookup order: concept URI, then label, then alternate labels.

    Args:
        value (Any): Stored value, usually a URI or a label.
        concepts (list[VocabularyConcept]): Vocabulary concepts.

    Returns:
        dict[str, Any]: `{"label": ..., "uri": ...}`; unknown values keep the raw
        value as label and an empty URI.
    """
    concept = next((item for item in concepts if item.uri and item.uri == value), None)
    if concept is None:
        concept = next((item for item in concepts if item.label == value), None)
    if concept is None:
        concept = next((item for item in concepts if value in item.alt_labels), None)

    if concept is not None:
        return {"label": concept.label, "uri": concept.uri or ""}

    logger.warning("Value not found in vocabulary concepts", extra={"value": value})
    return {"label": value, "uri": ""}


def serialize_metadata(state: CanvasState) -> dict[str, Any]:
    """Build the enriched metadata document.

    Args:
        state (CanvasState): Current canvas state.

    Returns:
        dict[str, Any]: Metadata keyed by field id.
    """
    all_fields = state.all_fields
    fields_by_id = {field.field_id: field for field in all_fields}
    output: dict[str, Any] = {}

    for field_id, value in state.metadata.items():
        field = fields_by_id.get(field_id)
        if field is None:
            output[field_id] = value
            continue

        if field.is_parent and field.sub_fields:
            output[field_id] = reconstruct_object_from_sub_fields(field, all_fields)
            continue

        definition = field.definition
        if not definition.has_vocabulary or definition.vocabulary is None:
            output[field_id] = value
            continue

        concepts = definition.vocabulary.concepts
        if isinstance(value, list):
            output[field_id] = [map_value_to_label_uri(item, concepts) for item in value if not _is_missing(item)]
        elif not _is_missing(value):
            pair = map_value_to_label_uri(value, concepts)
            output[field_id] = [pair] if definition.multiple else pair
        else:
            output[field_id] = [] if definition.multiple else None

    return output


def serialize_metadata_json(state: CanvasState) -> str:
    """Return the enriched metadata document as indented JSON."""
    return json.dumps(serialize_metadata(state), ensure_ascii=False, indent=2)
