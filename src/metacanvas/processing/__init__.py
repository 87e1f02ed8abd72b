"""Extraction processing helpers."""

from metacanvas.processing.grouping import group_fields
from metacanvas.processing.normalization import is_value_filled, match_concept, normalize_field_value
from metacanvas.processing.parsing import (
    parse_content_type_response,
    parse_field_response,
    parse_json_response,
    parse_text_response,
)
from metacanvas.processing.serialization import (
    map_value_to_label_uri,
    serialize_metadata,
    serialize_metadata_json,
)
from metacanvas.processing.shapes import (
    expand_field_with_shape,
    mark_parent,
    reconstruct_object_from_sub_fields,
)

__all__ = [
    "expand_field_with_shape",
    "group_fields",
    "is_value_filled",
    "map_value_to_label_uri",
    "mark_parent",
    "match_concept",
    "normalize_field_value",
    "parse_content_type_response",
    "parse_field_response",
    "parse_json_response",
    "parse_text_response",
    "reconstruct_object_from_sub_fields",
    "serialize_metadata",
    "serialize_metadata_json",
]
