"""Parsing of raw model output into typed field values.

Two tiers, kept independent:

1. `parse_json_response` locates the first JSON object in the model output and
   normalizes the value stored under the field id.
2. `parse_text_response` applies plain-text rules when the output holds no
   decodable JSON object.

`parse_field_response` chains both and never raises.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from metacanvas import logger
from metacanvas.processing.normalization import concept_value, is_blank, match_concept
from metacanvas.typing.enums import ValueKind
from metacanvas.typing.models import ContentTypeDetection, JsonParseOutcome

if TYPE_CHECKING:
    from metacanvas.typing.models import FieldDefinition

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_FLAT_JSON_OBJECT = re.compile(r"\{[^}]+\}")
_NOT_FOUND_MARKERS = frozenset({"null", "", "nicht gefunden"})


def classify_value(value: Any) -> ValueKind:
    """Return the variant of a decoded JSON value."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, list):
        return ValueKind.ARRAY
    if isinstance(value, dict):
        return ValueKind.OBJECT
    return ValueKind.SCALAR


def find_json_object(text: str) -> str | None:
    """Return the span from the first `{` to the last `}` of a text."""
    match = _JSON_OBJECT.search(text)
    return match.group(0) if match else None


def _to_text(value: Any) -> str:
    """Render a JSON value the way it appears inside flattened strings."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, dict | list):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _is_money(obj: dict[str, Any]) -> bool:
    return "amount" in obj and "currency" in obj


def flatten_object(obj: dict[str, Any]) -> str | None:
    """Flatten an object into a display string.

    Args:
        obj (dict[str, Any]): Decoded JSON object.

    Returns:
        str | None: `"<amount> <currency>"` for money objects, otherwise
        `"key: value, key: value"`; None for an empty object.
    """
    if _is_money(obj):
        return f"{_to_text(obj['amount'])} {_to_text(obj['currency'])}"
    flattened = ", ".join(f"{key}: {_to_text(value)}" for key, value in obj.items())
    return flattened or None


def flatten_array_item(item: Any) -> Any:
    """Flatten an object found inside an array; other items pass through."""
    if not isinstance(item, dict):
        return item
    if _is_money(item):
        return f"{_to_text(item['amount'])} {_to_text(item['currency'])}"
    return ", ".join(_to_text(value) for value in item.values())


def normalize_json_value(value: Any, definition: FieldDefinition) -> Any:
    """Normalize the decoded value stored under the field id.

    Args:
        value (Any): Decoded JSON value.
        definition (FieldDefinition): Field definition.

    Returns:
        Any: Scalar, list, object (structured fields only) or None.
    """
    kind = classify_value(value)
    if kind is ValueKind.NULL:
        return None

    if kind is ValueKind.OBJECT:
        if definition.is_structured:
            return value or None
        value = flatten_object(value)
        if value is None:
            return None
    elif kind is ValueKind.ARRAY:
        if not value:
            return None
        if not definition.is_structured:
            value = [flatten_array_item(item) for item in value]

    if definition.multiple and not isinstance(value, list):
        if isinstance(value, str) and value.strip():
            value = [value]
        elif isinstance(value, dict):
            value = [value]
        else:
            return None

    if isinstance(value, list):
        value = [item for item in value if not is_blank(item)]
        if not value:
            return None

    if isinstance(value, str) and not value.strip():
        return None
    return value


def parse_json_response(text: str, definition: FieldDefinition) -> JsonParseOutcome:
    """Parse the strict JSON tier.

    Args:
        text (str): Raw model output.
        definition (FieldDefinition): Field definition.

    Returns:
        JsonParseOutcome: `found=False` when no decodable JSON object exists.
    """
    candidate = find_json_object(text)
    if candidate is None:
        return JsonParseOutcome(found=False)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        logger.debug("Model output holds no decodable JSON object", extra={"field_id": definition.id})
        return JsonParseOutcome(found=False)
    if not isinstance(payload, dict):
        return JsonParseOutcome(found=False)
    return JsonParseOutcome(found=True, value=normalize_json_value(payload.get(definition.id), definition))


def parse_text_response(text: str, definition: FieldDefinition) -> Any:
    """Parse model output that holds no JSON object.

    Args:
        text (str): Raw model output.
        definition (FieldDefinition): Field definition.

    Returns:
        Any: Best-effort value or None.
    """
    content = text.strip()
    if content.lower() in _NOT_FOUND_MARKERS:
        return None

    if definition.datatype == "array":
        parts = [part.strip() for part in content.split(",")]
        return [part for part in parts if part] or None

    pattern = definition.validation.pattern if definition.validation else None
    if definition.datatype == "uri" and pattern and not re.search(pattern, content):
        return None

    if definition.vocabulary is not None:
        concept = match_concept(content, definition.vocabulary.concepts, include_uri=False)
        if concept is not None:
            return concept_value(concept)

    return content


def parse_field_response(text: str, definition: FieldDefinition) -> Any:
    """Turn raw model output into a field value without ever raising.

    Args:
        text (str): Raw model output.
        definition (FieldDefinition): Field definition.

    Returns:
        Any: Parsed value or None.
    """
    try:
        outcome = parse_json_response(text, definition)
    except Exception:
        logger.warning("JSON parsing failed, using text fallback", extra={"field_id": definition.id})
        outcome = JsonParseOutcome(found=False)
    if outcome.found:
        return outcome.value

    try:
        return parse_text_response(text, definition)
    except Exception:
        logger.warning("Text fallback parsing failed", extra={"field_id": definition.id})
        return None


def parse_content_type_response(text: str) -> ContentTypeDetection | None:
    """Parse the classifier answer `{"schema": ..., "confidence": ...}`.

    Args:
        text (str): Raw model output.

    Returns:
        ContentTypeDetection | None: Parsed answer, None when unusable.
    """
    match = _FLAT_JSON_OBJECT.search(text)
    if match is None:
        return None
    try:
        return ContentTypeDetection.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Unusable content type answer", extra={"content": text})
        return None
