"""Typed field value normalization helpers."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from metacanvas import logger

if TYPE_CHECKING:
    from metacanvas.typing.models import FieldDefinition, VocabularyConcept

NUMERIC_DATATYPES = frozenset({"number", "integer", "float", "decimal"})


def is_blank(value: Any) -> bool:
    """Return whether a single value carries no content."""
    return value is None or not str(value).strip()


def is_value_filled(value: Any) -> bool:
    """Return whether a value is meaningfully non-empty.

    Args:
        value (Any): Field value.

    Returns:
        bool: False for None, blank strings, empty lists and lists of blanks.
    """
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, list):
        return any(not is_blank(item) for item in value)
    return True


def match_concept(
    value: Any,
    concepts: list[VocabularyConcept],
    *,
    include_uri: bool = True,
) -> VocabularyConcept | None:
    """Find the concept matching a value case-insensitively.

    Args:
        value (Any): Raw value.
        concepts (list[VocabularyConcept]): Vocabulary concepts.
        include_uri (bool): Also compare against concept URIs.

    Returns:
        VocabularyConcept | None: Matching concept.
    """
    needle = str(value).strip().lower()
    for concept in concepts:
        if include_uri and concept.uri and concept.uri.lower() == needle:
            return concept
        if concept.label.lower() == needle:
            return concept
        if any(alt.lower() == needle for alt in concept.alt_labels):
            return concept
    return None


def concept_value(concept: VocabularyConcept) -> str:
    """Return the stored value of a concept: its URI, else its label."""
    return concept.uri or concept.label


def normalize_field_value(definition: FieldDefinition, value: Any) -> Any:
    """Normalize a value against the field's datatype and vocabulary.

    Structured (shape or object) fields are returned untouched. Multi-valued
    fields always yield a list, possibly empty.

    Args:
        definition (FieldDefinition): Field definition.
        value (Any): Raw value (manual edit or parsed model output).

    Returns:
        Any: Normalized value, or None when the value is rejected.
    """
    if definition.is_structured:
        return value

    if definition.multiple or isinstance(value, list):
        items = value if isinstance(value, list) else [value]
        normalized = [item for item in (_normalize_scalar(definition, raw) for raw in items) if item is not None]
        if definition.multiple:
            return normalized
        return normalized or None

    return _normalize_scalar(definition, value)


def _normalize_scalar(definition: FieldDefinition, value: Any) -> Any:
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float) and definition.datatype in NUMERIC_DATATYPES:
        return value

    text = str(value).strip()
    if definition.datatype in NUMERIC_DATATYPES:
        return _normalize_number(text)

    if definition.datatype == "uri" and definition.validation and definition.validation.pattern:
        if not re.search(definition.validation.pattern, text):
            logger.warning(
                "Value rejected by validation pattern",
                extra={"field_id": definition.id, "value": text},
            )
            return None

    if definition.has_vocabulary and definition.vocabulary is not None:
        concept = match_concept(text, definition.vocabulary.concepts)
        if concept is not None:
            return concept_value(concept)
        if definition.is_controlled:
            logger.warning(
                "Value rejected by vocabulary",
                extra={
                    "field_id": definition.id,
                    "vocabulary_type": definition.vocabulary.type.to_str(),
                    "value": text,
                },
            )
            return None

    return text


def _normalize_number(value: str) -> int | float | str:
    compact = value.replace(" ", "").replace(",", ".")
    try:
        number = Decimal(compact)
    except InvalidOperation:
        return value
    if not number.is_finite():
        return value
    if number == number.to_integral_value():
        return int(number)
    return float(number)
