"""Expansion of composite field values into sub-fields, and the way back."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from metacanvas.processing.normalization import is_value_filled, normalize_field_value
from metacanvas.typing.enums import FieldStatus
from metacanvas.typing.models import CanvasFieldState, FieldDefinition

if TYPE_CHECKING:
    from metacanvas.typing.models import ShapeField


def sub_field_id(parent_id: str, key: str, index: int | None = None) -> str:
    """Return the id of a sub-field: `parent.key` or `parent[index].key`."""
    if index is None:
        return f"{parent_id}.{key}"
    return f"{parent_id}[{index}].{key}"


def _sub_definition(parent: FieldDefinition, shape_field: ShapeField, index: int | None) -> FieldDefinition:
    label = shape_field.label or shape_field.id
    if index is not None:
        label = f"{label} ({index + 1})"
    return FieldDefinition(
        id=sub_field_id(parent.id, shape_field.id, index),
        label=label,
        description=shape_field.description,
        group=parent.group,
        group_label=parent.group_label,
        group_order=parent.group_order,
        schema_name=parent.schema_name,
        ai_fillable=parent.ai_fillable,
        datatype=shape_field.datatype,
        required=shape_field.required,
    )


def _shape_items(value: Any) -> list[tuple[int | None, dict[str, Any]]]:
    if isinstance(value, dict):
        return [(None, value)]
    if isinstance(value, list) and value and all(isinstance(item, dict) for item in value):
        return list(enumerate(value))
    return []


def expand_field_with_shape(field: CanvasFieldState, value: Any) -> list[CanvasFieldState]:
    """Create one child state per shape sub-field, pre-filled from the value.

    A single object yields `parent.key` children; a list of objects yields
    `parent[i].key` children for every item. Other values yield nothing.

    Args:
        field (CanvasFieldState): Parent field declaring a shape.
        value (Any): Extracted parent value.

    Returns:
        list[CanvasFieldState]: Sub-field states in shape order.
    """
    definition = field.definition
    if not definition.has_shape:
        return []

    sub_fields: list[CanvasFieldState] = []
    for index, item in _shape_items(value):
        for shape_field in definition.shape:
            sub_definition = _sub_definition(definition, shape_field, index)
            sub_value = normalize_field_value(sub_definition, item.get(shape_field.id))
            filled = is_value_filled(sub_value)
            sub_fields.append(
                CanvasFieldState(
                    definition=sub_definition,
                    status=FieldStatus.FILLED if filled else FieldStatus.EMPTY,
                    value=sub_value,
                    confidence=field.confidence if filled else 0.0,
                    parent_id=definition.id,
                    shape_key=shape_field.id,
                    item_index=index,
                ),
            )
    return sub_fields


def mark_parent(field: CanvasFieldState, sub_fields: list[CanvasFieldState]) -> CanvasFieldState:
    """Return a copy of the field flagged as parent of the given sub-fields."""
    return field.model_copy(update={"is_parent": bool(sub_fields), "sub_fields": sub_fields})


def reconstruct_object_from_sub_fields(
    parent: CanvasFieldState,
    all_fields: list[CanvasFieldState],
) -> dict[str, Any] | list[dict[str, Any]] | Any:
    """Rebuild the composite value from the current sub-field values.

    Args:
        parent (CanvasFieldState): Parent field.
        all_fields (list[CanvasFieldState]): Current top-level fields; the latest
            snapshot of the parent is looked up here.

    Returns:
        dict[str, Any] | list[dict[str, Any]] | Any: Object keyed by sub-field
        id, a list of such objects for multi-item values, or the stored parent
        value when the parent has no sub-fields.
    """
    current = next((item for item in all_fields if item.field_id == parent.field_id), parent)
    if not current.sub_fields:
        return current.value

    items: dict[int | None, dict[str, Any]] = {}
    for sub_field in current.sub_fields:
        key = sub_field.shape_key or sub_field.field_id.rsplit(".", 1)[-1]
        items.setdefault(sub_field.item_index, {})[key] = sub_field.value

    if None in items:
        return items[None]
    return [items[index] for index in sorted(key for key in items if key is not None)]
