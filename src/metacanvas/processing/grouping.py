"""Display grouping of canvas fields."""

from __future__ import annotations

from typing import TYPE_CHECKING

from metacanvas.typing.models import FieldGroup

if TYPE_CHECKING:
    from metacanvas.typing.models import CanvasFieldState

CORE_SCHEMA_NAME = "Core"


def _sort_key(group: FieldGroup) -> tuple[bool, str, int]:
    return (group.schema_name != CORE_SCHEMA_NAME, group.schema_name.casefold(), group.order)


def group_fields(fields: list[CanvasFieldState]) -> list[FieldGroup]:
    """Group fields by schema and group id.

    Groups of different schemas never merge, even with equal group ids. Core
    groups come first, then other schemas alphabetically; within a schema the
    declared group order applies.

    Args:
        fields (list[CanvasFieldState]): Top-level fields.

    Returns:
        list[FieldGroup]: Sorted non-empty groups.
    """
    buckets: dict[tuple[str, str], list[CanvasFieldState]] = {}
    for field in fields:
        definition = field.definition
        key = (definition.schema_name or CORE_SCHEMA_NAME, definition.group or "other")
        buckets.setdefault(key, []).append(field)

    groups = [
        FieldGroup(
            id=group_id,
            label=members[0].definition.group_label or "Sonstige",
            schema_name=schema_name,
            order=members[0].definition.group_order,
            fields=members,
        )
        for (schema_name, group_id), members in buckets.items()
        if members
    ]
    return sorted(groups, key=_sort_key)
