"""Filesystem schema model: field definitions, groups and output templates."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from metacanvas import logger
from metacanvas.exceptions import SchemaStoreError
from metacanvas.typing.models import (
    ContentTypeConcept,
    FieldDefinition,
    FieldGroupInfo,
    ShapeField,
    ValidationRules,
    Vocabulary,
)

CORE_SCHEMA_NAME = "Core"
DEFAULT_GROUP_ID = "other"
DEFAULT_GROUP_LABEL = "Sonstige"
DEFAULT_GROUP_ORDER = 999


def schema_display_name(schema_file: str) -> str:
    """Derive a display name from a schema file name.

    Args:
        schema_file (str): File name such as `event_series.json`.

    Returns:
        str: Title-cased name such as `Event Series`.
    """
    stem = schema_file.removesuffix(".json")
    return " ".join(word[:1].upper() + word[1:] for word in stem.split("_") if word)


def _text(value: Any) -> str:
    """Return a plain string from a value that may be a language map."""
    if isinstance(value, dict):
        for key in ("de", "en"):
            if value.get(key):
                return str(value[key])
        return next((str(item) for item in value.values() if item), "")
    return "" if value is None else str(value)


def _example_text(item: Any) -> str:
    return json.dumps(item, ensure_ascii=False) if isinstance(item, dict | list) else str(item)


def _shape_fields(raw_shape: Any) -> list[ShapeField]:
    """Read a shape given as a mapping `key -> spec` or as a list of specs."""
    if isinstance(raw_shape, dict):
        entries = [
            {"id": key, **(spec if isinstance(spec, dict) else {"datatype": spec})} for key, spec in raw_shape.items()
        ]
    elif isinstance(raw_shape, list):
        entries = [entry for entry in raw_shape if isinstance(entry, dict) and entry.get("id")]
    else:
        return []

    return [
        ShapeField(
            id=str(entry["id"]),
            label=_text(entry.get("label")) or str(entry["id"]),
            description=_text(entry.get("description")),
            datatype=str(entry.get("datatype") or entry.get("type") or "string"),
            required=bool(entry.get("required", False)),
        )
        for entry in entries
    ]


class SchemaStore(BaseModel):
    """Directory of JSON schema files.

    Every schema file holds `fields`, optional `groups` and an optional
    `output_template`. The core schema additionally lists the selectable
    content types as vocabulary concepts of its content-type field.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    root: Path = Field(description="Directory holding the schema files.")
    core_schema_file: str = Field(default="core.json", description="Schema file providing the core fields.")
    content_type_field_id: str = Field(
        default="ccm:oeh_flex_lrt",
        description="Core field whose concepts select a special schema.",
    )
    _cache: dict[str, dict[str, Any]] = PrivateAttr(default_factory=dict)

    def schema_path(self, schema_file: str) -> Path:
        """Return the path of a schema file inside the store.

        Raises:
            SchemaStoreError: If the name escapes the store directory.
        """
        if not schema_file or Path(schema_file).name != schema_file:
            raise SchemaStoreError(message=f"Invalid schema file name: {schema_file!r}", schema_file=schema_file)
        return self.root / schema_file

    def load(self, schema_file: str) -> dict[str, Any]:
        """Load and cache a schema file.

        Args:
            schema_file (str): Schema file name.

        Raises:
            SchemaStoreError: If the file is missing or not a JSON object.

        Returns:
            dict[str, Any]: Raw schema payload.
        """
        cached = self._cache.get(schema_file)
        if cached is not None:
            return cached

        path = self.schema_path(schema_file)
        if not path.is_file():
            raise SchemaStoreError(message=f"Schema file not found: {path}", schema_file=schema_file)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SchemaStoreError(
                message=f"Schema file cannot be decoded: {path}: {exc}",
                schema_file=schema_file,
            ) from exc
        if not isinstance(payload, dict):
            raise SchemaStoreError(message=f"Schema file must hold a JSON object: {path}", schema_file=schema_file)

        self._cache[schema_file] = payload
        logger.info("Schema loaded", extra={"schema_path": str(path), "fields": len(payload.get("fields") or [])})
        return payload

    def list_schemas(self) -> list[str]:
        """Return the file names of all schemas in the store."""
        return sorted(path.name for path in self.root.glob("*.json"))

    def list_special_schemas(self) -> list[str]:
        """Return every schema file except the core schema."""
        return [name for name in self.list_schemas() if name != self.core_schema_file]

    def get_groups(self, schema_file: str) -> list[FieldGroupInfo]:
        """Return the groups declared by a schema file, in display order."""
        groups = self.load(schema_file).get("groups") or []
        return [
            FieldGroupInfo(id=str(group["id"]), label=_text(group.get("label")) or str(group["id"]))
            for group in groups
            if isinstance(group, dict) and group.get("id")
        ]

    def get_fields(self, schema_file: str) -> list[FieldDefinition]:
        """Return the AI-fillable field definitions of a schema file.

        Fields flagged `ai_fillable: false` or `ask_user: false` are skipped.
        Group labels resolve from the field, then the group list, then
        `Sonstige`; group order is the position in the group list.

        Args:
            schema_file (str): Schema file name.

        Raises:
            SchemaStoreError: If the schema or one of its fields is invalid.

        Returns:
            list[FieldDefinition]: Field definitions in schema order.
        """
        payload = self.load(schema_file)
        groups = self.get_groups(schema_file)
        group_labels = {group.id: group.label for group in groups}
        group_orders = {group.id: index for index, group in enumerate(groups)}
        schema_name = CORE_SCHEMA_NAME if schema_file == self.core_schema_file else schema_display_name(schema_file)

        definitions: list[FieldDefinition] = []
        for raw in payload.get("fields") or []:
            if not isinstance(raw, dict) or not raw.get("id"):
                continue
            system = raw.get("system") or {}
            if system.get("ai_fillable") is False or system.get("ask_user") is False:
                continue
            try:
                definitions.append(
                    self._field_definition(raw, system, schema_name, group_labels, group_orders),
                )
            except ValidationError as exc:
                raise SchemaStoreError(
                    message=f"Invalid field {raw.get('id')!r} in {schema_file}: {exc}",
                    schema_file=schema_file,
                ) from exc
        return definitions

    @staticmethod
    def _field_definition(
        raw: dict[str, Any],
        system: dict[str, Any],
        schema_name: str,
        group_labels: dict[str, str],
        group_orders: dict[str, int],
    ) -> FieldDefinition:
        prompt = raw.get("prompt") or {}
        group_id = str(raw.get("group") or DEFAULT_GROUP_ID)
        vocabulary = system.get("vocabulary")
        validation = system.get("validation")
        examples = prompt.get("examples") or []
        if not isinstance(examples, list):
            examples = [examples]

        return FieldDefinition(
            id=str(raw["id"]),
            uri=system.get("uri") or str(raw["id"]),
            label=_text(prompt.get("label")) or _text(raw.get("label")) or str(raw["id"]),
            description=_text(prompt.get("description")),
            group=group_id,
            group_label=_text(raw.get("group_label")) or group_labels.get(group_id) or DEFAULT_GROUP_LABEL,
            group_order=group_orders.get(group_id, DEFAULT_GROUP_ORDER),
            schema_name=schema_name,
            ai_fillable=system.get("ai_fillable", True) is not False,
            datatype=str(system.get("datatype") or raw.get("type") or "string"),
            multiple=bool(system.get("multiple", False)),
            required=bool(system.get("required") or raw.get("required")),
            vocabulary=Vocabulary.model_validate(vocabulary) if isinstance(vocabulary, dict) else None,
            validation=ValidationRules.model_validate(validation) if isinstance(validation, dict) else None,
            shape=_shape_fields((system.get("items") or {}).get("shape")),
            examples=[_example_text(item) for item in examples],
        )

    def get_output_template(self, schema_file: str) -> dict[str, Any]:
        """Return a copy of the metadata skeleton of a schema file."""
        template = self.load(schema_file).get("output_template") or {}
        return copy.deepcopy(template) if isinstance(template, dict) else {}

    def get_content_type_concepts(self) -> list[ContentTypeConcept]:
        """Return the content types that select a special schema.

        Concepts come from the vocabulary of the core content-type field. When
        none declares a schema file, every special schema file is offered under
        its display name.

        Returns:
            list[ContentTypeConcept]: Content type options.
        """
        field = next(
            (item for item in self.get_fields(self.core_schema_file) if item.id == self.content_type_field_id),
            None,
        )
        concepts: list[ContentTypeConcept] = []
        if field is not None and field.vocabulary is not None:
            concepts = [
                ContentTypeConcept(
                    label=concept.label,
                    schema_file=concept.schema_file,
                    description=concept.description,
                    uri=concept.uri,
                )
                for concept in field.vocabulary.concepts
                if concept.schema_file
            ]
        if concepts:
            return concepts
        return [
            ContentTypeConcept(label=schema_display_name(name), schema_file=name)
            for name in self.list_special_schemas()
        ]
