"""Prompt builders for field extraction and content-type classification."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from metacanvas.typing.enums import ChatRole
from metacanvas.typing.models import ChatMessage

if TYPE_CHECKING:
    from metacanvas.typing.models import ContentTypeConcept, FieldDefinition

NO_CONTENT_TYPE = "none"


def chat_messages(prompt: str) -> list[ChatMessage]:
    """Wrap a prompt as a single user message.

    Args:
        prompt (str): Prompt text.

    Returns:
        list[ChatMessage]: Message list accepted by chat gateways.
    """
    return [ChatMessage(role=ChatRole.USER, content=prompt)]


def _vocabulary_lines(definition: FieldDefinition) -> list[str]:
    """Render permitted vocabulary labels, one per line."""
    if definition.vocabulary is None:
        return []
    lines: list[str] = []
    for concept in definition.vocabulary.concepts:
        line = f"- {concept.label}"
        if concept.alt_labels:
            line += f" (auch: {', '.join(concept.alt_labels)})"
        lines.append(line)
    return lines


def _shape_example(definition: FieldDefinition) -> str:
    """Render a JSON example of a shaped value."""
    skeleton = {sub_field.id: f"<{sub_field.datatype}>" for sub_field in definition.shape}
    example: object = [skeleton] if definition.multiple else skeleton
    return json.dumps({definition.id: example}, ensure_ascii=False)


def build_field_extraction_prompt(definition: FieldDefinition, source_text: str) -> str:
    """Build the prompt extracting one metadata field from a source text.

    Args:
        definition (FieldDefinition): Field to extract.
        source_text (str): Free text describing the resource.

    Returns:
        str: Prompt text asking for a JSON object keyed by the field id.
    """
    lines = [
        "Extrahiere folgendes Metadatenfeld aus dem Text:",
        "",
        f'Text: "{source_text}"',
        "",
        f"Feld: {definition.id} ({definition.label})",
    ]
    if definition.description:
        lines.append(f"Beschreibung: {definition.description}")
    lines.append(f"Typ: {definition.datatype}")
    if definition.multiple:
        lines.append("Hinweis: Mehrere Werte möglich (Array)")
    if definition.examples:
        lines.append(f"Beispiele: {'; '.join(definition.examples)}")

    vocabulary = _vocabulary_lines(definition)
    if vocabulary:
        lines.extend(["", "Erlaubte Werte:", *vocabulary])

    if definition.has_shape:
        lines.extend(["", "Struktur (Unterfelder):"])
        for sub_field in definition.shape:
            detail = f" - {sub_field.description}" if sub_field.description else ""
            lines.append(f"- {sub_field.id} ({sub_field.datatype}){detail}")

    lines.extend(
        [
            "",
            f'Antworte NUR mit einem JSON-Objekt im Format: {{"{definition.id}": <wert>}}',
            "Verwende null wenn der Wert nicht extrahierbar ist.",
        ],
    )
    if definition.has_shape:
        lines.append(f"Gib den Wert als Objekt mit den Unterfeldern zurück: {_shape_example(definition)}")
    elif definition.expects_array:
        lines.append(f'Für mehrere Werte verwende ein Array: {{"{definition.id}": ["Wert1", "Wert2"]}}')
    if vocabulary:
        lines.append("WICHTIG: Verwende NUR die exakten Labels aus der Liste oben!")

    return "\n".join(lines) + "\n"


def build_content_type_prompt(source_text: str, concepts: list[ContentTypeConcept]) -> str:
    """Build the prompt classifying the content type of a source text.

    Args:
        source_text (str): Free text describing the resource.
        concepts (list[ContentTypeConcept]): Selectable content types.

    Returns:
        str: Prompt text asking for `{"schema": ..., "confidence": ...}`.
    """
    options: list[str] = []
    for index, concept in enumerate(concepts, start=1):
        description = f" – {concept.description}" if concept.description else ""
        options.append(f"{index}. {concept.label}{description}\n   Schema-Datei: {concept.schema_file}")
    option_list = "\n\n".join(options)

    return (
        "Analysiere folgenden Text und bestimme die passendste Inhaltsart. "
        "Nutze die Beschreibungen, um die programmatische Bedeutung zu verstehen.\n\n"
        f'Text: "{source_text}"\n\n'
        f"Verfügbare Inhaltsarten:\n{option_list}\n\n"
        "Antworte NUR mit einem JSON-Objekt im Format:\n"
        '{"schema": "<dateiname>.json", "confidence": <0.0-1.0>}\n\n'
        'Beispiel: {"schema": "event.json", "confidence": 0.92}\n'
        f'Wenn keine passt: {{"schema": "{NO_CONTENT_TYPE}", "confidence": 0.0}}'
    )
