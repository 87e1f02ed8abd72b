"""Collaborator interfaces."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from metacanvas.typing.models import (
        ChatMessage,
        ContentTypeConcept,
        ExtractionResult,
        ExtractionTask,
        FieldDefinition,
        FieldGroupInfo,
    )


class ChatGateway(Protocol):
    """LLM completion endpoint."""

    async def ainvoke(self, messages: list[ChatMessage]) -> dict[str, Any]:
        """Send chat messages and return the completion payload.

        Args:
            messages: Ordered chat messages.

        Returns:
            dict[str, Any]: OpenAI-style payload with `choices[0].message.content`.
        """


class SchemaSource(Protocol):
    """Query surface of the schema model."""

    def get_fields(self, schema_file: str) -> list[FieldDefinition]:
        """Return the AI-fillable field definitions of a schema file.

        Args:
            schema_file: Schema file name, e.g. `core.json`.

        Returns:
            list[FieldDefinition]: Field definitions in schema order.
        """

    def get_groups(self, schema_file: str) -> list[FieldGroupInfo]:
        """Return the groups declared by a schema file.

        Args:
            schema_file: Schema file name.

        Returns:
            list[FieldGroupInfo]: Groups in display order.
        """

    def get_output_template(self, schema_file: str) -> dict[str, Any]:
        """Return the partial metadata skeleton of a schema file.

        Args:
            schema_file: Schema file name.

        Returns:
            dict[str, Any]: Metadata skeleton.
        """

    def get_content_type_concepts(self) -> list[ContentTypeConcept]:
        """Return the content types that select a special schema.

        Returns:
            list[ContentTypeConcept]: Content type options.
        """


class FieldExtractorFn(Protocol):
    """Coroutine running one extraction task."""

    async def __call__(self, task: ExtractionTask) -> ExtractionResult:
        """Extract one field.

        Args:
            task: Extraction task.

        Returns:
            ExtractionResult: Extraction outcome.
        """
