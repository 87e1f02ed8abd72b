"""Single-field extraction: prompt, gateway call, parsing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from metacanvas import logger
from metacanvas.backends.openai_chat import response_content
from metacanvas.exceptions import BackendError
from metacanvas.processing.normalization import is_value_filled, normalize_field_value
from metacanvas.processing.parsing import parse_field_response
from metacanvas.prompts import build_field_extraction_prompt, chat_messages
from metacanvas.typing.models import ExtractionResult

if TYPE_CHECKING:
    from metacanvas.settings import Settings
    from metacanvas.typing.models import ExtractionTask
    from metacanvas.typing.protocol import ChatGateway


class FieldExtractor:
    """Extract one field value from a source text with one completion."""

    def __init__(self, gateway: ChatGateway, settings: Settings) -> None:
        """Initialize extractor.

        Args:
            gateway (ChatGateway): LLM gateway.
            settings (Settings): Runtime settings.
        """
        self._gateway = gateway
        self._settings = settings

    async def __call__(self, task: ExtractionTask) -> ExtractionResult:
        """Run one extraction task.

        Gateway failures are returned as an error result instead of raised.

        Args:
            task (ExtractionTask): Task to run.

        Returns:
            ExtractionResult: Extracted value with confidence, or an error.
        """
        definition = task.field.definition
        prompt = build_field_extraction_prompt(definition, task.source_text)

        try:
            payload = await self._gateway.ainvoke(chat_messages(prompt))
            content = response_content(payload)
        except BackendError as exc:
            logger.warning(
                "Field extraction failed",
                extra={
                    "field_id": definition.id,
                    "error": str(exc),
                    "status_code": exc.status_code,
                    "retryable": exc.retryable,
                },
            )
            return ExtractionResult(field_id=definition.id, error=str(exc) or "Extraction failed")
        except Exception as exc:
            logger.warning("Field extraction failed", extra={"field_id": definition.id, "error": str(exc)})
            return ExtractionResult(field_id=definition.id, error=str(exc) or "Extraction failed")

        value = normalize_field_value(definition, parse_field_response(content, definition))
        confidence = self._settings.extraction_confidence if is_value_filled(value) else 0.0
        logger.debug("Field extracted", extra={"field_id": definition.id, "filled": confidence > 0})
        return ExtractionResult(field_id=definition.id, value=value, confidence=confidence)
