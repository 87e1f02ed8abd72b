"""Extraction state store: owns the canvas state and orchestrates a batch."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from metacanvas import logger
from metacanvas.backends import PhotonGeocoder, build_chat_gateway, response_content
from metacanvas.exceptions import PackageError, SchemaStoreError
from metacanvas.field_extractor import FieldExtractor
from metacanvas.logging import bind_log_context
from metacanvas.processing.grouping import group_fields
from metacanvas.processing.normalization import is_value_filled, match_concept, normalize_field_value
from metacanvas.processing.parsing import parse_content_type_response
from metacanvas.processing.serialization import serialize_metadata, serialize_metadata_json
from metacanvas.processing.shapes import expand_field_with_shape, mark_parent
from metacanvas.prompts import NO_CONTENT_TYPE, build_content_type_prompt, chat_messages
from metacanvas.schema_store import SchemaStore
from metacanvas.settings import get_settings
from metacanvas.typing.enums import FieldStatus
from metacanvas.typing.models import CanvasFieldState, CanvasState, ContentTypeDetection, ExtractionTask
from metacanvas.worker_pool import FieldExtractionWorkerPool

if TYPE_CHECKING:
    from pathlib import Path

    from metacanvas.settings import Settings
    from metacanvas.typing.protocol import ChatGateway, SchemaSource

StateCallback = Callable[[CanvasState], None]

EXTRACTION_FAILED_MESSAGE = "Extraction failed"
_UNSET: Any = object()


def _empty_value(field: CanvasFieldState) -> Any:
    return [] if field.definition.multiple else None


def _is_place(value: Any) -> bool:
    return isinstance(value, dict) and value.get("@type") == "Place"


def _replace_field(
    fields: list[CanvasFieldState],
    field_id: str,
    update: Callable[[CanvasFieldState], CanvasFieldState],
) -> tuple[list[CanvasFieldState], bool]:
    """Return a new list where the field (or nested sub-field) is replaced."""
    replaced = False
    result: list[CanvasFieldState] = []
    for field in fields:
        if field.field_id == field_id:
            result.append(update(field))
            replaced = True
            continue
        if field.sub_fields:
            sub_fields, sub_replaced = _replace_field(field.sub_fields, field_id, update)
            if sub_replaced:
                result.append(field.model_copy(update={"sub_fields": sub_fields}))
                replaced = True
                continue
        result.append(field)
    return result, replaced


class CanvasStore:
    """Single owner of the `CanvasState`.

    Every write replaces the state with a new snapshot and notifies the
    subscribers. Field extractions run on the worker pool; their results are
    written back through `update_field_status`.
    """

    def __init__(
        self,
        schema_source: SchemaSource,
        gateway: ChatGateway,
        pool: FieldExtractionWorkerPool,
        settings: Settings | None = None,
        geocoder: PhotonGeocoder | None = None,
    ) -> None:
        """Initialize store.

        Args:
            schema_source (SchemaSource): Schema model.
            gateway (ChatGateway): LLM gateway, used for content-type detection.
            pool (FieldExtractionWorkerPool): Worker pool running field extractions.
            settings (Settings | None): Runtime settings.
            geocoder (PhotonGeocoder | None): Geocoder used by `export_metadata`.
        """
        self._schema_source = schema_source
        self._gateway = gateway
        self._pool = pool
        self._settings = settings or get_settings()
        self._geocoder = geocoder
        self._state = CanvasState()
        self._subscribers: list[StateCallback] = []
        self._generation = 0
        # Bumped on every special schema switch; older special-field results are dropped.
        self._special_generation = 0
        self._running_jobs = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        schema_dir: Path | None = None,
        max_workers: int | None = None,
    ) -> CanvasStore:
        """Wire a store with the filesystem schema model and the configured gateway.

        Args:
            settings (Settings): Runtime settings.
            schema_dir (Path | None): Schema directory overriding `SCHEMA_DIR`.
            max_workers (int | None): Concurrency cap overriding `MAX_WORKERS`.

        Returns:
            CanvasStore: Ready-to-use store.
        """
        gateway = build_chat_gateway(settings)
        schema_store = SchemaStore(
            root=schema_dir or settings.schema_path,
            core_schema_file=settings.core_schema_file,
            content_type_field_id=settings.content_type_field_id,
        )
        pool = FieldExtractionWorkerPool(
            FieldExtractor(gateway, settings),
            max_workers=max_workers or settings.max_workers,
        )
        return cls(schema_store, gateway, pool, settings=settings)

    @property
    def state(self) -> CanvasState:
        """Return the current snapshot."""
        return self._state

    @property
    def pool(self) -> FieldExtractionWorkerPool:
        """Return the worker pool."""
        return self._pool

    def get_current_state(self) -> CanvasState:
        """Return the current snapshot."""
        return self._state

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Register a callback receiving every new snapshot.

        The callback is called at once with the current snapshot.

        Args:
            callback (StateCallback): Snapshot consumer.

        Returns:
            Callable[[], None]: Function removing the callback.
        """
        self._subscribers.append(callback)
        callback(self._state)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _publish(self, state: CanvasState) -> None:
        self._state = state
        for callback in tuple(self._subscribers):
            callback(state)

    def _set_state(self, **changes: Any) -> None:
        self._publish(self._state.model_copy(update=changes))

    def _with_fields(
        self,
        core_fields: list[CanvasFieldState],
        special_fields: list[CanvasFieldState],
        **changes: Any,
    ) -> None:
        """Replace both field lists and recompute the derived counters."""
        all_fields = [*core_fields, *special_fields]
        total_fields = len(all_fields)
        filled_fields = sum(1 for field in all_fields if field.status is FieldStatus.FILLED)
        self._set_state(
            core_fields=core_fields,
            special_fields=special_fields,
            field_groups=group_fields(all_fields),
            total_fields=total_fields,
            filled_fields=filled_fields,
            extraction_progress=(filled_fields / total_fields * 100) if total_fields else 0.0,
            **changes,
        )

    def _begin_job(self) -> None:
        self._running_jobs += 1
        self._set_state(is_extracting=True)

    def _end_job(self) -> None:
        self._running_jobs = max(self._running_jobs - 1, 0)
        if self._running_jobs == 0:
            self._set_state(is_extracting=False)

    def _is_stale(self, generation: int, special_generation: int | None) -> bool:
        if generation != self._generation:
            return True
        return special_generation is not None and special_generation != self._special_generation

    def _update_metadata(self, field_id: str, value: Any) -> None:
        self._set_state(metadata={**self._state.metadata, field_id: value})

    def update_field_status(
        self,
        field_id: str,
        status: FieldStatus,
        value: Any = _UNSET,
        confidence: float | None = None,
        error: str | None = None,
    ) -> None:
        """Replace one field (or sub-field) with an updated copy.

        Unknown field ids are ignored.

        Args:
            field_id (str): Field or sub-field id.
            status (FieldStatus): New status.
            value (Any): New value; unchanged when omitted.
            confidence (float | None): New confidence; unchanged when None.
            error (str | None): Extraction error message.
        """
        changes: dict[str, Any] = {"status": status}
        if value is not _UNSET:
            changes["value"] = value
        if confidence is not None:
            changes["confidence"] = confidence
        if error is not None:
            changes["extraction_error"] = error
        elif status is not FieldStatus.ERROR:
            changes["extraction_error"] = None

        def _update(field: CanvasFieldState) -> CanvasFieldState:
            return field.model_copy(update=changes)

        core_fields, in_core = _replace_field(self._state.core_fields, field_id, _update)
        special_fields, in_special = _replace_field(self._state.special_fields, field_id, _update)
        if not (in_core or in_special):
            logger.debug("Status update for unknown field ignored", extra={"field_id": field_id})
            return
        self._with_fields(core_fields, special_fields)

    def _field_states(self, schema_file: str) -> list[CanvasFieldState]:
        return [CanvasFieldState.from_definition(item) for item in self._schema_source.get_fields(schema_file)]

    def _initialize_core_fields(self) -> None:
        core_schema_file = self._settings.core_schema_file
        core_fields = self._field_states(core_schema_file)
        template = self._schema_source.get_output_template(core_schema_file)
        self._with_fields(core_fields, [], metadata=template)
        logger.info("Core fields initialized", extra={"fields": len(core_fields)})

    def _load_special_schema(self, schema_file: str) -> None:
        special_fields = self._field_states(schema_file)
        template = self._schema_source.get_output_template(schema_file)
        self._with_fields(
            self._state.core_fields,
            special_fields,
            metadata={**self._state.metadata, **template},
        )
        logger.info("Special schema loaded", extra={"schema_file": schema_file, "fields": len(special_fields)})

    def _content_type_field(self) -> CanvasFieldState | None:
        field_id = self._settings.content_type_field_id
        return next((field for field in self._state.core_fields if field.field_id == field_id), None)

    def _fill_content_type_field(self, schema_file: str) -> None:
        field = self._content_type_field()
        if field is None or field.definition.vocabulary is None:
            return
        concept = next(
            (item for item in field.definition.vocabulary.concepts if item.schema_file == schema_file),
            None,
        )
        if concept is None:
            return

        value: Any = concept.uri or concept.label
        if field.definition.multiple:
            value = [value]
        self.update_field_status(
            field.field_id,
            FieldStatus.FILLED,
            value,
            self._state.content_type_confidence,
        )
        self._update_metadata(field.field_id, value)
        logger.info("Content type field filled", extra={"label": concept.label})

    async def detect_content_type(self, source_text: str) -> ContentTypeDetection | None:
        """Classify the source text into one of the special schemas.

        The answer is accepted only when it names a known schema file other
        than `none` with a confidence above the configured threshold.

        Args:
            source_text (str): Free text describing the resource.

        Returns:
            ContentTypeDetection | None: Accepted detection, else None.
        """
        concepts = self._schema_source.get_content_type_concepts()
        if not concepts:
            logger.info("No content types available, skipping detection")
            return None

        prompt = build_content_type_prompt(source_text, concepts)
        try:
            payload = await self._gateway.ainvoke(chat_messages(prompt))
            content = response_content(payload)
        except Exception as exc:
            logger.warning("Content type detection failed", extra={"error": str(exc)})
            return None

        detection = parse_content_type_response(content)
        known_files = {concept.schema_file for concept in concepts}
        if (
            detection is None
            or detection.schema_file == NO_CONTENT_TYPE
            or detection.confidence <= self._settings.content_type_min_confidence
            or detection.schema_file not in known_files
        ):
            logger.info("No content type detected", extra={"answer": content[:200]})
            return None

        self._set_state(
            detected_content_type=detection.schema_file,
            content_type_confidence=detection.confidence,
            selected_content_type=detection.schema_file,
        )
        logger.info(
            "Content type detected",
            extra={"schema_file": detection.schema_file, "confidence": detection.confidence},
        )
        return detection

    async def start_extraction(self, source_text: str, content_type: str | None = None) -> CanvasState:
        """Run a full batch: core fields, content type, special fields.

        Field failures stay local to their field. A failure outside the field
        tasks, such as an unreadable schema, aborts the batch and is logged
        once. After `reset` the batch stops writing to the state.

        Args:
            source_text (str): Free text describing the resource.
            content_type (str | None): Special schema file to use instead of
                detecting one.

        Returns:
            CanvasState: Snapshot after the batch.
        """
        self._running_jobs += 1
        self._set_state(
            source_text=source_text,
            is_extracting=True,
            extraction_progress=0.0,
            detected_content_type=None,
            content_type_confidence=0.0,
            selected_content_type=None,
        )
        generation = self._generation
        with bind_log_context(batch=generation, text_length=len(source_text)):
            return await self._run_batch(source_text, content_type, generation)

    async def _run_batch(self, source_text: str, content_type: str | None, generation: int) -> CanvasState:
        logger.info("Canvas extraction started")
        special_generation = self._special_generation
        try:
            self._initialize_core_fields()
            schema_file = content_type
            if schema_file is not None:
                self._set_state(selected_content_type=schema_file, content_type_confidence=1.0)
            else:
                detection = await self.detect_content_type(source_text)
                if generation != self._generation:
                    logger.info("Canvas extraction superseded by reset")
                    return self._state
                schema_file = detection.schema_file if detection is not None else None
            switched = special_generation != self._special_generation
            if switched:
                logger.info("Special schema switched during detection", extra={"detected": schema_file})
            elif schema_file is not None:
                self._load_special_schema(schema_file)
                self._fill_content_type_field(schema_file)

            state = self._state
            special_fields = [] if switched else state.special_fields
            await asyncio.gather(
                self._extract_fields(state.core_fields, source_text, generation),
                self._extract_fields(special_fields, source_text, generation, special_generation),
            )
            logger.info(
                "Canvas extraction completed",
                extra={"filled_fields": self._state.filled_fields, "total_fields": self._state.total_fields},
            )
        except SchemaStoreError as exc:
            logger.exception("Canvas extraction failed", extra={"schema_file": exc.schema_file})
        except PackageError:
            logger.exception("Canvas extraction failed")
        finally:
            if generation == self._generation:
                self._end_job()
        return self._state

    async def _extract_fields(
        self,
        fields: list[CanvasFieldState],
        source_text: str,
        generation: int,
        special_generation: int | None = None,
    ) -> None:
        content_type_field_id = self._settings.content_type_field_id
        tasks = [
            ExtractionTask.for_field(field, source_text)
            for field in fields
            if field.field_id != content_type_field_id
        ]
        if tasks:
            await asyncio.gather(*[self._extract_single_field(task, generation, special_generation) for task in tasks])

    async def _extract_single_field(
        self,
        task: ExtractionTask,
        generation: int,
        special_generation: int | None,
    ) -> None:
        field_id = task.field.field_id
        if self._is_stale(generation, special_generation):
            return
        self.update_field_status(field_id, FieldStatus.EXTRACTING)

        try:
            result = await self._pool.extract_field(task)
        except Exception as exc:
            logger.warning("Field extraction raised", extra={"field_id": field_id, "error": str(exc)})
            if not self._is_stale(generation, special_generation):
                self.update_field_status(
                    field_id,
                    FieldStatus.ERROR,
                    _empty_value(task.field),
                    0.0,
                    EXTRACTION_FAILED_MESSAGE,
                )
            return

        if self._is_stale(generation, special_generation) or self._state.find_field(field_id) is None:
            return

        if result.error:
            self.update_field_status(field_id, FieldStatus.ERROR, _empty_value(task.field), 0.0, result.error)
            return

        filled = is_value_filled(result.value)
        self.update_field_status(
            field_id,
            FieldStatus.FILLED if filled else FieldStatus.EMPTY,
            result.value,
            result.confidence,
        )
        if filled:
            self._update_metadata(field_id, result.value)
            if task.field.definition.has_shape:
                self._expand_shape(field_id, result.value)

    def _expand_shape(self, field_id: str, value: Any) -> None:
        """Attach sub-fields built from a composite value to its parent."""
        current = self._state.find_field(field_id)
        if current is None:
            return
        sub_fields = expand_field_with_shape(current, value)
        parent = mark_parent(current, sub_fields)
        core_fields, _ = _replace_field(self._state.core_fields, field_id, lambda _: parent)
        special_fields, _ = _replace_field(self._state.special_fields, field_id, lambda _: parent)
        self._with_fields(core_fields, special_fields)
        if sub_fields:
            logger.info("Sub-fields created", extra={"field_id": field_id, "sub_fields": len(sub_fields)})

    async def update_field_value(self, field_id: str, value: Any) -> None:
        """Apply a manual edit.

        The content-type field switches the special schema. Composite fields
        and sub-fields keep the value as given; other fields are normalized,
        and a value rejected by a controlled vocabulary clears the field.

        Args:
            field_id (str): Field or sub-field id.
            value (Any): Edited value.
        """
        field = self._state.find_field(field_id)
        if field is None:
            logger.warning("Edited field not found", extra={"field_id": field_id})
            return

        if field_id == self._settings.content_type_field_id:
            await self._apply_content_type_value(field, value)
            return

        definition = field.definition
        if field.parent_id is not None or definition.is_structured:
            filled = is_value_filled(value)
            self.update_field_status(
                field_id,
                FieldStatus.FILLED if filled else FieldStatus.EMPTY,
                value,
                1.0 if filled else 0.0,
            )
            if field.parent_id is None:
                self._update_metadata(field_id, value)
                if definition.has_shape:
                    self._expand_shape(field_id, value)
            return

        normalized = normalize_field_value(definition, value)
        filled = is_value_filled(normalized)
        self.update_field_status(
            field_id,
            FieldStatus.FILLED if filled else FieldStatus.EMPTY,
            normalized,
            1.0 if filled else 0.0,
        )
        self._update_metadata(field_id, normalized)
        logger.info("Field edited", extra={"field_id": field_id, "filled": filled})

    async def _apply_content_type_value(self, field: CanvasFieldState, value: Any) -> None:
        filled = is_value_filled(value)
        self.update_field_status(
            field.field_id,
            FieldStatus.FILLED if filled else FieldStatus.EMPTY,
            value,
            1.0 if filled else 0.0,
        )
        self._update_metadata(field.field_id, value)

        vocabulary = field.definition.vocabulary
        selected = value[0] if isinstance(value, list) and value else value
        if vocabulary is None or not filled:
            return
        concept = match_concept(selected, vocabulary.concepts)
        if concept is not None and concept.schema_file:
            await self.change_content_type(concept.schema_file)

    async def change_content_type(self, schema_file: str) -> None:
        """Switch the special schema and re-extract its fields.

        Queued tasks of the previous special fields are dropped and their
        results still in flight are ignored. `is_extracting` stays true until
        the last running batch or switch has finished.

        Args:
            schema_file (str): Special schema file name.

        Raises:
            SchemaStoreError: If the schema cannot be loaded.
        """
        logger.info("Content type change requested", extra={"schema_file": schema_file})
        self._special_generation += 1
        special_generation = self._special_generation
        generation = self._generation
        previous_ids = {field.field_id for field in self._state.special_fields}
        self._pool.drop_queued(previous_ids)
        metadata = {key: value for key, value in self._state.metadata.items() if key not in previous_ids}
        self._with_fields(self._state.core_fields, [], selected_content_type=schema_file, metadata=metadata)

        self._load_special_schema(schema_file)

        source_text = self._state.source_text
        if not source_text:
            return
        self._begin_job()
        try:
            await self._extract_fields(self._state.special_fields, source_text, generation, special_generation)
        finally:
            if generation == self._generation:
                self._end_job()

    def get_metadata(self) -> dict[str, Any]:
        """Return the enriched metadata document."""
        return serialize_metadata(self._state)

    def get_metadata_json(self) -> str:
        """Return the enriched metadata document as indented JSON."""
        return serialize_metadata_json(self._state)

    async def export_metadata(self, *, geocode: bool = False) -> dict[str, Any]:
        """Return the enriched metadata, optionally with geocoded places.

        Args:
            geocode (bool): Add coordinates to every `Place` value with an address.

        Returns:
            dict[str, Any]: Metadata document.
        """
        metadata = serialize_metadata(self._state)
        if not geocode:
            return metadata

        geocoder = self._geocoder or PhotonGeocoder(self._settings)
        for key, value in metadata.items():
            if isinstance(value, list) and any(_is_place(item) for item in value):
                metadata[key] = await geocoder.geocode_locations(value)
            elif _is_place(value):
                metadata[key] = await geocoder.geocode_place(value)
        return metadata

    def reset(self) -> None:
        """Drop queued extractions and start over with an empty state."""
        dropped = self._pool.clear_queue()
        self._generation += 1
        self._running_jobs = 0
        self._publish(CanvasState())
        logger.info("Canvas reset", extra={"dropped_tasks": dropped})
