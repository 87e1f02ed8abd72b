from __future__ import annotations

import asyncio

import pytest

from metacanvas.typing.models import CanvasFieldState, ExtractionResult, ExtractionTask, FieldDefinition
from metacanvas.worker_pool import CANCELLED_MESSAGE, FieldExtractionWorkerPool


def _task(field_id: str, priority: int = 5) -> ExtractionTask:
    field = CanvasFieldState(definition=FieldDefinition(id=field_id, label=field_id))
    return ExtractionTask(field=field, source_text="text", priority=priority)


class _GatedExtractor:
    """Extractor recording start order and concurrency, blocked until released."""

    def __init__(self) -> None:
        self.started: list[str] = []
        self.running = 0
        self.peak = 0
        self.gate = asyncio.Event()

    async def __call__(self, task: ExtractionTask) -> ExtractionResult:
        field_id = task.field.field_id
        self.started.append(field_id)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await self.gate.wait()
        finally:
            self.running -= 1
        if field_id.startswith("bad"):
            raise RuntimeError(f"{field_id} exploded")
        return ExtractionResult(field_id=field_id, value=field_id.upper(), confidence=0.85)


def test_constructor_rejects_non_positive_cap() -> None:
    with pytest.raises(ValueError, match="at least 1"):
        FieldExtractionWorkerPool(_GatedExtractor(), max_workers=0)


def test_concurrency_never_exceeds_cap() -> None:
    async def scenario() -> tuple[list[ExtractionResult], _GatedExtractor]:
        extractor = _GatedExtractor()
        pool = FieldExtractionWorkerPool(extractor, max_workers=2)
        futures = [pool.submit(_task(f"field-{index}")) for index in range(6)]
        await asyncio.sleep(0)
        assert pool.active_workers == 2
        assert pool.queue_length == 4
        extractor.gate.set()
        results = await asyncio.gather(*futures)
        assert pool.status().active_workers == 0
        return results, extractor

    results, extractor = asyncio.run(scenario())

    assert extractor.peak == 2
    assert [result.value for result in results] == [f"FIELD-{index}" for index in range(6)]


def test_higher_priority_starts_first_and_ties_keep_submission_order() -> None:
    async def scenario() -> list[str]:
        extractor = _GatedExtractor()
        pool = FieldExtractionWorkerPool(extractor, max_workers=1)
        futures = [
            pool.submit(_task("blocker")),
            pool.submit(_task("optional-1", priority=5)),
            pool.submit(_task("required-1", priority=10)),
            pool.submit(_task("optional-2", priority=5)),
            pool.submit(_task("required-2", priority=10)),
        ]
        extractor.gate.set()
        await asyncio.gather(*futures)
        return extractor.started

    assert asyncio.run(scenario()) == ["blocker", "required-1", "required-2", "optional-1", "optional-2"]


def test_failure_propagates_and_frees_the_slot() -> None:
    async def scenario() -> list[object]:
        extractor = _GatedExtractor()
        extractor.gate.set()
        pool = FieldExtractionWorkerPool(extractor, max_workers=1)
        outcome = await asyncio.gather(
            pool.extract_field(_task("bad-field")),
            pool.extract_field(_task("good-field")),
            return_exceptions=True,
        )
        assert pool.active_workers == 0
        return outcome

    failure, success = asyncio.run(scenario())

    assert isinstance(failure, RuntimeError)
    assert str(failure) == "bad-field exploded"
    assert isinstance(success, ExtractionResult)
    assert success.value == "GOOD-FIELD"


def test_clear_queue_cancels_waiting_tasks_only() -> None:
    async def scenario() -> tuple[int, list[ExtractionResult]]:
        extractor = _GatedExtractor()
        pool = FieldExtractionWorkerPool(extractor, max_workers=1)
        running = pool.submit(_task("running"))
        waiting = [pool.submit(_task("waiting-1")), pool.submit(_task("waiting-2"))]
        await asyncio.sleep(0)

        dropped = pool.clear_queue()
        assert pool.status().queue_length == 0
        assert pool.status().active_workers == 1

        extractor.gate.set()
        results = [await running, *(await asyncio.gather(*waiting))]
        assert extractor.started == ["running"]
        return dropped, results

    dropped, results = asyncio.run(scenario())

    assert dropped == 2
    assert results[0].error is None
    assert [(result.field_id, result.error) for result in results[1:]] == [
        ("waiting-1", CANCELLED_MESSAGE),
        ("waiting-2", CANCELLED_MESSAGE),
    ]


def test_clear_queue_on_empty_pool_is_noop() -> None:
    pool = FieldExtractionWorkerPool(_GatedExtractor(), max_workers=1)
    assert pool.clear_queue() == 0


def test_drop_queued_removes_only_named_fields() -> None:
    async def scenario() -> tuple[int, list[ExtractionResult], list[str]]:
        extractor = _GatedExtractor()
        pool = FieldExtractionWorkerPool(extractor, max_workers=1)
        running = pool.submit(_task("schema:startDate"))
        kept = pool.submit(_task("cclom:title"))
        dropped_future = pool.submit(_task("schema:price"))
        await asyncio.sleep(0)

        dropped = pool.drop_queued({"schema:startDate", "schema:price"})
        assert pool.status().queue_length == 1

        extractor.gate.set()
        results = [await running, await kept, await dropped_future]
        return dropped, results, extractor.started

    dropped, results, started = asyncio.run(scenario())

    assert dropped == 1
    assert started == ["schema:startDate", "cclom:title"]
    assert [result.error for result in results] == [None, None, CANCELLED_MESSAGE]


def test_raising_cap_starts_waiting_tasks() -> None:
    async def scenario() -> None:
        extractor = _GatedExtractor()
        pool = FieldExtractionWorkerPool(extractor, max_workers=1)
        futures = [pool.submit(_task(f"field-{index}")) for index in range(3)]
        assert pool.status().model_dump() == {"active_workers": 1, "queue_length": 2, "max_workers": 1}

        pool.set_max_workers(3)
        assert pool.status().model_dump() == {"active_workers": 3, "queue_length": 0, "max_workers": 3}

        extractor.gate.set()
        await asyncio.gather(*futures)

    asyncio.run(scenario())


def test_set_max_workers_validates_and_works_without_loop() -> None:
    pool = FieldExtractionWorkerPool(_GatedExtractor(), max_workers=2)

    pool.set_max_workers(4)
    assert pool.max_workers == 4

    with pytest.raises(ValueError, match="at least 1"):
        pool.set_max_workers(0)
