"""Priority-ordered, bounded-concurrency scheduler for field extractions."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from metacanvas import logger
from metacanvas.typing.models import ExtractionResult, WorkerPoolStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Collection

    from metacanvas.typing.models import ExtractionTask
    from metacanvas.typing.protocol import FieldExtractorFn

CANCELLED_MESSAGE = "Extraction cancelled"


class FieldExtractionWorkerPool:
    """Run extraction tasks with at most `max_workers` in flight.

    Pending tasks are kept ordered by descending priority; ties keep their
    submission order. A finished task, successful or not, frees its slot and
    the next pending task starts.
    """

    def __init__(self, extractor: FieldExtractorFn, max_workers: int = 10) -> None:
        """Initialize pool.

        Args:
            extractor (FieldExtractorFn): Coroutine running one task.
            max_workers (int): Concurrency cap.

        Raises:
            ValueError: If `max_workers` is lower than 1.
        """
        _check_max_workers(max_workers)
        self._extractor = extractor
        self._max_workers = max_workers
        self._active_workers = 0
        self._pending: list[tuple[ExtractionTask, asyncio.Future[ExtractionResult]]] = []
        self._running: set[asyncio.Task[None]] = set()

    @property
    def max_workers(self) -> int:
        """Return the concurrency cap."""
        return self._max_workers

    @property
    def active_workers(self) -> int:
        """Return the number of tasks in flight."""
        return self._active_workers

    @property
    def queue_length(self) -> int:
        """Return the number of tasks waiting for a slot."""
        return len(self._pending)

    def submit(self, task: ExtractionTask) -> asyncio.Future[ExtractionResult]:
        """Queue a task and start it as soon as a slot is free.

        Must be called from a running event loop.

        Args:
            task (ExtractionTask): Task to run.

        Returns:
            asyncio.Future[ExtractionResult]: Resolves with the extractor's result,
            or raises what the extractor raised.
        """
        future: asyncio.Future[ExtractionResult] = asyncio.get_running_loop().create_future()
        self._pending.append((task, future))
        self._pending.sort(key=lambda entry: entry[0].priority, reverse=True)
        logger.debug(
            "Extraction task queued",
            extra={"field_id": task.field.field_id, "priority": task.priority, "queue_length": len(self._pending)},
        )
        self._advance()
        return future

    async def extract_field(self, task: ExtractionTask) -> ExtractionResult:
        """Submit a task and wait for its result."""
        return await self.submit(task)

    def _advance(self) -> None:
        while self._active_workers < self._max_workers and self._pending:
            task, future = self._pending.pop(0)
            if future.done():
                continue
            self._active_workers += 1
            runner = asyncio.get_running_loop().create_task(self._run(task, future))
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

    async def _run(self, task: ExtractionTask, future: asyncio.Future[ExtractionResult]) -> None:
        try:
            result = await self._extractor(task)
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            logger.warning(
                "Extraction task raised",
                extra={"field_id": task.field.field_id, "error": str(exc)},
            )
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._active_workers -= 1
            self._advance()

    def clear_queue(self) -> int:
        """Drop every task that has not started yet.

        Callers awaiting a dropped task receive a result carrying the
        `Extraction cancelled` error. Tasks in flight are not affected.

        Returns:
            int: Number of dropped tasks.
        """
        return self._drop_pending(lambda task: True)

    def drop_queued(self, field_ids: Collection[str]) -> int:
        """Drop the waiting tasks of the given fields, like `clear_queue`.

        Args:
            field_ids (Collection[str]): Ids of the fields whose tasks are dropped.

        Returns:
            int: Number of dropped tasks.
        """
        return self._drop_pending(lambda task: task.field.field_id in field_ids)

    def _drop_pending(self, predicate: Callable[[ExtractionTask], bool]) -> int:
        dropped = [entry for entry in self._pending if predicate(entry[0])]
        if not dropped:
            return 0
        self._pending = [entry for entry in self._pending if not predicate(entry[0])]
        for task, future in dropped:
            if not future.done():
                future.set_result(ExtractionResult(field_id=task.field.field_id, error=CANCELLED_MESSAGE))
        logger.info("Queued extraction tasks dropped", extra={"dropped": len(dropped), "remaining": len(self._pending)})
        return len(dropped)

    def set_max_workers(self, max_workers: int) -> None:
        """Change the concurrency cap; a higher cap starts waiting tasks at once.

        Args:
            max_workers (int): New cap.

        Raises:
            ValueError: If `max_workers` is lower than 1.
        """
        _check_max_workers(max_workers)
        self._max_workers = max_workers
        if not self._pending:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._advance()

    def status(self) -> WorkerPoolStatus:
        """Return the current occupancy."""
        return WorkerPoolStatus(
            active_workers=self._active_workers,
            queue_length=len(self._pending),
            max_workers=self._max_workers,
        )


def _check_max_workers(max_workers: int) -> None:
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")  # noqa: TRY003
