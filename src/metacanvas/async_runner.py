"""Run extraction coroutines from synchronous callers such as the CLI."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from metacanvas.exceptions import AsyncExecutionError, PackageError

if TYPE_CHECKING:
    from collections.abc import Coroutine


def _run_on_private_loop[T](coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine on its own event loop in a worker thread.

    Package errors pass through unchanged so callers can map them to exit
    codes. Other exceptions are wrapped; `KeyboardInterrupt` and
    `asyncio.CancelledError` propagate as they are.

    Raises:
        AsyncExecutionError: If the coroutine fails with a non-package error.
    """
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="metacanvas-loop") as executor:
        future = executor.submit(asyncio.run, coro)
        try:
            return future.result()
        except PackageError:
            raise
        except Exception as exc:
            raise AsyncExecutionError(result=exc) from exc


def run_async[T](coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion and return its result.

    Without a running loop the coroutine runs through `asyncio.run`. Inside a
    running loop (notebooks, async hosts) it runs on a private loop in a worker
    thread, so the caller's loop and its worker pool are never re-entered.

    Args:
        coro: The coroutine to run.

    Returns:
        The result of the coroutine.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    return _run_on_private_loop(coro)
