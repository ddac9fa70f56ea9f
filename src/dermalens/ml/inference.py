"""Bounded worker pool for classification work.

Each job submitted by the orchestrator decodes and resizes one upload with
Pillow, then runs the ONNX forward pass and ranks the scores. Both steps are
CPU-bound and run on a dedicated ThreadPoolExecutor:

    infer() -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> preprocess -> predict

At most N jobs run at once. Callers beyond that wait up to
SEMAPHORE_TIMEOUT_SECONDS for a slot and then get TimeoutError, which the API
maps to 503. The pool also counts queued, running and completed jobs for /health.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Manages the semaphore and thread pool for ML inference."""

    def __init__(self, max_concurrent: int) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix="dermalens-inference",
        )
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._completed_count: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Submit a synchronous function to the inference thread pool.

        Acquires the semaphore (with timeout), runs the function in the
        executor, then releases.

        Raises:
            TimeoutError: If the semaphore cannot be acquired within the timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(
                self._semaphore.acquire(),
                timeout=SEMAPHORE_TIMEOUT_SECONDS,
            )
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

        with self._counter_lock:
            self._completed_count += 1
        return result

    @property
    def active_count(self) -> int:
        """Number of currently running inference tasks."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a semaphore slot."""
        with self._counter_lock:
            return self._queue_depth

    @property
    def completed_count(self) -> int:
        """Number of inference tasks that finished without raising."""
        with self._counter_lock:
            return self._completed_count

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        logger.info("Shutting down inference pool")
        self._executor.shutdown(wait=True)
