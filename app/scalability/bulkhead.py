"""Bulkhead: bounded background executor. Max concurrent tasks, queue overflow protection, explicit shutdown."""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class BulkheadFullError(RuntimeError):
    """Raised when the bounded queue cannot take another task."""


class BulkheadExecutor:
    """
    Limits max concurrent tasks. Bounded queue for waiting; overflow raises BulkheadFullError.
    Async-safe. Tasks are submitted without awaiting them; the returned future carries
    the result or the exception.
    """

    def __init__(
        self,
        max_concurrent: int = 10,
        max_queued: int = 100,
    ) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._max_concurrent = max_concurrent
        self._max_queued = max_queued
        self._queue: asyncio.Queue[tuple[asyncio.Future[Any], Callable[..., Awaitable[Any]], tuple[Any, ...], dict[str, Any]]] = asyncio.Queue(maxsize=max_queued)
        self._active = 0
        self._running: set[asyncio.Task[None]] = set()
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run_worker())

    async def _run_worker(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                await self._semaphore.acquire()
            except asyncio.CancelledError:
                item[0].cancel()
                self._queue.task_done()
                raise
            running = asyncio.create_task(self._run_one(*item))
            self._running.add(running)
            running.add_done_callback(self._running.discard)

    async def _run_one(
        self,
        future: asyncio.Future[Any],
        task: Callable[..., Awaitable[Any]],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        self._active += 1
        try:
            result = await task(*args, **kwargs)
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._active -= 1
            self._semaphore.release()
            self._queue.task_done()

    def submit_nowait(
        self,
        task: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> "asyncio.Future[T]":
        """Enqueue task and return its future immediately. Raises BulkheadFullError if the queue is full."""
        if self._closed:
            raise BulkheadFullError("Bulkhead: executor is shut down")
        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        try:
            self._queue.put_nowait((future, task, args, kwargs))
        except asyncio.QueueFull:
            raise BulkheadFullError("Bulkhead: max concurrent and queue full") from None
        return future

    async def submit(
        self,
        task: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run task with bulkhead limit and wait for its result."""
        return await self.submit_nowait(task, *args, **kwargs)

    async def shutdown(self, timeout: float | None = 5.0) -> None:
        """Stop accepting work, give queued tasks up to timeout to finish, then cancel the rest."""
        self._closed = True
        if self._worker is not None and not self._worker.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout)
            except asyncio.TimeoutError:
                pass
            self._worker.cancel()
        while not self._queue.empty():
            future, *_ = self._queue.get_nowait()
            future.cancel()
            self._queue.task_done()
        running = list(self._running)
        for task in running:
            task.cancel()
        await asyncio.gather(*running, return_exceptions=True)
        if self._worker is not None:
            await asyncio.gather(self._worker, return_exceptions=True)
