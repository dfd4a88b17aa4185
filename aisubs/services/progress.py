import asyncio
import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

_CLOSED = object()


def rescale(start: float, span: float) -> Callable[[float], float]:
    """Map a stage's own 0-100 progress onto ``start .. start + span``."""

    def _scale(progress: float) -> float:
        return start + min(max(progress, 0.0), 100.0) * span / 100.0

    return _scale


class ProgressRelay:
    """Single-consumer progress stream.

    Producers call :meth:`emit` from the event loop thread; a consumer task
    drains the queue in order and hands each value to ``sink``. Leaving the
    ``async with`` block closes the stream and waits for the queue to drain,
    whether the block exited normally or with an error.
    """

    def __init__(self, sink: ProgressCallback) -> None:
        self._sink = sink
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._consumer: Optional["asyncio.Task[None]"] = None
        self._closed = False

    async def __aenter__(self) -> "ProgressRelay":
        self._consumer = asyncio.create_task(self._drain())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
        if self._consumer is not None:
            await self._consumer

    def emit(self, progress: float) -> None:
        if self._closed:
            return
        self._queue.put_nowait(progress)

    def stage(self, start: float, span: float) -> ProgressCallback:
        """Return a callback that rescales a sub-stage's progress before emitting."""
        scale = rescale(start, span)
        return lambda progress: self.emit(scale(progress))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def _drain(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            value = float(item)  # type: ignore[arg-type]
            try:
                self._sink(value)
            except Exception:  # noqa: BLE001
                logger.exception("Progress sink failed for value %.2f", value)
