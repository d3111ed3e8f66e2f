"""Async tick pipeline connecting producers → trackers → observers."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from auto_context.engine.models import ContextDecision
from auto_context.models import ContextTick
from auto_context.streaming.trackers import TrackerRegistry

logger = structlog.get_logger(__name__)

DecisionObserver = Callable[[ContextTick, ContextDecision], Awaitable[None]]


class StreamPipeline:
    """In-process async pipeline that buffers ticks, evaluates them on the
    device's tracker and forwards each decision to registered observers.

    A single consumer loop drains the :class:`asyncio.Queue`, so every
    tracker sees its ticks serially and in arrival order.  Ticks that need
    an answer go through the same queue via :meth:`submit`, behind any
    ticks already published for the device.
    """

    def __init__(self, registry: TrackerRegistry, maxsize: int = 10_000) -> None:
        self.registry = registry
        self._queue: asyncio.Queue[tuple[ContextTick, asyncio.Future | None]] = asyncio.Queue(
            maxsize=maxsize
        )
        self._observers: list[DecisionObserver] = []
        self._running = False
        self._processed_total = 0

    # ── Configuration ─────────────────────────────────────────

    def add_observer(self, fn: DecisionObserver) -> None:
        """Register an async callback that receives every decision."""
        self._observers.append(fn)

    # ── Producer side ─────────────────────────────────────────

    async def publish(self, tick: ContextTick) -> None:
        """Enqueue a tick for evaluation."""
        await self._queue.put((tick, None))

    async def publish_batch(self, ticks: list[ContextTick]) -> None:
        for t in ticks:
            await self._queue.put((t, None))

    async def submit(self, tick: ContextTick) -> ContextDecision:
        """Enqueue a tick and wait for its decision.

        Evaluation errors are re-raised to the caller.
        """
        future: asyncio.Future[ContextDecision] = asyncio.get_running_loop().create_future()
        await self._queue.put((tick, future))
        return await future

    # ── Consumer loop ─────────────────────────────────────────

    async def _handle(self, tick: ContextTick, future: asyncio.Future | None = None) -> None:
        try:
            decision = self.registry.process(tick)
        except Exception as exc:
            logger.error("stream_pipeline.evaluation_error", device_id=tick.device_id, error=str(exc))
            if future is not None and not future.done():
                future.set_exception(exc)
            return

        for observer in self._observers:
            try:
                await observer(tick, decision)
            except Exception as exc:
                logger.error(
                    "stream_pipeline.observer_error",
                    observer=getattr(observer, "__qualname__", repr(observer)),
                    error=str(exc),
                )

        if future is not None and not future.done():
            future.set_result(decision)

    async def start(self) -> None:
        """Start the consumer loop (run as a background task)."""
        self._running = True
        logger.info("stream_pipeline.started", observers=len(self._observers))

        last_stats_time = time.monotonic()

        while self._running:
            try:
                tick, future = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            await self._handle(tick, future)
            self._processed_total += 1
            self._queue.task_done()

            # Periodic stats every 60 seconds
            now = time.monotonic()
            if now - last_stats_time >= 60:
                logger.info(
                    "stream_pipeline.stats",
                    processed_total=self._processed_total,
                    queue_pending=self._queue.qsize(),
                    trackers=len(self.registry),
                )
                last_stats_time = now

    async def drain(self) -> None:
        """Wait until every queued tick has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Gracefully stop the consumer loop."""
        self._running = False
        logger.info("stream_pipeline.stopped", processed_total=self._processed_total)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def processed_total(self) -> int:
        return self._processed_total
