"""Batched usage accounting for accepted requests.

The store is tuned for bulk writes, so per-request increments are summed
in memory and flushed as one batch per accumulation window. A window
closes on a fixed interval or as soon as the pending unit count reaches
a threshold, whichever comes first.

Metering is lossy by contract: a batch that still fails after the retry
budget is logged and dropped, and a full buffer drops new events. Neither
ever reaches the request path.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Mapping
from threading import Lock
from typing import Protocol

import structlog

logger = structlog.get_logger()


class UsageSink(Protocol):
    async def increment_usage(self, counts: Mapping[str, int]) -> None: ...


class UsageAccumulator:
    """Sum per-code usage units and flush them to a ``UsageSink``.

    ``record`` is synchronous and never blocks on I/O. ``flush`` swaps the
    current window out under the lock, so records made while a flush is
    in progress belong to the next window.
    """

    def __init__(
        self,
        sink: UsageSink,
        *,
        flush_interval_seconds: float = 5.0,
        flush_threshold: int = 500,
        max_pending: int = 100_000,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        self._sink = sink
        self._interval = flush_interval_seconds
        self._threshold = flush_threshold
        self._max_pending = max_pending
        self._max_retries = max_retries
        self._backoff = backoff_seconds

        self._pending: Counter[str] = Counter()
        self._pending_units = 0
        self._lock = Lock()
        self._flush_lock = asyncio.Lock()
        self._flush_requested = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.dropped_units = 0

    @property
    def pending_units(self) -> int:
        with self._lock:
            return self._pending_units

    def record(self, code: str, units: int = 1) -> bool:
        """Add usage units for ``code`` to the current window.

        Returns:
            False if the buffer is full and the event was dropped.
        """
        with self._lock:
            if self._pending_units + units > self._max_pending:
                self.dropped_units += units
                dropped = True
            else:
                self._pending[code] += units
                self._pending_units += units
                dropped = False
            pending = self._pending_units

        if dropped:
            logger.warning("usage_record_dropped", pending_units=pending)
            return False
        if pending >= self._threshold:
            self._flush_requested.set()
        return True

    async def flush(self) -> int:
        """Drain the current window into one batched store write.

        Returns:
            Number of usage units written (0 when empty or dropped).
        """
        async with self._flush_lock:
            batch = self._take_window()
            if not batch:
                return 0
            units = sum(batch.values())
            try:
                written = await self._write_with_retries(batch)
            except asyncio.CancelledError:
                self._restore(batch)
                raise
            if written:
                logger.debug("usage_flushed", codes=len(batch), units=units)
                return units
            logger.error(
                "usage_flush_dropped",
                codes=len(batch),
                units=units,
                attempts=self._max_retries + 1,
            )
            return 0

    async def start(self) -> None:
        """Start the background flush loop on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="usage-accumulator")

    async def stop(self) -> None:
        """Stop the flush loop and drain whatever is still pending."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.flush()

    # -- internals ------------------------------------------------------

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._flush_requested.wait(), self._interval)
            except TimeoutError:
                pass
            self._flush_requested.clear()
            try:
                await self.flush()
            except Exception:
                logger.exception("usage_flush_loop_error")

    async def _write_with_retries(self, batch: Mapping[str, int]) -> bool:
        """Try the batch write up to ``max_retries + 1`` times."""
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await self._sink.increment_usage(batch)
                return True
            except Exception as exc:
                logger.warning(
                    "usage_flush_failed",
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )
                if attempt < attempts:
                    await asyncio.sleep(self._backoff * 2 ** (attempt - 1))
        return False

    def _take_window(self) -> Counter[str]:
        with self._lock:
            batch, self._pending = self._pending, Counter()
            self._pending_units = 0
        return batch

    def _restore(self, batch: Counter[str]) -> None:
        with self._lock:
            self._pending.update(batch)
            self._pending_units += sum(batch.values())
