"""Tests for batched usage accounting."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from unittest.mock import AsyncMock, patch

from gatekeeper.auth.usage import UsageAccumulator
from tests.unit.fakes import InMemoryAuthCodeStore, make_record


async def _wait_for(predicate, timeout: float = 2.0) -> None:  # type: ignore[no-untyped-def]
    """Poll until predicate() is truthy or fail after timeout."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


class _BlockingSink:
    """Sink whose first write waits until released."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.batches: list[dict[str, int]] = []

    async def increment_usage(self, counts: Mapping[str, int]) -> None:
        self.started.set()
        await self.release.wait()
        self.batches.append(dict(counts))


class TestRecordAndFlush:
    async def test_flush_sums_per_code(self, store: InMemoryAuthCodeStore) -> None:
        """One batched increment per distinct code, summed."""
        acc = UsageAccumulator(store)
        for _ in range(3):
            acc.record("tupleap_a")
        acc.record("tupleap_b")

        flushed = await acc.flush()

        assert flushed == 4
        assert store.increment_calls == [{"tupleap_a": 3, "tupleap_b": 1}]
        assert acc.pending_units == 0

    async def test_flush_empty_is_noop(self, store: InMemoryAuthCodeStore) -> None:
        acc = UsageAccumulator(store)
        assert await acc.flush() == 0
        assert store.increment_calls == []

    async def test_flush_updates_stored_usage(
        self, store: InMemoryAuthCodeStore
    ) -> None:
        store.add(make_record("tupleap_a", usage_count=5))
        acc = UsageAccumulator(store)
        acc.record("tupleap_a")
        acc.record("tupleap_a")

        await acc.flush()

        assert store.rows["tupleap_a"].usage_count == 7

    def test_full_buffer_drops(self, store: InMemoryAuthCodeStore) -> None:
        acc = UsageAccumulator(store, max_pending=2)

        assert acc.record("tupleap_a") is True
        assert acc.record("tupleap_a") is True
        assert acc.record("tupleap_a") is False

        assert acc.pending_units == 2
        assert acc.dropped_units == 1

    async def test_records_during_flush_go_to_next_window(self) -> None:
        sink = _BlockingSink()
        acc = UsageAccumulator(sink)
        acc.record("tupleap_a")

        flush_task = asyncio.create_task(acc.flush())
        await sink.started.wait()
        acc.record("tupleap_a")
        acc.record("tupleap_b")
        sink.release.set()
        assert await flush_task == 1

        assert sink.batches == [{"tupleap_a": 1}]
        assert acc.pending_units == 2

        await acc.flush()
        assert sink.batches[1] == {"tupleap_a": 1, "tupleap_b": 1}


class TestRetries:
    async def test_retries_then_succeeds(self, store: InMemoryAuthCodeStore) -> None:
        store.fail_increments = 2
        acc = UsageAccumulator(store, max_retries=3, backoff_seconds=0)
        acc.record("tupleap_a")

        assert await acc.flush() == 1
        assert store.increment_calls == [{"tupleap_a": 1}]

    async def test_drops_batch_after_exhausting_retries(
        self, store: InMemoryAuthCodeStore
    ) -> None:
        store.fail_increments = 10
        acc = UsageAccumulator(store, max_retries=2, backoff_seconds=0)
        acc.record("tupleap_a")

        assert await acc.flush() == 0
        assert store.increment_calls == []
        assert store.fail_increments == 7  # 3 attempts consumed
        assert acc.pending_units == 0

    async def test_exponential_backoff(self, store: InMemoryAuthCodeStore) -> None:
        store.fail_increments = 10
        acc = UsageAccumulator(store, max_retries=2, backoff_seconds=0.5)
        acc.record("tupleap_a")

        with patch("gatekeeper.auth.usage.asyncio.sleep", new=AsyncMock()) as sleep:
            await acc.flush()

        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]


class TestBackgroundLoop:
    async def test_threshold_triggers_flush(self, store: InMemoryAuthCodeStore) -> None:
        acc = UsageAccumulator(store, flush_interval_seconds=60, flush_threshold=3)
        await acc.start()
        try:
            for _ in range(3):
                acc.record("tupleap_a")
            await _wait_for(lambda: store.increment_calls)
        finally:
            await acc.stop()

        assert store.increment_calls[0] == {"tupleap_a": 3}

    async def test_interval_triggers_flush(self, store: InMemoryAuthCodeStore) -> None:
        acc = UsageAccumulator(store, flush_interval_seconds=0.05, flush_threshold=100)
        await acc.start()
        try:
            acc.record("tupleap_a")
            await _wait_for(lambda: store.increment_calls)
        finally:
            await acc.stop()

        assert store.increment_calls[0] == {"tupleap_a": 1}

    async def test_stop_drains_pending(self, store: InMemoryAuthCodeStore) -> None:
        acc = UsageAccumulator(store, flush_interval_seconds=60, flush_threshold=100)
        await acc.start()
        acc.record("tupleap_a")
        acc.record("tupleap_b")

        await acc.stop()

        assert store.increment_calls == [{"tupleap_a": 1, "tupleap_b": 1}]
        assert acc.pending_units == 0
