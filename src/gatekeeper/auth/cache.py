"""In-memory TTL cache of validated auth code snapshots."""

import time
from collections import OrderedDict
from datetime import datetime
from threading import Lock

from gatekeeper.models.auth_code import AuthCodeRecord


class ValidationCache:
    """Bounded, time-limited cache keyed by auth code.

    Thread-safe via Lock. Single-instance only: a deactivation on another
    instance is seen here once the entry's TTL runs out.

    Each entry lives for ``ttl_seconds`` at most and never past the code's
    own ``expires_at``. Concurrent puts for one code: last writer wins.
    """

    def __init__(self, ttl_seconds: float = 30.0, max_entries: int = 10_000) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: OrderedDict[str, tuple[AuthCodeRecord, float]] = OrderedDict()
        self._lock = Lock()

    def get(self, code: str) -> AuthCodeRecord | None:
        """Return the cached snapshot, or None on miss or stale entry."""
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(code)
            if entry is None:
                return None
            record, deadline = entry
            if deadline <= now:
                del self._entries[code]
                return None
            return record

    def put(self, record: AuthCodeRecord, now: datetime) -> bool:
        """Cache a snapshot fetched from the store.

        Args:
            record: Snapshot to cache.
            now: Current wall-clock time, used to cap TTL at the code's expiry.

        Returns:
            False if the code has no lifetime left and was not cached.
        """
        ttl = self._ttl
        remaining = record.remaining_seconds(now)
        if remaining is not None:
            ttl = min(ttl, remaining)
        if ttl <= 0:
            return False

        deadline = time.monotonic() + ttl
        with self._lock:
            self._entries[record.auth_code] = (record, deadline)
            self._entries.move_to_end(record.auth_code)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return True

    def invalidate(self, code: str) -> None:
        with self._lock:
            self._entries.pop(code, None)

    def cleanup(self) -> int:
        """Remove all expired entries. Call periodically.

        Returns:
            Number of entries removed.
        """
        now = time.monotonic()
        with self._lock:
            stale = [
                code
                for code, (_, deadline) in self._entries.items()
                if deadline <= now
            ]
            for code in stale:
                del self._entries[code]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
