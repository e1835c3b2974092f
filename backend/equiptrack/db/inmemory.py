"""In-memory implementations of repository interfaces."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

from backend.equiptrack.db.repositories import AuditEntry, RateLimitDecision


@dataclass
class RateLimitEntry:
    """Counter for one key within its current window."""

    count: int
    reset_at: datetime


class InMemoryRateLimitStore:
    """In-process implementation of RateLimitStore using a fixed window.

    Suitable for a single instance only. The lock makes each
    read-modify-write atomic, so concurrent requests against one key are
    each counted exactly once.
    """

    def __init__(self, max_requests: int, window_seconds: int = 15 * 60) -> None:
        """Initialize rate limit store.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 15 minutes)
        """
        self._max_requests = max_requests
        self._window = timedelta(seconds=window_seconds)
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = asyncio.Lock()

    async def check_and_increment(self, key: str, now: datetime) -> RateLimitDecision:
        """Count one request for key and decide whether it is allowed."""
        async with self._lock:
            self._sweep(now)

            entry = self._entries.get(key)

            if entry is None:
                # First request from this key
                entry = RateLimitEntry(count=1, reset_at=now + self._window)
                self._entries[key] = entry
            elif now > entry.reset_at:
                # Window elapsed
                entry.count = 1
                entry.reset_at = now + self._window
            else:
                # Blocked attempts still count against the window
                entry.count += 1

            return RateLimitDecision(
                allowed=entry.count <= self._max_requests,
                count=entry.count,
                limit=self._max_requests,
                reset_at=entry.reset_at,
            )

    def peek(self, key: str) -> RateLimitEntry | None:
        """Return the stored entry for key without counting a request."""
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: datetime) -> None:
        expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
        for key in expired:
            del self._entries[key]


class InMemoryAuditLogRepository:
    """In-memory implementation of AuditLogRepository."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> None:
        """Persist one audit entry."""
        self.entries.append(entry)
