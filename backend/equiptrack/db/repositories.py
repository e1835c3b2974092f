"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against a fixed window.

    `count` is the stored count after this request, including a denied one.
    """

    allowed: bool
    count: int
    limit: int
    reset_at: datetime

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimitStore(Protocol):
    """Shared counter table keyed by identity or origin."""

    async def check_and_increment(self, key: str, now: datetime) -> RateLimitDecision:
        """Count one request for key and decide whether it is allowed.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            Decision carrying count, limit and window reset time
        """
        ...


@dataclass
class AuditEntry:
    """Audit log data record."""

    company_id: UUID
    user_id: UUID
    action: str
    entity_type: str
    entity_id: str | None
    old_values: Any | None
    new_values: Any | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime


class AuditLogRepository(Protocol):
    """Append-only sink for audit entries."""

    async def append(self, entry: AuditEntry) -> None:
        """Persist one audit entry.

        Args:
            entry: Entry to persist
        """
        ...
