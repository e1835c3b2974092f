"""Post-completion audit recording.

The recorder observes a finalized response and persists an audit entry for
state-changing requests made by a resolved identity. Persistence runs in a
background task: it never delays the response, and its failures are logged
and counted, never surfaced to the caller or retried.
"""

import asyncio
import json
import logging
import re
from typing import Any

from backend.equiptrack.db.context import Identity
from backend.equiptrack.db.repositories import AuditEntry, AuditLogRepository
from backend.equiptrack.utils.clock import utcnow
from backend.equiptrack.utils.metrics import audit_failures_total

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
UPDATE_METHODS = frozenset({"PUT", "PATCH"})

_METHOD_ACTIONS = {
    "POST": "created",
    "PUT": "updated",
    "PATCH": "updated",
    "DELETE": "deleted",
}

# Ordered: first matching prefix wins
ENTITY_TYPE_PREFIXES: tuple[tuple[str, str], ...] = (
    ("/users", "user"),
    ("/equipment", "equipment"),
    ("/events", "event"),
    ("/teams", "team"),
    ("/maintenance", "maintenance"),
)

# Credential fields are masked before bodies reach the audit log
_SENSITIVE_KEY = re.compile(r"password|token|secret", re.IGNORECASE)
REDACTED = "[REDACTED]"

_UUID_SEGMENT = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def derive_action(method: str, path: str) -> str:
    """Map a request onto an audit action name."""
    if "logout" in path:
        return "logout"
    if "login" in path:
        return "login"
    return _METHOD_ACTIONS.get(method.upper(), method.lower())


def derive_entity_type(path: str) -> str:
    for prefix, entity_type in ENTITY_TYPE_PREFIXES:
        if path.startswith(prefix):
            return entity_type
    return "unknown"


def extract_entity_id(path: str) -> str | None:
    """Return the first path segment that is a well-formed UUID."""
    for segment in path.split("/"):
        if _UUID_SEGMENT.match(segment):
            return segment
    return None


def redact(value: Any) -> Any:
    """Replace values of credential-like keys, recursively."""
    if isinstance(value, dict):
        return {
            key: REDACTED if _SENSITIVE_KEY.search(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


def decode_body(body: bytes | None) -> Any | None:
    """Decode a JSON body; anything else is not captured."""
    if not body:
        return None
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None


class AuditRecorder:
    """Records state-changing operations without blocking the response."""

    def __init__(self, repository: AuditLogRepository) -> None:
        self._repository = repository
        self._pending: set[asyncio.Task[None]] = set()

    @staticmethod
    def should_record(identity: Identity | None, method: str) -> bool:
        return identity is not None and method.upper() in MUTATING_METHODS

    def build_entry(
        self,
        identity: Identity,
        method: str,
        path: str,
        request_body: bytes | None,
        response_body: bytes | None,
        status_code: int,
        ip_address: str | None,
        user_agent: str | None,
    ) -> AuditEntry:
        method = method.upper()
        return AuditEntry(
            company_id=identity.company_id,
            user_id=identity.user_id,
            action=derive_action(method, path),
            entity_type=derive_entity_type(path),
            entity_id=extract_entity_id(path),
            old_values=redact(decode_body(request_body)) if method in UPDATE_METHODS else None,
            new_values=redact(decode_body(response_body)) if status_code < 400 else None,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=utcnow(),
        )

    async def record(
        self,
        identity: Identity | None,
        method: str,
        path: str,
        request_body: bytes | None,
        response_body: bytes | None,
        status_code: int,
        elapsed_ms: float,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        """Persist an audit entry if the request qualifies; never raises."""
        if identity is None or not self.should_record(identity, method):
            return

        try:
            entry = self.build_entry(
                identity,
                method,
                path,
                request_body,
                response_body,
                status_code,
                ip_address,
                user_agent,
            )
            await self._repository.append(entry)
        except Exception:
            audit_failures_total.inc()
            logger.exception(
                "Audit logging failed",
                extra={
                    "structured": {
                        "method": method,
                        "path": path,
                        "status": status_code,
                        "elapsed_ms": round(elapsed_ms, 2),
                        "user_id": str(identity.user_id),
                    }
                },
            )

    def schedule(self, **kwargs: Any) -> asyncio.Task[None] | None:
        """Run `record` in a background task and return it.

        Returns None when the request does not qualify for auditing.
        """
        if not self.should_record(kwargs.get("identity"), kwargs.get("method", "")):
            return None

        task = asyncio.create_task(self.record(**kwargs))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all scheduled audit writes (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
