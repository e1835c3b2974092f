"""SQL implementations of repository interfaces."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.equiptrack.db.models import AuditLog
from backend.equiptrack.db.repositories import AuditEntry


class SqlAuditLogRepository:
    """SQL implementation of AuditLogRepository.

    Each append runs in its own short-lived session, independent of the
    request session that produced the audited response.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, entry: AuditEntry) -> None:
        """Persist one audit entry."""
        async with self._session_factory() as session:
            session.add(
                AuditLog(
                    company_id=entry.company_id,
                    user_id=entry.user_id,
                    action=entry.action,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    old_values=entry.old_values,
                    new_values=entry.new_values,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    created_at=entry.created_at,
                )
            )
            await session.commit()
