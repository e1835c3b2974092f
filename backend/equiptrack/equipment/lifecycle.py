"""Equipment lifecycle: current state plus its append-only history ledger.

Every accepted change to an equipment item's status or location is written
together with exactly one `EquipmentStatusHistory` row, in one transaction.
Writers take the equipment row `FOR UPDATE` and derive the next ledger
sequence under that lock; the unique (equipment_id, sequence) constraint is
the backstop on stores without row locks, and a collision retries the whole
read-validate-write unit a bounded number of times.

Invariant: the latest ledger entry's new_status/new_location always equal
the equipment row's current_status/location.
"""

import logging
import math
import secrets
import string
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.equiptrack.api.policy import Action, authorize
from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.models import (
    Equipment,
    EquipmentAssignment,
    EquipmentStatusHistory,
)
from backend.equiptrack.db.queries import select_equipment
from backend.equiptrack.equipment.types import load_equipment_type
from backend.equiptrack.errors import AppError, Conflict, NotFound, ValidationFailure
from backend.equiptrack.models.common import (
    EquipmentCondition,
    EquipmentStatus,
    Pagination,
    SortOrder,
)
from backend.equiptrack.models.equipment import (
    AssignmentOut,
    EquipmentCreate,
    EquipmentDetail,
    EquipmentOut,
    EquipmentPage,
    EquipmentStatusUpdate,
    EquipmentUpdate,
    StatusHistoryOut,
)
from backend.equiptrack.utils.metrics import equipment_transitions_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCATION = "Warehouse"
RECENT_HISTORY_LIMIT = 5
_TRACKING_CODE_ALPHABET = string.ascii_lowercase + string.digits

SORT_COLUMNS = {
    "name": Equipment.name,
    "createdAt": Equipment.created_at,
    "updatedAt": Equipment.updated_at,
    "purchaseDate": Equipment.purchase_date,
    "nextMaintenanceDue": Equipment.next_maintenance_due,
}

# Columns that may not be cleared by an explicit null in a partial update
_REQUIRED_FIELDS = frozenset(
    {"name", "equipment_type_id", "current_status", "condition", "location"}
)


def generate_tracking_code() -> str:
    """Globally unique tracking code: EQ-<epoch millis>-<9 random base36 chars>."""
    suffix = "".join(secrets.choice(_TRACKING_CODE_ALPHABET) for _ in range(9))
    return f"EQ-{int(time.time() * 1000)}-{suffix}"


@dataclass
class EquipmentFilter:
    """List filters, paging and ordering for GET /equipment."""

    status: EquipmentStatus | None = None
    condition: EquipmentCondition | None = None
    equipment_type_id: uuid.UUID | None = None
    location: str | None = None
    search: str | None = None
    assigned: bool | None = None
    maintenance_overdue: bool | None = None
    page: int = 1
    limit: int = 10
    sort_by: str = "createdAt"
    sort_order: SortOrder = SortOrder.desc

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationFailure("page must be >= 1", {"page": self.page})
        if not 1 <= self.limit <= 100:
            raise ValidationFailure("limit must be between 1 and 100", {"limit": self.limit})
        if self.sort_by not in SORT_COLUMNS:
            raise ValidationFailure(
                "Unsupported sort field",
                {"sort_by": self.sort_by, "allowed": sorted(SORT_COLUMNS)},
            )


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def to_equipment_out(equipment: Equipment) -> EquipmentOut:
    return EquipmentOut.model_validate(equipment)


class EquipmentLifecycle:
    """Owns equipment state transitions and their history entries."""

    def __init__(self, max_attempts: int = 3) -> None:
        """Initialize lifecycle manager.

        Args:
            max_attempts: Attempts per transition when concurrent writers
                collide on the history sequence
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts

    async def _transactional(self, session: AsyncSession, unit: Callable[[], Awaitable[T]]) -> T:
        """Run a read-validate-write unit and commit it, retrying on collisions.

        Raises:
            Conflict: If every attempt collided with a concurrent writer.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await unit()
                await session.commit()
                return result
            except IntegrityError as e:
                await session.rollback()
                if attempt >= self.max_attempts:
                    raise Conflict(
                        "Equipment was modified concurrently, please retry",
                        {"attempts": attempt},
                    ) from e
                logger.warning(
                    "Equipment write collided with a concurrent writer, retrying",
                    extra={"structured": {"attempt": attempt, "max_attempts": self.max_attempts}},
                )
            except AppError:
                await session.rollback()
                raise

        raise AssertionError("unreachable")

    async def _lock(
        self, session: AsyncSession, tenant: TenantContext, equipment_id: uuid.UUID
    ) -> Equipment:
        stmt = (
            select_equipment(tenant)
            .where(Equipment.id == equipment_id)
            .options(selectinload(Equipment.equipment_type))
            .with_for_update(of=Equipment)
            .execution_options(populate_existing=True)
        )
        equipment = (await session.execute(stmt)).scalar_one_or_none()
        if equipment is None:
            raise NotFound("Equipment not found")
        return equipment

    async def _ensure_serial_free(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        serial_number: str,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        stmt = select_equipment(tenant).where(Equipment.serial_number == serial_number)
        if exclude_id is not None:
            stmt = stmt.where(Equipment.id != exclude_id)
        if (await session.execute(stmt.limit(1))).first() is not None:
            raise Conflict("Equipment with this serial number already exists in the company")

    async def _append_history(
        self,
        session: AsyncSession,
        equipment: Equipment,
        old_status: str | None,
        old_location: str | None,
        changed_by: uuid.UUID,
        notes: str | None,
    ) -> EquipmentStatusHistory:
        latest = await session.execute(
            select(func.max(EquipmentStatusHistory.sequence)).where(
                EquipmentStatusHistory.equipment_id == equipment.id
            )
        )
        entry = EquipmentStatusHistory(
            equipment_id=equipment.id,
            sequence=(latest.scalar_one() or 0) + 1,
            old_status=old_status,
            new_status=equipment.current_status,
            old_location=old_location,
            new_location=equipment.location,
            changed_by=changed_by,
            notes=notes,
            photo_urls=[],
        )
        session.add(entry)
        await session.flush()
        return entry

    def _log_transition(self, tenant: TenantContext, entry: EquipmentStatusHistory) -> None:
        equipment_transitions_total.labels(new_status=entry.new_status).inc()
        logger.info(
            "Equipment transition recorded",
            extra={
                "structured": {
                    "company_id": str(tenant.company_id),
                    "equipment_id": str(entry.equipment_id),
                    "sequence": entry.sequence,
                    "old_status": entry.old_status,
                    "new_status": entry.new_status,
                    "changed_by": str(entry.changed_by),
                }
            },
        )

    async def create(
        self, session: AsyncSession, tenant: TenantContext, body: EquipmentCreate
    ) -> EquipmentOut:
        """Create equipment and its creation ledger entry atomically.

        Args:
            session: Database session
            tenant: Caller's tenant context
            body: Equipment fields

        Returns:
            The created equipment

        Raises:
            Forbidden: If the caller is staff.
            ValidationFailure: If no equipment type was given.
            NotFound: If the type is not an active type of the company.
            Conflict: If the serial number is taken by active equipment.
        """
        authorize(tenant, Action.create_equipment)
        if body.equipment_type_id is None:
            raise ValidationFailure("Equipment type is required")
        serial_number = body.serial_number or None

        async def unit() -> tuple[Equipment, EquipmentStatusHistory]:
            equipment_type = await load_equipment_type(
                session, tenant, body.equipment_type_id, lock="share"
            )
            if serial_number:
                await self._ensure_serial_free(session, tenant, serial_number)

            equipment = Equipment(
                id=uuid.uuid4(),
                company_id=tenant.company_id,
                equipment_type_id=equipment_type.id,
                equipment_type=equipment_type,
                name=body.name,
                serial_number=serial_number,
                model=body.model,
                purchase_date=body.purchase_date,
                purchase_price=body.purchase_price,
                current_status=_plain(body.current_status or EquipmentStatus.good_to_go),
                condition=_plain(body.condition or EquipmentCondition.excellent),
                location=body.location or DEFAULT_LOCATION,
                notes=body.notes,
                last_maintenance_date=body.last_maintenance_date,
                next_maintenance_due=body.next_maintenance_due,
                qr_code=generate_tracking_code(),
                photo_urls=[],
                created_by=tenant.user_id,
            )
            session.add(equipment)
            await session.flush()

            entry = await self._append_history(
                session, equipment, None, None, tenant.user_id, "Equipment created"
            )
            return equipment, entry

        equipment, entry = await self._transactional(session, unit)
        self._log_transition(tenant, entry)
        return to_equipment_out(equipment)

    async def update(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        equipment_id: uuid.UUID,
        body: EquipmentUpdate,
    ) -> EquipmentOut:
        """Apply a partial update to general fields.

        A changed status or location appends one ledger entry. An unchanged
        status is accepted silently with no ledger entry.

        Raises:
            Forbidden: If the caller is staff.
            NotFound: If the equipment or a newly referenced type does not
                resolve within the company.
            Conflict: If a new serial number is taken by active equipment.
        """
        authorize(tenant, Action.update_equipment)
        changes = {
            field: _plain(value)
            for field, value in body.model_dump(exclude_unset=True).items()
            if value is not None or field not in _REQUIRED_FIELDS
        }
        if "serial_number" in changes and not changes["serial_number"]:
            changes["serial_number"] = None

        async def unit() -> tuple[Equipment, EquipmentStatusHistory | None]:
            equipment = await self._lock(session, tenant, equipment_id)

            new_type_id = changes.get("equipment_type_id")
            if new_type_id is not None and new_type_id != equipment.equipment_type_id:
                equipment.equipment_type = await load_equipment_type(
                    session, tenant, new_type_id, lock="share"
                )

            new_serial = changes.get("serial_number")
            if new_serial and new_serial != equipment.serial_number:
                await self._ensure_serial_free(session, tenant, new_serial, exclude_id=equipment.id)

            old_status = equipment.current_status
            old_location = equipment.location

            for field, value in changes.items():
                setattr(equipment, field, value)

            entry = None
            if equipment.current_status != old_status or equipment.location != old_location:
                entry = await self._append_history(
                    session, equipment, old_status, old_location, tenant.user_id, None
                )
            return equipment, entry

        equipment, entry = await self._transactional(session, unit)
        if entry is not None:
            self._log_transition(tenant, entry)
        return to_equipment_out(equipment)

    async def update_status(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        equipment_id: uuid.UUID,
        body: EquipmentStatusUpdate,
    ) -> EquipmentOut:
        """Move equipment to a new status, optionally relocating it.

        Raises:
            NotFound: If the equipment does not resolve within the company.
            Conflict: If the requested status equals the current one.
        """
        authorize(tenant, Action.update_equipment_status)

        async def unit() -> tuple[Equipment, EquipmentStatusHistory]:
            equipment = await self._lock(session, tenant, equipment_id)
            new_status = _plain(body.status)

            if new_status == equipment.current_status:
                raise Conflict(
                    f"Equipment is already in status {new_status}",
                    {"current_status": equipment.current_status},
                )

            old_status = equipment.current_status
            old_location = equipment.location
            equipment.current_status = new_status
            if body.location:
                equipment.location = body.location

            entry = await self._append_history(
                session, equipment, old_status, old_location, tenant.user_id, body.notes
            )
            return equipment, entry

        equipment, entry = await self._transactional(session, unit)
        self._log_transition(tenant, entry)
        return to_equipment_out(equipment)

    async def get(
        self, session: AsyncSession, tenant: TenantContext, equipment_id: uuid.UUID
    ) -> EquipmentDetail:
        """Current state, the latest history entries and active assignments."""
        authorize(tenant, Action.view_equipment)

        stmt = (
            select_equipment(tenant)
            .where(Equipment.id == equipment_id)
            .options(selectinload(Equipment.equipment_type))
        )
        equipment = (await session.execute(stmt)).scalar_one_or_none()
        if equipment is None:
            raise NotFound("Equipment not found")

        history = await session.execute(
            select(EquipmentStatusHistory)
            .where(EquipmentStatusHistory.equipment_id == equipment.id)
            .order_by(EquipmentStatusHistory.sequence.desc())
            .limit(RECENT_HISTORY_LIMIT)
        )
        assignments = await session.execute(
            select(EquipmentAssignment)
            .where(
                EquipmentAssignment.equipment_id == equipment.id,
                EquipmentAssignment.returned_at.is_(None),
            )
            .order_by(EquipmentAssignment.assigned_at.desc())
        )

        return EquipmentDetail(
            **to_equipment_out(equipment).model_dump(),
            status_history=[StatusHistoryOut.model_validate(h) for h in history.scalars()],
            assignments=[AssignmentOut.model_validate(a) for a in assignments.scalars()],
        )

    async def list_equipment(
        self, session: AsyncSession, tenant: TenantContext, filters: EquipmentFilter
    ) -> EquipmentPage:
        """Filtered, sorted, paginated active equipment of the caller's company."""
        authorize(tenant, Action.view_equipment)

        stmt = select_equipment(tenant)

        if filters.status is not None:
            stmt = stmt.where(Equipment.current_status == _plain(filters.status))
        if filters.condition is not None:
            stmt = stmt.where(Equipment.condition == _plain(filters.condition))
        if filters.equipment_type_id is not None:
            stmt = stmt.where(Equipment.equipment_type_id == filters.equipment_type_id)
        if filters.location:
            stmt = stmt.where(Equipment.location.icontains(filters.location, autoescape=True))
        if filters.search:
            stmt = stmt.where(
                or_(
                    Equipment.name.icontains(filters.search, autoescape=True),
                    Equipment.serial_number.icontains(filters.search, autoescape=True),
                    Equipment.model.icontains(filters.search, autoescape=True),
                )
            )
        if filters.assigned is not None:
            active_assignments = select(EquipmentAssignment.equipment_id).where(
                EquipmentAssignment.returned_at.is_(None)
            )
            if filters.assigned:
                stmt = stmt.where(Equipment.id.in_(active_assignments))
            else:
                stmt = stmt.where(Equipment.id.not_in(active_assignments))
        if filters.maintenance_overdue is not None:
            today = date.today()
            if filters.maintenance_overdue:
                stmt = stmt.where(Equipment.next_maintenance_due < today)
            else:
                stmt = stmt.where(
                    or_(
                        Equipment.next_maintenance_due.is_(None),
                        Equipment.next_maintenance_due >= today,
                    )
                )

        total = (
            await session.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()

        column = SORT_COLUMNS[filters.sort_by]
        ordering = column.asc() if filters.sort_order == SortOrder.asc else column.desc()
        page_stmt = (
            stmt.options(selectinload(Equipment.equipment_type))
            .order_by(ordering, Equipment.id)
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        items = (await session.execute(page_stmt)).scalars().all()

        return EquipmentPage(
            equipment=[to_equipment_out(e) for e in items],
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                total_pages=math.ceil(total / filters.limit),
            ),
        )

    async def delete(
        self, session: AsyncSession, tenant: TenantContext, equipment_id: uuid.UUID
    ) -> None:
        """Soft-delete equipment (admin only); its ledger is kept."""
        authorize(tenant, Action.delete_equipment)

        async def unit() -> None:
            equipment = await self._lock(session, tenant, equipment_id)
            equipment.is_active = False

        await self._transactional(session, unit)
        logger.info(
            "Equipment deactivated",
            extra={
                "structured": {
                    "company_id": str(tenant.company_id),
                    "equipment_id": str(equipment_id),
                }
            },
        )
