"""Equipment endpoints."""

import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.api.auth import get_tenant
from backend.equiptrack.api.dependencies import get_lifecycle
from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.engine import get_session
from backend.equiptrack.equipment.lifecycle import EquipmentFilter, EquipmentLifecycle
from backend.equiptrack.models.common import (
    EquipmentCondition,
    EquipmentStatus,
    MessageResponse,
    SortOrder,
)
from backend.equiptrack.models.equipment import (
    EquipmentCreate,
    EquipmentDetail,
    EquipmentOut,
    EquipmentPage,
    EquipmentStatusUpdate,
    EquipmentUpdate,
)

router = APIRouter(prefix="/equipment", tags=["equipment"])

Tenant = Annotated[TenantContext, Depends(get_tenant)]
Session = Annotated[AsyncSession, Depends(get_session)]
Lifecycle = Annotated[EquipmentLifecycle, Depends(get_lifecycle)]

SortField = Literal["name", "createdAt", "updatedAt", "purchaseDate", "nextMaintenanceDue"]


@router.post("", response_model=EquipmentOut, status_code=status.HTTP_201_CREATED)
async def create_equipment(
    body: EquipmentCreate, tenant: Tenant, session: Session, lifecycle: Lifecycle
) -> EquipmentOut:
    """Create equipment (admin/manager).

    Args:
        body: Equipment fields
        tenant: Caller's tenant context
        session: Database session
        lifecycle: Equipment lifecycle manager

    Returns:
        Created equipment with its generated tracking code
    """
    return await lifecycle.create(session, tenant, body)


@router.get("", response_model=EquipmentPage)
async def list_equipment(
    tenant: Tenant,
    session: Session,
    lifecycle: Lifecycle,
    status_filter: Annotated[EquipmentStatus | None, Query(alias="status")] = None,
    condition: EquipmentCondition | None = None,
    equipment_type_id: Annotated[uuid.UUID | None, Query(alias="equipmentTypeId")] = None,
    location: str | None = None,
    search: str | None = None,
    assigned: bool | None = None,
    maintenance_overdue: Annotated[bool | None, Query(alias="maintenanceOverdue")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    sort_by: Annotated[SortField, Query(alias="sortBy")] = "createdAt",
    sort_order: Annotated[SortOrder, Query(alias="sortOrder")] = SortOrder.desc,
) -> EquipmentPage:
    """List active equipment of the caller's company."""
    filters = EquipmentFilter(
        status=status_filter,
        condition=condition,
        equipment_type_id=equipment_type_id,
        location=location,
        search=search,
        assigned=assigned,
        maintenance_overdue=maintenance_overdue,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return await lifecycle.list_equipment(session, tenant, filters)


@router.get("/{equipment_id}", response_model=EquipmentDetail)
async def get_equipment(
    equipment_id: uuid.UUID, tenant: Tenant, session: Session, lifecycle: Lifecycle
) -> EquipmentDetail:
    """Equipment with its 5 most recent history entries and active assignments."""
    return await lifecycle.get(session, tenant, equipment_id)


@router.put("/{equipment_id}", response_model=EquipmentOut)
async def update_equipment(
    equipment_id: uuid.UUID,
    body: EquipmentUpdate,
    tenant: Tenant,
    session: Session,
    lifecycle: Lifecycle,
) -> EquipmentOut:
    return await lifecycle.update(session, tenant, equipment_id, body)


@router.patch("/{equipment_id}/status", response_model=EquipmentOut)
async def update_equipment_status(
    equipment_id: uuid.UUID,
    body: EquipmentStatusUpdate,
    tenant: Tenant,
    session: Session,
    lifecycle: Lifecycle,
) -> EquipmentOut:
    """Change status (any role); a no-op transition is rejected with 409."""
    return await lifecycle.update_status(session, tenant, equipment_id, body)


@router.delete("/{equipment_id}", response_model=MessageResponse)
async def delete_equipment(
    equipment_id: uuid.UUID, tenant: Tenant, session: Session, lifecycle: Lifecycle
) -> MessageResponse:
    await lifecycle.delete(session, tenant, equipment_id)
    return MessageResponse(message="Equipment deleted successfully")
