"""Equipment type endpoints."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.api.auth import get_tenant
from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.engine import get_session
from backend.equiptrack.equipment import types
from backend.equiptrack.models.common import MessageResponse
from backend.equiptrack.models.equipment import (
    EquipmentTypeCreate,
    EquipmentTypeOut,
    EquipmentTypeUpdate,
)

router = APIRouter(prefix="/equipment-types", tags=["equipment-types"])

Tenant = Annotated[TenantContext, Depends(get_tenant)]
Session = Annotated[AsyncSession, Depends(get_session)]


@router.post("", response_model=EquipmentTypeOut, status_code=status.HTTP_201_CREATED)
async def create_equipment_type(
    body: EquipmentTypeCreate, tenant: Tenant, session: Session
) -> EquipmentTypeOut:
    return await types.create_equipment_type(session, tenant, body)


@router.get("", response_model=list[EquipmentTypeOut])
async def list_equipment_types(tenant: Tenant, session: Session) -> list[EquipmentTypeOut]:
    return await types.list_equipment_types(session, tenant)


@router.get("/{type_id}", response_model=EquipmentTypeOut)
async def get_equipment_type(
    type_id: uuid.UUID, tenant: Tenant, session: Session
) -> EquipmentTypeOut:
    return await types.get_equipment_type(session, tenant, type_id)


@router.put("/{type_id}", response_model=EquipmentTypeOut)
async def update_equipment_type(
    type_id: uuid.UUID, body: EquipmentTypeUpdate, tenant: Tenant, session: Session
) -> EquipmentTypeOut:
    return await types.update_equipment_type(session, tenant, type_id, body)


@router.delete("/{type_id}", response_model=MessageResponse)
async def deactivate_equipment_type(
    type_id: uuid.UUID, tenant: Tenant, session: Session
) -> MessageResponse:
    """Deactivate a type; refused while active equipment still uses it."""
    await types.deactivate_equipment_type(session, tenant, type_id)
    return MessageResponse(message="Equipment type deleted successfully")
