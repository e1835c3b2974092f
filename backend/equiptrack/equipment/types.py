"""Company-scoped equipment types."""

import uuid
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.api.policy import Action, authorize
from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.models import EquipmentType
from backend.equiptrack.db.queries import count_active_equipment_of_type, select_equipment_types
from backend.equiptrack.errors import Conflict, NotFound
from backend.equiptrack.models.equipment import (
    EquipmentTypeCreate,
    EquipmentTypeOut,
    EquipmentTypeUpdate,
)

DEFAULT_MAINTENANCE_INTERVAL_DAYS = 180


async def _name_taken(
    session: AsyncSession,
    tenant: TenantContext,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> bool:
    stmt = select_equipment_types(tenant).where(EquipmentType.name == name)
    if exclude_id is not None:
        stmt = stmt.where(EquipmentType.id != exclude_id)
    return (await session.execute(stmt.limit(1))).first() is not None


async def load_equipment_type(
    session: AsyncSession,
    tenant: TenantContext,
    type_id: uuid.UUID,
    lock: Literal["share", "update"] | None = None,
) -> EquipmentType:
    """Fetch an active type owned by the caller's company.

    Equipment writers take the row `FOR SHARE` and deactivation takes it
    `FOR UPDATE`, so a type cannot be deactivated while a transaction is
    attaching equipment to it.

    Raises:
        NotFound: If the type is absent, inactive or owned by another company.
    """
    stmt = select_equipment_types(tenant).where(EquipmentType.id == type_id)
    if lock is not None:
        stmt = stmt.with_for_update(read=lock == "share").execution_options(
            populate_existing=True
        )
    equipment_type = (await session.execute(stmt)).scalar_one_or_none()
    if equipment_type is None:
        raise NotFound("Equipment type not found")
    return equipment_type


async def create_equipment_type(
    session: AsyncSession, tenant: TenantContext, body: EquipmentTypeCreate
) -> EquipmentTypeOut:
    """Create a type; names are unique among the company's active types.

    Raises:
        Forbidden: If the caller is staff.
        Conflict: If an active type with the same name exists.
    """
    authorize(tenant, Action.create_equipment_type)

    if await _name_taken(session, tenant, body.name):
        raise Conflict("Equipment type with this name already exists in the company")

    equipment_type = EquipmentType(
        company_id=tenant.company_id,
        name=body.name,
        description=body.description,
        default_maintenance_interval_days=(
            body.default_maintenance_interval_days or DEFAULT_MAINTENANCE_INTERVAL_DAYS
        ),
    )
    session.add(equipment_type)
    await session.commit()
    return EquipmentTypeOut.model_validate(equipment_type)


async def list_equipment_types(
    session: AsyncSession, tenant: TenantContext
) -> list[EquipmentTypeOut]:
    authorize(tenant, Action.view_equipment_type)
    result = await session.execute(select_equipment_types(tenant).order_by(EquipmentType.name))
    return [EquipmentTypeOut.model_validate(t) for t in result.scalars()]


async def get_equipment_type(
    session: AsyncSession, tenant: TenantContext, type_id: uuid.UUID
) -> EquipmentTypeOut:
    authorize(tenant, Action.view_equipment_type)
    return EquipmentTypeOut.model_validate(await load_equipment_type(session, tenant, type_id))


async def update_equipment_type(
    session: AsyncSession,
    tenant: TenantContext,
    type_id: uuid.UUID,
    body: EquipmentTypeUpdate,
) -> EquipmentTypeOut:
    """Apply a partial update.

    Raises:
        Forbidden: If the caller is staff.
        NotFound: If the type is not an active type of the company.
        Conflict: If renaming onto another active type's name.
    """
    authorize(tenant, Action.update_equipment_type)
    equipment_type = await load_equipment_type(session, tenant, type_id)
    changes = body.model_dump(exclude_unset=True)

    new_name = changes.get("name")
    if new_name and new_name != equipment_type.name:
        if await _name_taken(session, tenant, new_name, exclude_id=type_id):
            raise Conflict("Equipment type with this name already exists in the company")

    for field, value in changes.items():
        if value is None and field != "description":
            continue
        setattr(equipment_type, field, value)

    await session.commit()
    return EquipmentTypeOut.model_validate(equipment_type)


async def deactivate_equipment_type(
    session: AsyncSession, tenant: TenantContext, type_id: uuid.UUID
) -> None:
    """Soft-delete a type that no active equipment references.

    Raises:
        Forbidden: If the caller is staff.
        NotFound: If the type is not an active type of the company.
        Conflict: If active equipment still references the type; the message
            and details carry the exact count.
    """
    authorize(tenant, Action.deactivate_equipment_type)
    equipment_type = await load_equipment_type(session, tenant, type_id, lock="update")

    in_use = (
        await session.execute(count_active_equipment_of_type(tenant.company_id, type_id))
    ).scalar_one()
    if in_use > 0:
        raise Conflict(
            f"Cannot delete equipment type. {in_use} equipment items are using this type.",
            {"equipment_count": in_use},
        )

    equipment_type.is_active = False
    await session.commit()
