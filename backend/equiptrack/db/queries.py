"""Tenancy-safe query helpers.

Every helper returns a `Select` already filtered by the caller's company, so
cross-company rows can never be loaded by accident. Callers add their own
ordering, paging and extra predicates.
"""

import uuid

from sqlalchemy import Select, func, select

from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.models import Equipment, EquipmentType, User


def select_users(ctx: TenantContext) -> Select[tuple[User]]:
    """Select users with company scoping enforced.

    Args:
        ctx: Tenant context with company_id

    Returns:
        Select filtered by company_id
    """
    return select(User).where(User.company_id == ctx.company_id)


def select_equipment_types(ctx: TenantContext) -> Select[tuple[EquipmentType]]:
    """Select active equipment types with company scoping enforced.

    Args:
        ctx: Tenant context with company_id

    Returns:
        Select filtered by company_id and is_active
    """
    return select(EquipmentType).where(
        EquipmentType.company_id == ctx.company_id, EquipmentType.is_active.is_(True)
    )


def select_equipment(ctx: TenantContext) -> Select[tuple[Equipment]]:
    """Select active equipment with company scoping enforced.

    Args:
        ctx: Tenant context with company_id

    Returns:
        Select filtered by company_id and is_active
    """
    return select(Equipment).where(
        Equipment.company_id == ctx.company_id, Equipment.is_active.is_(True)
    )


def count_active_equipment_of_type(
    company_id: uuid.UUID, equipment_type_id: uuid.UUID
) -> Select[tuple[int]]:
    """Count active equipment in a company referencing an equipment type."""
    return select(func.count(Equipment.id)).where(
        Equipment.company_id == company_id,
        Equipment.equipment_type_id == equipment_type_id,
        Equipment.is_active.is_(True),
    )
