"""Single authorization policy for every business operation.

Role requirements live in one table keyed by action. A resource owned by
another company is reported as NotFound, never Forbidden, so callers cannot
probe for the existence of other tenants' data.
"""

from enum import Enum
from uuid import UUID

from backend.equiptrack.db.context import Role, TenantContext
from backend.equiptrack.errors import Forbidden, NotFound


class Action(str, Enum):
    """Authorizable business actions."""

    invite_user = "invite_user"
    list_users = "list_users"
    view_user = "view_user"
    update_own_profile = "update_own_profile"
    change_user_role = "change_user_role"
    deactivate_user = "deactivate_user"
    reactivate_user = "reactivate_user"
    create_equipment_type = "create_equipment_type"
    view_equipment_type = "view_equipment_type"
    update_equipment_type = "update_equipment_type"
    deactivate_equipment_type = "deactivate_equipment_type"
    create_equipment = "create_equipment"
    view_equipment = "view_equipment"
    update_equipment = "update_equipment"
    update_equipment_status = "update_equipment_status"
    delete_equipment = "delete_equipment"


_ALL = frozenset(Role)
_MANAGERS = frozenset({Role.admin, Role.manager})
_ADMINS = frozenset({Role.admin})

POLICY: dict[Action, frozenset[Role]] = {
    Action.invite_user: _MANAGERS,
    Action.list_users: _MANAGERS,
    Action.view_user: _ALL,
    Action.update_own_profile: _ALL,
    Action.change_user_role: _ADMINS,
    Action.deactivate_user: _ADMINS,
    Action.reactivate_user: _ADMINS,
    Action.create_equipment_type: _MANAGERS,
    Action.view_equipment_type: _ALL,
    Action.update_equipment_type: _MANAGERS,
    Action.deactivate_equipment_type: _MANAGERS,
    Action.create_equipment: _MANAGERS,
    Action.view_equipment: _ALL,
    Action.update_equipment: _MANAGERS,
    Action.update_equipment_status: _ALL,
    Action.delete_equipment: _ADMINS,
}


def authorize(
    tenant: TenantContext, action: Action, resource_company_id: UUID | None = None
) -> None:
    """Enforce the policy for one action.

    Args:
        tenant: Caller's tenant context
        action: Action being attempted
        resource_company_id: Owning company of the target, when already known

    Raises:
        NotFound: If the resource belongs to another company.
        Forbidden: If the caller's role may not perform the action.
    """
    if resource_company_id is not None and resource_company_id != tenant.company_id:
        raise NotFound("Resource not found")

    if tenant.role not in POLICY[action]:
        raise Forbidden(
            "Insufficient permissions",
            {"action": action.value, "role": tenant.role.value},
        )
