"""Request context for tenancy enforcement."""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """User role within a company."""

    admin = "admin"
    manager = "manager"
    staff = "staff"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, resolved fresh from the store for one request."""

    user_id: UUID
    company_id: UUID
    role: Role
    email: str


@dataclass(frozen=True)
class TenantContext:
    """Per-request capability flags derived from an Identity.

    Used to enforce tenancy boundaries in all database operations.
    """

    company_id: UUID
    user_id: UUID
    role: Role
    is_admin: bool
    is_manager: bool
    is_staff: bool


def derive_tenant_context(identity: Identity | None) -> TenantContext | None:
    """Project an identity into tenant capability flags.

    Returns None when there is no identity; callers needing a tenant must
    check for presence rather than assume it.
    """
    if identity is None:
        return None

    return TenantContext(
        company_id=identity.company_id,
        user_id=identity.user_id,
        role=identity.role,
        is_admin=identity.role == Role.admin,
        is_manager=identity.role == Role.manager,
        is_staff=identity.role == Role.staff,
    )
