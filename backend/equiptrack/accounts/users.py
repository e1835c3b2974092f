"""Company user management."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.api.passwords import hash_password_async, verify_password_async
from backend.equiptrack.api.policy import Action, authorize
from backend.equiptrack.db.context import Role, TenantContext
from backend.equiptrack.db.models import User
from backend.equiptrack.db.queries import select_users
from backend.equiptrack.errors import Conflict, NotFound, Unauthorized
from backend.equiptrack.models.auth import UserOut
from backend.equiptrack.models.users import (
    ChangePasswordRequest,
    UpdateProfileRequest,
    UserActionResponse,
    UserListResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)


async def _load_user(
    session: AsyncSession,
    tenant: TenantContext,
    user_id: uuid.UUID,
    active_only: bool = True,
) -> User:
    stmt = select_users(tenant).where(User.id == user_id)
    if active_only:
        stmt = stmt.where(User.is_active.is_(True))

    user = (await session.execute(stmt)).scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def list_users(session: AsyncSession, tenant: TenantContext) -> UserListResponse:
    """Active users of the caller's company, newest first."""
    authorize(tenant, Action.list_users)

    result = await session.execute(
        select_users(tenant).where(User.is_active.is_(True)).order_by(User.created_at.desc())
    )
    users = [UserOut.model_validate(user) for user in result.scalars()]
    return UserListResponse(users=users, total=len(users))


async def get_user(session: AsyncSession, tenant: TenantContext, user_id: uuid.UUID) -> UserResponse:
    authorize(tenant, Action.view_user)
    user = await _load_user(session, tenant, user_id)
    return UserResponse(user=UserOut.model_validate(user))


async def get_current_user(session: AsyncSession, tenant: TenantContext) -> UserResponse:
    return await get_user(session, tenant, tenant.user_id)


async def update_profile(
    session: AsyncSession, tenant: TenantContext, body: UpdateProfileRequest
) -> UserActionResponse:
    """Update the caller's own profile fields."""
    authorize(tenant, Action.update_own_profile)
    user = await _load_user(session, tenant, tenant.user_id)

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    await session.commit()
    return UserActionResponse(
        user=UserOut.model_validate(user), message="Profile updated successfully"
    )


async def change_password(
    session: AsyncSession,
    tenant: TenantContext,
    body: ChangePasswordRequest,
    bcrypt_rounds: int = 12,
) -> None:
    """Replace the caller's password after verifying the current one.

    Raises:
        Unauthorized: If the current password is incorrect.
    """
    user = await _load_user(session, tenant, tenant.user_id)

    if not await verify_password_async(body.current_password, user.password_hash):
        raise Unauthorized("Current password is incorrect")

    user.password_hash = await hash_password_async(body.new_password, bcrypt_rounds)
    await session.commit()


async def update_user_role(
    session: AsyncSession, tenant: TenantContext, user_id: uuid.UUID, role: Role
) -> UserActionResponse:
    """Change another user's role (admin only).

    Raises:
        Forbidden: If the caller is not an admin.
        Conflict: If the admin targets their own account.
        NotFound: If the user is not an active member of the company.
    """
    authorize(tenant, Action.change_user_role)
    if user_id == tenant.user_id:
        raise Conflict("Cannot change your own role")

    user = await _load_user(session, tenant, user_id)
    user.role = role.value
    await session.commit()

    logger.info(
        "User role changed",
        extra={
            "structured": {
                "company_id": str(tenant.company_id),
                "user_id": str(user_id),
                "role": role.value,
            }
        },
    )

    return UserActionResponse(
        user=UserOut.model_validate(user),
        message=f"User role updated to {role.value} successfully",
    )


async def set_user_active(
    session: AsyncSession, tenant: TenantContext, user_id: uuid.UUID, active: bool
) -> UserActionResponse:
    """Deactivate or reactivate a user (admin only).

    A deactivated user's existing credentials stop resolving immediately.

    Raises:
        Forbidden: If the caller is not an admin.
        Conflict: If the admin tries to deactivate themselves.
        NotFound: If the user does not belong to the company.
    """
    authorize(tenant, Action.reactivate_user if active else Action.deactivate_user)
    if not active and user_id == tenant.user_id:
        raise Conflict("Cannot deactivate your own account")

    user = await _load_user(session, tenant, user_id, active_only=False)
    user.is_active = active
    await session.commit()

    return UserActionResponse(
        user=UserOut.model_validate(user),
        message="User reactivated successfully" if active else "User deactivated successfully",
    )
