"""User management endpoints."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.accounts import users
from backend.equiptrack.api.auth import get_tenant
from backend.equiptrack.api.dependencies import get_app_settings
from backend.equiptrack.config import Settings
from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.engine import get_session
from backend.equiptrack.models.common import MessageResponse
from backend.equiptrack.models.users import (
    ChangePasswordRequest,
    UpdateProfileRequest,
    UpdateUserRoleRequest,
    UserActionResponse,
    UserListResponse,
    UserResponse,
)

router = APIRouter(prefix="/users", tags=["users"])

Tenant = Annotated[TenantContext, Depends(get_tenant)]
Session = Annotated[AsyncSession, Depends(get_session)]


@router.get("", response_model=UserListResponse)
async def list_users(tenant: Tenant, session: Session) -> UserListResponse:
    """List active users of the caller's company (admin/manager)."""
    return await users.list_users(session, tenant)


@router.put("/profile", response_model=UserActionResponse)
async def update_profile(
    body: UpdateProfileRequest, tenant: Tenant, session: Session
) -> UserActionResponse:
    return await users.update_profile(session, tenant, body)


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    tenant: Tenant,
    session: Session,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> MessageResponse:
    await users.change_password(session, tenant, body, settings.bcrypt_rounds)
    return MessageResponse(message="Password changed successfully")


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, tenant: Tenant, session: Session) -> UserResponse:
    return await users.get_user(session, tenant, user_id)


@router.patch("/{user_id}/role", response_model=UserActionResponse)
async def update_role(
    user_id: uuid.UUID, body: UpdateUserRoleRequest, tenant: Tenant, session: Session
) -> UserActionResponse:
    """Change a user's role (admin only; not on oneself)."""
    return await users.update_user_role(session, tenant, user_id, body.role)


@router.delete("/{user_id}", response_model=UserActionResponse)
async def deactivate_user(user_id: uuid.UUID, tenant: Tenant, session: Session) -> UserActionResponse:
    """Deactivate a user (admin only; not on oneself)."""
    return await users.set_user_active(session, tenant, user_id, active=False)


@router.patch("/{user_id}/reactivate", response_model=UserActionResponse)
async def reactivate_user(user_id: uuid.UUID, tenant: Tenant, session: Session) -> UserActionResponse:
    return await users.set_user_active(session, tenant, user_id, active=True)
