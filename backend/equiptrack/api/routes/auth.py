"""Authentication endpoints: registration, login and invitations."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.accounts import companies, invitations, users
from backend.equiptrack.api.auth import TokenAuthority, get_tenant
from backend.equiptrack.api.dependencies import get_app_settings, get_token_authority
from backend.equiptrack.config import Settings
from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.engine import get_session
from backend.equiptrack.models.auth import (
    AcceptInvitationRequest,
    AuthResponse,
    InvitationDetails,
    InviteResponse,
    InviteUserRequest,
    LoginRequest,
    RegisterCompanyRequest,
)
from backend.equiptrack.models.users import UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register-company", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_company(
    body: RegisterCompanyRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthResponse:
    """Register a company together with its first admin user.

    Args:
        body: Company and admin details
        session: Database session
        authority: Token authority
        settings: Application settings

    Returns:
        Admin credential, user and company
    """
    return await companies.register_company(session, body, authority, settings.bcrypt_rounds)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
) -> AuthResponse:
    return await companies.login(session, body, authority)


@router.post("/invite", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def invite(
    body: InviteUserRequest,
    tenant: Annotated[TenantContext, Depends(get_tenant)],
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> InviteResponse:
    """Invite a user to the caller's company (admin/manager)."""
    return await invitations.invite_user(session, tenant, body, settings.invitation_ttl_days)


@router.get("/invitation/{token}", response_model=InvitationDetails)
async def invitation_details(
    token: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> InvitationDetails:
    return await invitations.get_invitation(session, token)


@router.post(
    "/accept-invitation/{token}",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def accept_invitation(
    token: str,
    body: AcceptInvitationRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthResponse:
    """Accept an invitation, creating the invited user."""
    return await invitations.accept_invitation(
        session, token, body, authority, settings.bcrypt_rounds
    )


@router.get("/me", response_model=UserResponse)
async def me(
    tenant: Annotated[TenantContext, Depends(get_tenant)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> UserResponse:
    """Return the caller's own user record."""
    return await users.get_current_user(session, tenant)
