"""Registration, login and invitation bodies."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, Field

from backend.equiptrack.db.context import Role
from backend.equiptrack.models.common import ApiModel


class RegisterCompanyRequest(ApiModel):
    """Request body for POST /auth/register-company."""

    company_name: str = Field(..., min_length=1)
    admin_email: EmailStr
    admin_first_name: str = Field(..., min_length=1)
    admin_last_name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)
    phone: str | None = None


class LoginRequest(ApiModel):
    """Request body for POST /auth/login."""

    email: EmailStr
    password: str


class InviteUserRequest(ApiModel):
    """Request body for POST /auth/invite."""

    email: EmailStr
    role: Literal["manager", "staff"]
    first_name: str | None = None
    last_name: str | None = None


class AcceptInvitationRequest(ApiModel):
    """Request body for POST /auth/accept-invitation/{token}."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)
    phone: str | None = None


class CompanyOut(ApiModel):
    id: uuid.UUID
    name: str
    email: str
    phone: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserOut(ApiModel):
    """User as returned to clients; never carries the password hash."""

    id: uuid.UUID
    company_id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    profile_photo_url: str | None = None
    role: Role
    is_active: bool
    last_login_at: datetime | None = None
    email_verified_at: datetime | None = None
    created_at: datetime


class AuthResponse(ApiModel):
    """Issued credential plus the caller's user and company."""

    token: str
    user: UserOut
    company: CompanyOut


class InvitationSummary(ApiModel):
    """Invitation as shown to the inviter (the token is not returned)."""

    email: str
    role: Role
    expires_at: datetime


class InviteResponse(ApiModel):
    message: str
    invitation: InvitationSummary


class InviterOut(ApiModel):
    first_name: str
    last_name: str
    email: str


class InvitationCompanyOut(ApiModel):
    name: str


class InvitationDetails(ApiModel):
    """Public view of a pending invitation."""

    email: str
    role: Role
    company: InvitationCompanyOut
    inviter: InviterOut
    expires_at: datetime
