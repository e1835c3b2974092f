"""User invitations: issue, inspect and accept."""

import logging
import secrets
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.accounts.companies import (
    build_auth_response,
    email_registered,
    normalize_email,
)
from backend.equiptrack.api.auth import TokenAuthority
from backend.equiptrack.api.passwords import hash_password_async
from backend.equiptrack.api.policy import Action, authorize
from backend.equiptrack.db.context import TenantContext
from backend.equiptrack.db.models import Company, User, UserInvitation
from backend.equiptrack.errors import Conflict, NotFound
from backend.equiptrack.models.auth import (
    AcceptInvitationRequest,
    AuthResponse,
    InvitationCompanyOut,
    InvitationDetails,
    InvitationSummary,
    InviteResponse,
    InviterOut,
    InviteUserRequest,
)
from backend.equiptrack.utils.clock import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def generate_invitation_token() -> str:
    """64 hex characters of randomness."""
    return secrets.token_hex(32)


def _check_pending(invitation: UserInvitation | None) -> UserInvitation:
    if invitation is None:
        raise NotFound("Invalid invitation link")
    if invitation.accepted_at is not None:
        raise Conflict("Invitation already accepted")
    if ensure_utc(invitation.expires_at) < utcnow():
        raise Conflict("Invitation has expired")
    return invitation


async def invite_user(
    session: AsyncSession,
    tenant: TenantContext,
    body: InviteUserRequest,
    ttl_days: int = 7,
) -> InviteResponse:
    """Create an invitation to join the caller's company.

    Args:
        session: Database session
        tenant: Caller's tenant context (admin or manager)
        body: Invitee email and role
        ttl_days: Days until the invitation expires

    Returns:
        Invitation summary; the token itself is not returned

    Raises:
        Forbidden: If the caller is staff.
        Conflict: If the user already exists in the company or a pending
            invitation was already sent.
    """
    authorize(tenant, Action.invite_user)
    email = normalize_email(body.email)
    now = utcnow()

    existing_user = await session.execute(
        select(func.count(User.id)).where(User.email == email, User.company_id == tenant.company_id)
    )
    if existing_user.scalar_one() > 0:
        raise Conflict("User already exists in this company")

    pending = await session.execute(
        select(func.count(UserInvitation.id)).where(
            UserInvitation.email == email,
            UserInvitation.company_id == tenant.company_id,
            UserInvitation.accepted_at.is_(None),
            UserInvitation.expires_at >= now,
        )
    )
    if pending.scalar_one() > 0:
        raise Conflict("Invitation already sent to this email")

    invitation = UserInvitation(
        company_id=tenant.company_id,
        email=email,
        role=body.role,
        invited_by=tenant.user_id,
        token=generate_invitation_token(),
        expires_at=now + timedelta(days=ttl_days),
    )
    session.add(invitation)
    await session.commit()

    logger.info(
        "Invitation created",
        extra={
            "structured": {
                "company_id": str(tenant.company_id),
                "invitation_id": str(invitation.id),
                "role": body.role,
            }
        },
    )

    return InviteResponse(
        message="Invitation sent successfully",
        invitation=InvitationSummary(
            email=invitation.email,
            role=invitation.role,
            expires_at=invitation.expires_at,
        ),
    )


async def get_invitation(session: AsyncSession, token: str) -> InvitationDetails:
    """Public details of a pending invitation.

    Raises:
        NotFound: If the token is unknown.
        Conflict: If the invitation was accepted or has expired.
    """
    result = await session.execute(
        select(UserInvitation, Company.name, User)
        .join(Company, Company.id == UserInvitation.company_id)
        .join(User, User.id == UserInvitation.invited_by)
        .where(UserInvitation.token == token)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound("Invalid invitation link")

    invitation, company_name, inviter = row
    _check_pending(invitation)

    return InvitationDetails(
        email=invitation.email,
        role=invitation.role,
        company=InvitationCompanyOut(name=company_name),
        inviter=InviterOut(
            first_name=inviter.first_name,
            last_name=inviter.last_name,
            email=inviter.email,
        ),
        expires_at=ensure_utc(invitation.expires_at),
    )


async def accept_invitation(
    session: AsyncSession,
    token: str,
    body: AcceptInvitationRequest,
    authority: TokenAuthority,
    bcrypt_rounds: int = 12,
) -> AuthResponse:
    """Create the invited user and mark the invitation accepted.

    The invitation row is locked and re-checked inside the transaction that
    creates the user, so two concurrent acceptances yield one user and one
    Conflict.

    Raises:
        NotFound: If the token is unknown.
        Conflict: If the invitation was accepted or expired, or the email is
            already registered.
    """
    # Fail fast before paying for the password hash
    result = await session.execute(select(UserInvitation).where(UserInvitation.token == token))
    _check_pending(result.scalar_one_or_none())

    password_hash = await hash_password_async(body.password, bcrypt_rounds)

    # Hashing released the event loop; start a fresh transaction and re-check under lock
    await session.rollback()
    result = await session.execute(
        select(UserInvitation, Company)
        .join(Company, Company.id == UserInvitation.company_id)
        .where(UserInvitation.token == token)
        .with_for_update(of=UserInvitation)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound("Invalid invitation link")

    invitation, company = row
    _check_pending(invitation)

    if await email_registered(session, invitation.email):
        raise Conflict("Email already registered")

    now = utcnow()
    user = User(
        company_id=invitation.company_id,
        email=invitation.email,
        password_hash=password_hash,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        role=invitation.role,
        email_verified_at=now,
    )
    session.add(user)
    invitation.accepted_at = now

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise Conflict("Invitation already accepted") from e

    logger.info(
        "Invitation accepted",
        extra={
            "structured": {
                "company_id": str(invitation.company_id),
                "invitation_id": str(invitation.id),
                "user_id": str(user.id),
            }
        },
    )

    return build_auth_response(authority, user, company)
