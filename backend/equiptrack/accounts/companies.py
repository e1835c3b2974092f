"""Company registration and login."""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.api.auth import TokenAuthority
from backend.equiptrack.api.passwords import hash_password_async, verify_password_async
from backend.equiptrack.db.context import Identity, Role
from backend.equiptrack.db.models import Company, CompanySettings, User
from backend.equiptrack.errors import Conflict, Unauthorized
from backend.equiptrack.models.auth import (
    AuthResponse,
    CompanyOut,
    LoginRequest,
    RegisterCompanyRequest,
    UserOut,
)
from backend.equiptrack.utils.clock import utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def email_registered(session: AsyncSession, email: str) -> bool:
    """Check the global user email index."""
    result = await session.execute(
        select(func.count(User.id)).where(User.email == normalize_email(email))
    )
    return result.scalar_one() > 0


def build_auth_response(authority: TokenAuthority, user: User, company: Company) -> AuthResponse:
    """Issue a credential for a user and wrap it with the public records."""
    token = authority.issue(
        Identity(
            user_id=user.id,
            company_id=user.company_id,
            role=Role(user.role),
            email=user.email,
        )
    )
    return AuthResponse(
        token=token,
        user=UserOut.model_validate(user),
        company=CompanyOut.model_validate(company),
    )


async def register_company(
    session: AsyncSession,
    body: RegisterCompanyRequest,
    authority: TokenAuthority,
    bcrypt_rounds: int = 12,
) -> AuthResponse:
    """Create a company, its first admin and its default settings.

    All three rows are written in one transaction.

    Args:
        session: Database session
        body: Registration request
        authority: Token authority used to sign the admin's credential
        bcrypt_rounds: bcrypt cost factor

    Returns:
        Credential, admin user and company

    Raises:
        Conflict: If the admin email is already registered.
    """
    email = normalize_email(body.admin_email)

    if await email_registered(session, email):
        raise Conflict("Email already registered")

    password_hash = await hash_password_async(body.password, bcrypt_rounds)
    now = utcnow()

    company = Company(name=body.company_name, email=email, phone=body.phone)
    session.add(company)
    await session.flush()

    admin = User(
        company_id=company.id,
        email=email,
        password_hash=password_hash,
        first_name=body.admin_first_name,
        last_name=body.admin_last_name,
        phone=body.phone,
        role=Role.admin.value,
        email_verified_at=now,
    )
    session.add(admin)
    session.add(CompanySettings(company_id=company.id))

    try:
        await session.commit()
    except IntegrityError as e:
        # Concurrent registration with the same email won the race
        await session.rollback()
        raise Conflict("Email already registered") from e

    logger.info(
        "Company registered",
        extra={"structured": {"company_id": str(company.id), "admin_id": str(admin.id)}},
    )

    return build_auth_response(authority, admin, company)


async def login(session: AsyncSession, body: LoginRequest, authority: TokenAuthority) -> AuthResponse:
    """Verify credentials and issue a bearer token.

    Raises:
        Unauthorized: If the email is unknown, the password is wrong, or the
            user or its company is inactive.
    """
    result = await session.execute(
        select(User, Company)
        .join(Company, Company.id == User.company_id)
        .where(User.email == normalize_email(body.email), User.is_active.is_(True))
    )
    row = result.one_or_none()

    if row is None:
        raise Unauthorized("Invalid credentials")

    user, company = row
    if not company.is_active:
        raise Unauthorized("Invalid credentials")

    if not await verify_password_async(body.password, user.password_hash):
        raise Unauthorized("Invalid credentials")

    user.last_login_at = utcnow()
    await session.commit()

    return build_auth_response(authority, user, company)
