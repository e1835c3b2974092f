"""Bearer credential verification and identity resolution.

The token authority signs and verifies credentials; the identity resolver
maps a verified claim onto a live user+company record on every request, so
a deactivated user or company is rejected immediately rather than at the
next login.
"""

import uuid
from datetime import timedelta
from typing import Any

import jwt
from fastapi import Request
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.equiptrack.config import Settings
from backend.equiptrack.db.context import Identity, Role, TenantContext
from backend.equiptrack.db.models import Company, User
from backend.equiptrack.errors import Unauthorized
from backend.equiptrack.utils.clock import utcnow


class TokenAuthority:
    """Issues and verifies signed, time-bounded bearer credentials."""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_hours: int = 7 * 24) -> None:
        if not secret:
            raise ValueError("JWT_SECRET must be set")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(hours=expires_hours)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenAuthority":
        return cls(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_expires_hours)

    def issue(self, identity: Identity) -> str:
        """Sign a credential carrying the identity claims."""
        now = utcnow()
        payload = {
            "userId": str(identity.user_id),
            "companyId": str(identity.company_id),
            "role": identity.role.value,
            "email": identity.email,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Verify signature and expiry.

        Raises:
            Unauthorized: If the credential is malformed, tampered or expired.
        """
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as e:
            raise Unauthorized("Credential has expired") from e
        except InvalidTokenError as e:
            raise Unauthorized("Invalid credential") from e

    def peek_user_id(self, token: str) -> str | None:
        """Return the verified user id claim, or None when it cannot be trusted."""
        try:
            claims = self.verify(token)
        except Unauthorized:
            return None
        user_id = claims.get("userId")
        return str(user_id) if user_id else None


def extract_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    token = parts[1].strip()
    return token or None


class IdentityResolver:
    """Maps a bearer credential to a live Identity."""

    def __init__(self, authority: TokenAuthority) -> None:
        self._authority = authority

    async def resolve(self, session: AsyncSession, raw_credential: str | None) -> Identity:
        """Resolve a credential into an Identity.

        Raises:
            Unauthorized: If the credential is missing or invalid, or the user
                is gone, inactive, or belongs to an inactive company.
        """
        if raw_credential is None:
            raise Unauthorized("Missing bearer credential")

        claims = self._authority.verify(raw_credential)

        try:
            user_id = uuid.UUID(str(claims.get("userId")))
        except ValueError as e:
            raise Unauthorized("Invalid credential") from e

        result = await session.execute(
            select(User, Company.is_active)
            .join(Company, Company.id == User.company_id)
            .where(User.id == user_id)
        )
        row = result.one_or_none()

        if row is None:
            raise Unauthorized("User or company not found or inactive")

        user, company_active = row
        if not user.is_active or not company_active:
            raise Unauthorized("User or company not found or inactive")

        return Identity(
            user_id=user.id,
            company_id=user.company_id,
            role=Role(user.role),
            email=user.email,
        )


def get_identity(request: Request) -> Identity:
    """FastAPI dependency returning the identity resolved by the pipeline.

    Raises:
        Unauthorized: If the pipeline did not resolve an identity.
    """
    identity: Identity | None = getattr(request.state, "identity", None)
    if identity is None:
        raise Unauthorized("Authentication required")
    return identity


def get_tenant(request: Request) -> TenantContext:
    """FastAPI dependency returning the tenant context derived by the pipeline.

    Raises:
        Unauthorized: If no tenant context is present on the request.
    """
    tenant: TenantContext | None = getattr(request.state, "tenant", None)
    if tenant is None:
        raise Unauthorized("Authentication required")
    return tenant
