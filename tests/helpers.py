"""Helpers shared by the integration tests."""

import uuid
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.equiptrack.db.context import Role, TenantContext
from backend.equiptrack.db.models import Company, EquipmentType, User, UserInvitation

DEFAULT_PASSWORD = "correct-horse-battery"
TEST_JWT_SECRET = "test-secret-key-with-at-least-32-bytes!"


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register_company(
    client: httpx.AsyncClient,
    email: str = "admin@acme.io",
    company_name: str = "Acme Rentals",
) -> dict[str, Any]:
    """Register a company through the API and return the response body."""
    response = await client.post(
        "/auth/register-company",
        json={
            "companyName": company_name,
            "adminEmail": email,
            "adminFirstName": "Ada",
            "adminLastName": "Admin",
            "password": DEFAULT_PASSWORD,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


async def invite_and_accept(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    inviter_token: str,
    email: str,
    role: str = "staff",
) -> dict[str, Any]:
    """Invite a user and accept on their behalf; returns the accept response body."""
    response = await client.post(
        "/auth/invite",
        json={"email": email, "role": role},
        headers=auth_headers(inviter_token),
    )
    assert response.status_code == 201, response.text

    async with session_factory() as session:
        result = await session.execute(
            select(UserInvitation.token).where(UserInvitation.email == email)
        )
        token = result.scalar_one()

    response = await client.post(
        f"/auth/accept-invitation/{token}",
        json={"firstName": "Sam", "lastName": "Staff", "password": DEFAULT_PASSWORD},
    )
    assert response.status_code == 201, response.text
    return response.json()


async def create_equipment_type(
    client: httpx.AsyncClient, token: str, name: str = "Excavator"
) -> dict[str, Any]:
    response = await client.post(
        "/equipment-types", json={"name": name}, headers=auth_headers(token)
    )
    assert response.status_code == 201, response.text
    return response.json()


async def create_equipment(
    client: httpx.AsyncClient, token: str, type_id: str, **fields: Any
) -> dict[str, Any]:
    body = {"name": "Digger 3000", "equipmentTypeId": type_id, **fields}
    response = await client.post("/equipment", json=body, headers=auth_headers(token))
    assert response.status_code == 201, response.text
    return response.json()


async def seed_tenant(session_factory: async_sessionmaker[AsyncSession]) -> TenantContext:
    """Insert a company with one user and return an admin tenant context for it."""
    company_id = uuid.uuid4()
    user_id = uuid.uuid4()

    async with session_factory() as session:
        session.add(Company(id=company_id, name="Concurrency Co", email=f"{company_id}@acme.io"))
        await session.flush()
        session.add(
            User(
                id=user_id,
                company_id=company_id,
                email=f"{user_id}@acme.io",
                password_hash="not-used",
                first_name="Pat",
                last_name="Parallel",
                role=Role.admin.value,
            )
        )
        await session.commit()

    return TenantContext(
        company_id=company_id,
        user_id=user_id,
        role=Role.admin,
        is_admin=True,
        is_manager=False,
        is_staff=False,
    )


async def seed_equipment_type(
    session_factory: async_sessionmaker[AsyncSession],
    tenant: TenantContext,
    name: str = "Excavator",
) -> uuid.UUID:
    async with session_factory() as session:
        equipment_type = EquipmentType(company_id=tenant.company_id, name=name)
        session.add(equipment_type)
        await session.commit()
        return equipment_type.id
