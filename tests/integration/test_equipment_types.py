"""Integration tests for company-scoped equipment types."""

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.helpers import (
    auth_headers,
    create_equipment,
    create_equipment_type,
    invite_and_accept,
    register_company,
)


@pytest.mark.asyncio
async def test_create_applies_default_interval(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)

    created = await create_equipment_type(client, admin["token"], "Forklift")

    assert created["name"] == "Forklift"
    assert created["defaultMaintenanceIntervalDays"] == 180
    assert created["isActive"] is True
    assert created["companyId"] == admin["company"]["id"]


@pytest.mark.asyncio
async def test_duplicate_name_conflicts_within_company_only(client: httpx.AsyncClient) -> None:
    acme = await register_company(client, email="admin@acme.io", company_name="Acme")
    globex = await register_company(client, email="admin@globex.io", company_name="Globex")
    await create_equipment_type(client, acme["token"], "Forklift")

    duplicate = await client.post(
        "/equipment-types", json={"name": "Forklift"}, headers=auth_headers(acme["token"])
    )
    elsewhere = await client.post(
        "/equipment-types", json={"name": "Forklift"}, headers=auth_headers(globex["token"])
    )

    assert duplicate.status_code == 409
    assert elsewhere.status_code == 201


@pytest.mark.asyncio
async def test_staff_reads_but_cannot_write(
    client: httpx.AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    admin = await register_company(client)
    staff = await invite_and_accept(client, session_factory, admin["token"], "staff@acme.io")
    created = await create_equipment_type(client, admin["token"])
    headers = auth_headers(staff["token"])

    assert (await client.get("/equipment-types", headers=headers)).status_code == 200
    assert (await client.get(f"/equipment-types/{created['id']}", headers=headers)).status_code == 200
    assert (
        await client.post("/equipment-types", json={"name": "Crane"}, headers=headers)
    ).status_code == 403
    assert (
        await client.delete(f"/equipment-types/{created['id']}", headers=headers)
    ).status_code == 403


@pytest.mark.asyncio
async def test_list_is_sorted_by_name(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    for name in ("Scissor Lift", "Crane", "Forklift"):
        await create_equipment_type(client, admin["token"], name)

    response = await client.get("/equipment-types", headers=auth_headers(admin["token"]))

    assert [t["name"] for t in response.json()] == ["Crane", "Forklift", "Scissor Lift"]


@pytest.mark.asyncio
async def test_update_type(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    crane = await create_equipment_type(client, admin["token"], "Crane")
    await create_equipment_type(client, admin["token"], "Forklift")
    headers = auth_headers(admin["token"])

    renamed = await client.put(
        f"/equipment-types/{crane['id']}",
        json={"name": "Tower Crane", "defaultMaintenanceIntervalDays": 90},
        headers=headers,
    )
    clash = await client.put(
        f"/equipment-types/{crane['id']}", json={"name": "Forklift"}, headers=headers
    )

    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Tower Crane"
    assert renamed.json()["defaultMaintenanceIntervalDays"] == 90
    assert clash.status_code == 409


@pytest.mark.asyncio
async def test_deactivation_blocked_while_in_use(client: httpx.AsyncClient) -> None:
    """Test the refusal reports exactly how many active items use the type."""
    admin = await register_company(client)
    excavator = await create_equipment_type(client, admin["token"])
    for n in range(3):
        await create_equipment(client, admin["token"], excavator["id"], name=f"Digger {n}")

    response = await client.delete(
        f"/equipment-types/{excavator['id']}", headers=auth_headers(admin["token"])
    )

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["details"]["equipment_count"] == 3
    assert "3 equipment items" in error["message"]


@pytest.mark.asyncio
async def test_deactivation_ignores_deleted_equipment(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    headers = auth_headers(admin["token"])
    excavator = await create_equipment_type(client, admin["token"])
    equipment = await create_equipment(client, admin["token"], excavator["id"])

    assert (await client.delete(f"/equipment/{equipment['id']}", headers=headers)).status_code == 200

    response = await client.delete(f"/equipment-types/{excavator['id']}", headers=headers)

    assert response.status_code == 200
    listed = await client.get("/equipment-types", headers=headers)
    assert listed.json() == []
    assert (await client.get(f"/equipment-types/{excavator['id']}", headers=headers)).status_code == 404
