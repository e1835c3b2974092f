"""Integration tests for equipment list filters, paging and ordering."""

from datetime import date, timedelta

import httpx
import pytest

from tests.helpers import auth_headers, create_equipment, create_equipment_type, register_company


async def _list(client: httpx.AsyncClient, token: str, **params: str) -> dict:
    response = await client.get("/equipment", params=params, headers=auth_headers(token))
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_pagination_metadata(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    excavator = await create_equipment_type(client, admin["token"])
    for n in range(7):
        await create_equipment(client, admin["token"], excavator["id"], name=f"Unit {n}")

    first = await _list(client, admin["token"], limit="3", page="1", sortBy="name", sortOrder="asc")
    last = await _list(client, admin["token"], limit="3", page="3", sortBy="name", sortOrder="asc")

    assert first["pagination"] == {"page": 1, "limit": 3, "total": 7, "totalPages": 3}
    assert [e["name"] for e in first["equipment"]] == ["Unit 0", "Unit 1", "Unit 2"]
    assert [e["name"] for e in last["equipment"]] == ["Unit 6"]


@pytest.mark.asyncio
async def test_empty_page_past_the_end(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)

    body = await _list(client, admin["token"], page="5")

    assert body["equipment"] == []
    assert body["pagination"]["total"] == 0
    assert body["pagination"]["totalPages"] == 0


@pytest.mark.asyncio
async def test_rejects_bad_paging_and_sort(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    headers = auth_headers(admin["token"])

    for params in ({"page": "0"}, {"limit": "101"}, {"sortBy": "passwordHash"}, {"status": "lost"}):
        response = await client.get("/equipment", params=params, headers=headers)
        assert response.status_code == 422, params


@pytest.mark.asyncio
async def test_sort_descending_by_name(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    excavator = await create_equipment_type(client, admin["token"])
    for name in ("Bravo", "Alpha", "Charlie"):
        await create_equipment(client, admin["token"], excavator["id"], name=name)

    body = await _list(client, admin["token"], sortBy="name", sortOrder="desc")

    assert [e["name"] for e in body["equipment"]] == ["Charlie", "Bravo", "Alpha"]


@pytest.mark.asyncio
async def test_filters(client: httpx.AsyncClient) -> None:
    """Test status, condition, type, location and search filters combine."""
    admin = await register_company(client)
    token = admin["token"]
    excavator = await create_equipment_type(client, token, "Excavator")
    loader = await create_equipment_type(client, token, "Loader")

    await create_equipment(
        client, token, excavator["id"], name="Digger", serialNumber="DG-100", location="Yard North"
    )
    await create_equipment(
        client, token, excavator["id"], name="Trencher", model="TR-9", currentStatus="out_of_order"
    )
    await create_equipment(client, token, loader["id"], name="Skid Steer", condition="poor")

    by_status = await _list(client, token, status="out_of_order")
    by_condition = await _list(client, token, condition="poor")
    by_type = await _list(client, token, equipmentTypeId=excavator["id"])
    by_location = await _list(client, token, location="north")
    by_serial = await _list(client, token, search="dg-1")
    by_model = await _list(client, token, search="TR-9")
    combined = await _list(client, token, equipmentTypeId=excavator["id"], status="good_to_go")

    assert [e["name"] for e in by_status["equipment"]] == ["Trencher"]
    assert [e["name"] for e in by_condition["equipment"]] == ["Skid Steer"]
    assert {e["name"] for e in by_type["equipment"]} == {"Digger", "Trencher"}
    assert [e["name"] for e in by_location["equipment"]] == ["Digger"]
    assert [e["name"] for e in by_serial["equipment"]] == ["Digger"]
    assert [e["name"] for e in by_model["equipment"]] == ["Trencher"]
    assert [e["name"] for e in combined["equipment"]] == ["Digger"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    excavator = await create_equipment_type(client, admin["token"])
    await create_equipment(client, admin["token"], excavator["id"], name="100% Electric")
    await create_equipment(client, admin["token"], excavator["id"], name="Diesel")

    body = await _list(client, admin["token"], search="%")

    assert [e["name"] for e in body["equipment"]] == ["100% Electric"]


@pytest.mark.asyncio
async def test_maintenance_overdue_filter(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    excavator = await create_equipment_type(client, admin["token"])
    today = date.today()
    await create_equipment(
        client,
        admin["token"],
        excavator["id"],
        name="Overdue",
        nextMaintenanceDue=(today - timedelta(days=3)).isoformat(),
    )
    await create_equipment(
        client,
        admin["token"],
        excavator["id"],
        name="Upcoming",
        nextMaintenanceDue=(today + timedelta(days=30)).isoformat(),
    )
    await create_equipment(client, admin["token"], excavator["id"], name="Unscheduled")

    overdue = await _list(client, admin["token"], maintenanceOverdue="true")
    not_overdue = await _list(client, admin["token"], maintenanceOverdue="false")

    assert [e["name"] for e in overdue["equipment"]] == ["Overdue"]
    assert {e["name"] for e in not_overdue["equipment"]} == {"Upcoming", "Unscheduled"}


@pytest.mark.asyncio
async def test_assigned_filter_without_assignments(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    excavator = await create_equipment_type(client, admin["token"])
    await create_equipment(client, admin["token"], excavator["id"])

    assigned = await _list(client, admin["token"], assigned="true")
    unassigned = await _list(client, admin["token"], assigned="false")

    assert assigned["pagination"]["total"] == 0
    assert unassigned["pagination"]["total"] == 1
