from decimal import Decimal

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_and_get_charge(client: AsyncClient, staff_headers, create_charge) -> None:
    charge_id = await create_charge(name="Uniform", amount="750.00", charge_type="uniform", grade_level=3)

    resp = await client.get(f"/api/charges/{charge_id}", headers=staff_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Uniform"
    assert Decimal(data["amount"]) == Decimal("750")
    assert data["charge_type"] == "uniform"
    assert data["is_active"] is True

    assert (await client.get("/api/charges/999", headers=staff_headers)).status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": "0"},
        {"amount": "-10"},
        {"amount": "0.004"},
        {"amount": "12.345"},
        {"charge_type": "parking"},
        {"grade_level": 7},
    ],
)
async def test_create_charge_validation(client: AsyncClient, staff_headers, overrides) -> None:
    payload = {"name": "Fee", "amount": "100.00", "charge_type": "other", "grade_level": 1}
    payload.update(overrides)
    resp = await client.post("/api/charges", json=payload, headers=staff_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_by_grade_includes_ungraded_charges(client: AsyncClient, staff_headers, create_charge) -> None:
    graded = await create_charge(name="Tuition", grade_level=2)
    ungraded = await create_charge(name="Registration", charge_type="other", grade_level=None)
    other_grade = await create_charge(name="Tuition G3", grade_level=3)

    resp = await client.get("/api/charges/grade/2", headers=staff_headers)
    assert resp.status_code == 200
    ids = {c["id"] for c in resp.json()}
    assert ids == {graded, ungraded}
    assert other_grade not in ids

    assert (await client.get("/api/charges/grade/9", headers=staff_headers)).status_code == 400

    filtered = (await client.get("/api/charges", params={"charge_type": "other"}, headers=staff_headers)).json()
    assert [c["id"] for c in filtered] == [ungraded]


@pytest.mark.asyncio
async def test_update_and_deactivate_charge(client: AsyncClient, staff_headers, create_charge) -> None:
    charge_id = await create_charge(amount="100.00")

    resp = await client.put(
        f"/api/charges/{charge_id}",
        json={"amount": "125.00", "is_active": False},
        headers=staff_headers,
    )
    assert resp.status_code == 200
    assert Decimal(resp.json()["amount"]) == Decimal("125")
    assert resp.json()["is_active"] is False

    active = (await client.get("/api/charges", headers=staff_headers)).json()
    assert charge_id not in {c["id"] for c in active}
    inactive = (await client.get("/api/charges", params={"is_active": "false"}, headers=staff_headers)).json()
    assert charge_id in {c["id"] for c in inactive}

    assert (await client.put(f"/api/charges/{charge_id}", json={}, headers=staff_headers)).status_code == 400


@pytest.mark.asyncio
async def test_delete_charge(client: AsyncClient, admin_headers, staff_headers, create_charge, create_student, pay) -> None:
    unused = await create_charge(name="Unused")
    used = await create_charge(name="Used")
    student_id = await create_student()
    await pay(student_id, [{"charge_id": used, "description": "Used", "amount": "10.00"}])

    assert (await client.delete(f"/api/charges/{unused}", headers=staff_headers)).status_code == 403
    assert (await client.delete(f"/api/charges/{unused}", headers=admin_headers)).status_code == 200
    assert (await client.delete(f"/api/charges/{unused}", headers=admin_headers)).status_code == 404

    resp = await client.delete(f"/api/charges/{used}", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cannot delete charge that has been used in payments"


@pytest.mark.asyncio
async def test_students_summary(client: AsyncClient, staff_headers, create_charge, create_student, pay) -> None:
    tuition = await create_charge(name="Tuition", amount="500.00", grade_level=1)
    await create_charge(name="Trip", amount="100.00", charge_type="activities", grade_level=1, is_mandatory=False)
    await create_charge(name="Registration", amount="50.00", charge_type="other", grade_level=None)
    paying = await create_student(first_name="Paz", last_name="Aquino", grade_level=1)
    idle = await create_student(first_name="Ivo", last_name="Bernal", grade_level=1)
    await create_student(first_name="Gil", last_name="Cortez", grade_level=4)

    kept = await pay(paying, [{"charge_id": tuition, "description": "Tuition", "amount": "200.00"}])
    reverted = await pay(paying, [{"charge_id": tuition, "description": "Tuition", "amount": "300.00"}])
    await client.post(f"/api/payments/{reverted['paymentId']}/revert", headers=staff_headers)
    assert kept["success"] is True

    resp = await client.get("/api/charges/students/summary", params={"grade_level": 1}, headers=staff_headers)
    assert resp.status_code == 200
    rows = {r["student_id"]: r for r in resp.json()}
    assert set(rows) == {paying, idle}

    row = rows[paying]
    assert Decimal(row["total_charges"]) == Decimal("600")
    assert Decimal(row["mandatory_charges"]) == Decimal("500")
    # Reverted payments are not counted
    assert Decimal(row["total_payments"]) == Decimal("200")
    assert Decimal(row["remaining_balance"]) == Decimal("400")
    assert Decimal(rows[idle]["remaining_balance"]) == Decimal("600")


@pytest.mark.asyncio
async def test_breakdown_missing_student(client: AsyncClient, staff_headers) -> None:
    assert (await client.get("/api/charges/students/999/breakdown", headers=staff_headers)).status_code == 404


@pytest.mark.asyncio
async def test_update_rejects_sub_cent_amount(client: AsyncClient, staff_headers, create_charge) -> None:
    charge_id = await create_charge(amount="100.00")

    resp = await client.put(f"/api/charges/{charge_id}", json={"amount": "99.999"}, headers=staff_headers)
    assert resp.status_code == 400

    data = (await client.get(f"/api/charges/{charge_id}", headers=staff_headers)).json()
    assert Decimal(data["amount"]) == Decimal("100")
