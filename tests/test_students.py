from decimal import Decimal

import pytest
from httpx import AsyncClient


# --- CRUD ---
@pytest.mark.asyncio
async def test_create_and_get_student(client: AsyncClient, staff_headers, create_student) -> None:
    student_id = await create_student(student_number="2024-001", first_name="Maria", middle_name="Luz", last_name="Reyes")

    resp = await client.get(f"/api/students/{student_id}", headers=staff_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["student_number"] == "2024-001"
    assert data["first_name"] == "Maria"
    assert data["status"] == "active"
    assert data["grade_level"] == 1


@pytest.mark.asyncio
async def test_duplicate_student_number_conflict(client: AsyncClient, staff_headers, create_student) -> None:
    await create_student(student_number="DUP-1")
    resp = await client.post(
        "/api/students",
        json={
            "student_number": "DUP-1",
            "first_name": "Other",
            "last_name": "Kid",
            "grade_level": 2,
            "enrollment_date": "2024-06-01",
        },
        headers=staff_headers,
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_create_student_grade_out_of_range(client: AsyncClient, staff_headers) -> None:
    resp = await client.post(
        "/api/students",
        json={
            "student_number": "G7",
            "first_name": "Too",
            "last_name": "Old",
            "grade_level": 7,
            "enrollment_date": "2024-06-01",
        },
        headers=staff_headers,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_student_missing_fields(client: AsyncClient, staff_headers) -> None:
    resp = await client.post("/api/students", json={"first_name": "NoNumber"}, headers=staff_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_students_filters_and_orders(client: AsyncClient, staff_headers, create_student) -> None:
    await create_student(first_name="Zed", last_name="Alvarez", grade_level=2)
    await create_student(first_name="Amy", last_name="Cruz", grade_level=2)
    await create_student(first_name="Bob", last_name="Bautista", grade_level=3)

    resp = await client.get("/api/students", params={"grade_level": 2}, headers=staff_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [s["last_name"] for s in data["items"]] == ["Alvarez", "Cruz"]

    page = (await client.get("/api/students", params={"page": 2, "page_size": 2}, headers=staff_headers)).json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert len(page["items"]) == 1


@pytest.mark.asyncio
async def test_update_student(client: AsyncClient, staff_headers, create_student) -> None:
    student_id = await create_student()

    resp = await client.put(
        f"/api/students/{student_id}",
        json={"parent_name": "Rosa Santos", "status": "inactive"},
        headers=staff_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["parent_name"] == "Rosa Santos"
    assert resp.json()["status"] == "inactive"

    assert (await client.put(f"/api/students/{student_id}", json={}, headers=staff_headers)).status_code == 400
    assert (
        await client.put(f"/api/students/{student_id}", json={"grade_level": 0}, headers=staff_headers)
    ).status_code == 400
    assert (await client.put("/api/students/999", json={"first_name": "X"}, headers=staff_headers)).status_code == 404


@pytest.mark.asyncio
async def test_update_student_duplicate_number(client: AsyncClient, staff_headers, create_student) -> None:
    await create_student(student_number="TAKEN")
    student_id = await create_student()
    resp = await client.put(f"/api/students/{student_id}", json={"student_number": "TAKEN"}, headers=staff_headers)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_delete_student_admin_only(client: AsyncClient, staff_headers, admin_headers, create_student) -> None:
    student_id = await create_student()

    assert (await client.delete(f"/api/students/{student_id}", headers=staff_headers)).status_code == 403
    assert (await client.delete(f"/api/students/{student_id}", headers=admin_headers)).status_code == 200
    assert (await client.get(f"/api/students/{student_id}", headers=staff_headers)).status_code == 404
    assert (await client.delete(f"/api/students/{student_id}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_requires_token(client: AsyncClient) -> None:
    assert (await client.get("/api/students")).status_code == 401


# --- Batch upgrade ---
@pytest.mark.asyncio
async def test_batch_upgrade_moves_active_students(client: AsyncClient, admin_headers, staff_headers, create_student) -> None:
    a = await create_student(grade_level=3)
    b = await create_student(grade_level=3)
    c = await create_student(grade_level=3)
    await client.put(f"/api/students/{c}", json={"status": "inactive"}, headers=staff_headers)

    resp = await client.post(
        "/api/students/batch-upgrade",
        json={"from_grade": 3, "to_grade": 4, "student_ids": [a]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["updatedCount"] == 1

    resp = await client.post(
        "/api/students/batch-upgrade",
        json={"from_grade": 3, "to_grade": 4},
        headers=admin_headers,
    )
    assert resp.json()["updatedCount"] == 1

    grades = {
        sid: (await client.get(f"/api/students/{sid}", headers=staff_headers)).json()["grade_level"]
        for sid in (a, b, c)
    }
    assert grades == {a: 4, b: 4, c: 3}


@pytest.mark.asyncio
async def test_batch_upgrade_rejects_bad_grade(client: AsyncClient, admin_headers, staff_headers) -> None:
    payload = {"from_grade": 6, "to_grade": 7}
    assert (await client.post("/api/students/batch-upgrade", json=payload, headers=admin_headers)).status_code == 400
    assert (await client.post("/api/students/batch-upgrade", json=payload, headers=staff_headers)).status_code == 403


# --- Promotion with back payments ---
@pytest.mark.asyncio
async def test_promotion_without_unpaid_charges(client: AsyncClient, staff_headers, create_student, create_charge, pay) -> None:
    student_id = await create_student(grade_level=2)
    charge_id = await create_charge(amount="300.00", grade_level=2)
    await pay(student_id, [{"charge_id": charge_id, "description": "Tuition Fee", "amount": "300.00"}])

    check = (await client.post(f"/api/students/{student_id}/check-back-payments", headers=staff_headers)).json()
    assert check["has_unpaid"] is False
    assert check["unpaid_charges"] == []

    resp = await client.post(
        f"/api/students/{student_id}/upgrade-with-back-payments",
        json={"new_grade_level": 3},
        headers=staff_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["back_payments"] == []
    assert Decimal(data["total_back_payment"]) == Decimal("0")
    assert data["new_grade_level"] == 3

    student = (await client.get(f"/api/students/{student_id}", headers=staff_headers)).json()
    assert student["grade_level"] == 3
    assert (await client.get(f"/api/students/{student_id}/back-payments", headers=staff_headers)).json() == []


@pytest.mark.asyncio
async def test_promotion_carries_unpaid_charges(client: AsyncClient, staff_headers, create_student, create_charge, pay) -> None:
    student_id = await create_student(grade_level=1)
    tuition = await create_charge(name="Tuition Fee", amount="500.00", grade_level=1)
    books = await create_charge(name="Books", amount="300.00", charge_type="books", grade_level=1)
    await create_charge(name="Field Trip", amount="80.00", charge_type="activities", grade_level=1, is_mandatory=False)
    await create_charge(name="Grade 2 Tuition", amount="900.00", grade_level=2)
    await pay(student_id, [{"charge_id": books, "description": "Books", "amount": "100.00"}])

    check = (await client.post(f"/api/students/{student_id}/check-back-payments", headers=staff_headers)).json()
    assert check["has_unpaid"] is True
    assert Decimal(check["total_unpaid"]) == Decimal("700")
    by_charge = {u["charge_id"]: u for u in check["unpaid_charges"]}
    assert set(by_charge) == {tuition, books}
    assert by_charge[tuition]["has_student_charge"] is False
    assert Decimal(by_charge[books]["unpaid_amount"]) == Decimal("200")

    resp = await client.post(
        f"/api/students/{student_id}/upgrade-with-back-payments",
        json={"new_grade_level": 2},
        headers=staff_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["previous_grade_level"] == 1
    assert data["new_grade_level"] == 2
    assert Decimal(data["total_back_payment"]) == Decimal("700")
    assert sum(Decimal(bp["amount_due"]) for bp in data["back_payments"]) == Decimal("700")
    assert {bp["payment_description"] for bp in data["back_payments"]} == {
        "Back Payment: Tuition Fee (Grade 1 → 2)",
        "Back Payment: Books (Grade 1 → 2)",
    }

    # Prior ledger rows stay; the never-billed mandatory charge now has one
    breakdown = (await client.get(f"/api/charges/students/{student_id}/breakdown", headers=staff_headers)).json()
    ledger = {sc["charge_id"]: sc for sc in breakdown["student_charges"]}
    assert Decimal(ledger[books]["amount_paid"]) == Decimal("100")
    assert ledger[tuition]["status"] == "pending"
    assert Decimal(breakdown["summary"]["back_payments_outstanding"]) == Decimal("700")
    assert Decimal(breakdown["summary"]["total_charges"]) == Decimal("900")


@pytest.mark.asyncio
async def test_promotion_past_last_grade_graduates(client: AsyncClient, staff_headers, create_student, create_charge) -> None:
    student_id = await create_student(grade_level=6)
    await create_charge(amount="400.00", grade_level=6)

    resp = await client.post(
        f"/api/students/{student_id}/upgrade-with-back-payments",
        json={"new_grade_level": 7},
        headers=staff_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "graduated"
    assert data["new_grade_level"] == 6
    [bp] = data["back_payments"]
    assert bp["current_grade_level"] == 7

    again = await client.post(
        f"/api/students/{student_id}/upgrade-with-back-payments",
        json={"new_grade_level": 7},
        headers=staff_headers,
    )
    assert again.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("new_grade", [1, 2, 9])
async def test_promotion_rejects_invalid_target(client: AsyncClient, staff_headers, create_student, new_grade: int) -> None:
    student_id = await create_student(grade_level=2)
    resp = await client.post(
        f"/api/students/{student_id}/upgrade-with-back-payments",
        json={"new_grade_level": new_grade},
        headers=staff_headers,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_promotion_missing_student(client: AsyncClient, staff_headers) -> None:
    resp = await client.post(
        "/api/students/999/upgrade-with-back-payments",
        json={"new_grade_level": 2},
        headers=staff_headers,
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_student_with_payments_is_conflict(
    client: AsyncClient, staff_headers, admin_headers, create_student, create_charge, pay
) -> None:
    student_id = await create_student()
    charge_id = await create_charge(amount="500.00")
    await pay(student_id, [{"charge_id": charge_id, "description": "Tuition Fee", "amount": "100.00"}])

    resp = await client.delete(f"/api/students/{student_id}", headers=admin_headers)
    assert resp.status_code == 409
    assert "inactive" in resp.json()["detail"]

    # Student and payment history are untouched
    assert (await client.get(f"/api/students/{student_id}", headers=staff_headers)).status_code == 200
    history = await client.get(f"/api/payments/student/{student_id}", headers=staff_headers)
    assert len(history.json()["payments"]) == 1
