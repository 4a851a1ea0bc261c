"""Tests for the HTTP surface: status codes and error codes."""

import uuid

import pytest
from httpx import AsyncClient

from tests.conftest import MONDAY

BASE = "/api/v1"


async def create(client: AsyncClient, headers: dict, payload: dict) -> dict:
    response = await client.post(f"{BASE}/appointments/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get(f"{BASE}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_appointment(client, patient_headers, sample_appointment_data):
    data = await create(client, patient_headers, sample_appointment_data)

    assert data["status"] == "confirmed"
    assert data["slot_key"] == "doc-1_2030-03-11_09-00"
    assert data["appointment_time"] == "09:00"

    response = await client.get(
        f"{BASE}/appointments/{data['appointment_id']}", headers=patient_headers
    )
    assert response.status_code == 200
    assert response.json()["patient_id"] == "patient-1"


@pytest.mark.asyncio
async def test_double_booking_returns_conflict(
    client, patient_headers, token_headers, sample_appointment_data
):
    await create(client, patient_headers, sample_appointment_data)

    response = await client.post(
        f"{BASE}/appointments/",
        json={**sample_appointment_data, "appointment_time": "9:00 AM"},
        headers=token_headers("patient-2", "patient"),
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "SLOT_ALREADY_BOOKED"
    assert body["error"] == "SlotAlreadyBookedException"


@pytest.mark.asyncio
async def test_invalid_time_returns_bad_request(client, patient_headers, sample_appointment_data):
    response = await client.post(
        f"{BASE}/appointments/",
        json={**sample_appointment_data, "appointment_time": "after lunch"},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SLOT"


@pytest.mark.asyncio
async def test_requests_need_a_token(client, sample_appointment_data):
    response = await client.post(f"{BASE}/appointments/", json=sample_appointment_data)
    assert response.status_code in (401, 403)

    response = await client.post(
        f"{BASE}/appointments/",
        json=sample_appointment_data,
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_reschedule_flow(client, patient_headers, token_headers, sample_appointment_data):
    created = await create(client, patient_headers, sample_appointment_data)
    url = f"{BASE}/appointments/{created['appointment_id']}/reschedule"

    other = await client.post(
        url,
        json={"new_date": MONDAY.isoformat(), "new_time": "11:00"},
        headers=token_headers("patient-2", "patient"),
    )
    assert other.status_code == 403
    assert other.json()["code"] == "UNAUTHORIZED"

    moved = await client.post(
        url, json={"new_date": MONDAY.isoformat(), "new_time": "11:00"}, headers=patient_headers
    )
    assert moved.status_code == 200
    assert moved.json() == {"ok": True}

    slot = await client.get(
        f"{BASE}/slots/check",
        params={"doctor_id": "doc-1", "date": MONDAY.isoformat(), "time": "09:00"},
    )
    assert slot.json()["available"] is True


@pytest.mark.asyncio
async def test_reschedule_unknown_appointment(client, patient_headers):
    response = await client.post(
        f"{BASE}/appointments/{uuid.uuid4()}/reschedule",
        json={"new_date": MONDAY.isoformat(), "new_time": "11:00"},
        headers=patient_headers,
    )
    assert response.status_code == 404
    assert response.json()["code"] == "APPOINTMENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_cancel_returns_refund(client, patient_headers, sample_appointment_data):
    created = await create(client, patient_headers, sample_appointment_data)

    response = await client.post(
        f"{BASE}/appointments/{created['appointment_id']}/cancel", headers=patient_headers
    )

    assert response.status_code == 200
    data = response.json()
    # The appointment is years ahead
    assert data["refund_amount"] == 500
    assert data["fee"] == 0
    assert data["cancellation_policy"] == "full_refund"
    assert data["refund_transaction_id"].startswith("REFUND")


@pytest.mark.asyncio
async def test_complete_ordering_over_http(
    client, patient_headers, doctor_headers, sample_appointment_data
):
    first = await create(client, patient_headers, sample_appointment_data)
    second = await create(
        client, patient_headers, {**sample_appointment_data, "appointment_time": "10:00"}
    )
    payload = {"diagnosis": ["Hypertension"], "medicine": "Amlodipine", "notes": "Review in 2w"}

    blocked = await client.post(
        f"{BASE}/appointments/{second['appointment_id']}/complete",
        json=payload,
        headers=doctor_headers,
    )
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "ORDERING_VIOLATION"
    assert blocked.json()["message"] == "Complete earlier appointments first"

    missing = await client.post(
        f"{BASE}/appointments/{first['appointment_id']}/complete",
        json={"diagnosis": []},
        headers=doctor_headers,
    )
    assert missing.status_code == 400
    assert missing.json()["code"] == "DIAGNOSIS_REQUIRED"

    for appointment in (first, second):
        done = await client.post(
            f"{BASE}/appointments/{appointment['appointment_id']}/complete",
            json=payload,
            headers=doctor_headers,
        )
        assert done.status_code == 200


@pytest.mark.asyncio
async def test_role_gates(client, patient_headers, sample_appointment_data):
    created = await create(client, patient_headers, sample_appointment_data)
    appointment_url = f"{BASE}/appointments/{created['appointment_id']}"

    complete = await client.post(
        f"{appointment_url}/complete", json={"diagnosis": ["Flu"]}, headers=patient_headers
    )
    assert complete.status_code == 403
    assert complete.json()["code"] == "FORBIDDEN"

    not_attended = await client.post(f"{appointment_url}/mark-not-attended", headers=patient_headers)
    assert not_attended.status_code == 403

    approve = await client.post(
        f"{BASE}/schedule-requests/{uuid.uuid4()}/approve", headers=patient_headers
    )
    assert approve.status_code == 403


@pytest.mark.asyncio
async def test_mark_not_attended(
    client, patient_headers, receptionist_headers, sample_appointment_data
):
    created = await create(client, patient_headers, sample_appointment_data)

    response = await client.post(
        f"{BASE}/appointments/{created['appointment_id']}/mark-not-attended",
        headers=receptionist_headers,
    )

    assert response.status_code == 200
    detail = await client.get(
        f"{BASE}/appointments/{created['appointment_id']}", headers=receptionist_headers
    )
    assert detail.json()["status"] == "not_attended"


@pytest.mark.asyncio
async def test_approve_schedule_request(
    client, admin_headers, patient_headers, schedule_request, sample_appointment_data, mock_cache
):
    created = await create(client, patient_headers, sample_appointment_data)
    request_id = await schedule_request(blocked_dates=[MONDAY.isoformat()])
    url = f"{BASE}/schedule-requests/{request_id}/approve"

    response = await client.post(url, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["awaiting_count"] == 1
    assert response.json()["cancelled_count"] == 0
    mock_cache.delete.assert_called_once_with("doctor:schedule:doc-1")

    detail = await client.get(
        f"{BASE}/appointments/{created['appointment_id']}", headers=patient_headers
    )
    assert detail.json()["status"] == "awaiting_reschedule"

    again = await client.post(url, headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "REQUEST_NOT_PENDING"

    unknown = await client.post(
        f"{BASE}/schedule-requests/{uuid.uuid4()}/approve", headers=admin_headers
    )
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "REQUEST_NOT_FOUND"


@pytest.mark.asyncio
async def test_available_slots(client, patient_headers, sample_appointment_data):
    await create(client, patient_headers, sample_appointment_data)

    response = await client.get(
        f"{BASE}/doctors/doc-1/available-slots", params={"date": MONDAY.isoformat()}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["blocked"] is False
    assert "09:00" not in data["slots"]
    assert data["slots"][0] == "09:15"
