"""Tests for doctor registration review."""

from uuid import uuid4

import pytest
from httpx import AsyncClient


def verification_url(doctor_id) -> str:
    return f"/api/v1/admin/doctors/{doctor_id}/verification"


@pytest.mark.asyncio
async def test_rejected_doctor_is_hidden_and_cannot_be_booked(
    client: AsyncClient,
    doctor: dict,
    schedule: dict,
    booking_day,
    admin_headers: dict,
    patient_headers: dict,
    redis_mock,
):
    redis_mock.keys.return_value = ["doctor:list:1:20:*"]

    response = await client.patch(
        verification_url(doctor["id"]), json={"status": "rejected"}, headers=admin_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["verification_status"] == "rejected"
    assert data["is_verified"] is False
    redis_mock.delete.assert_any_call(f"doctor:{doctor['id']}")
    redis_mock.keys.assert_called_with("doctor:list:*")

    response = await client.get("/api/v1/doctors", headers=patient_headers)
    assert response.json()["items"] == []

    response = await client.post(
        "/api/v1/bookings",
        json={
            "doctor_id": str(doctor["id"]),
            "date": booking_day.isoformat(),
            "time": "10:00AM",
            "fees": doctor["consultation_fee"],
            "payment_method": "razorpay",
        },
        headers=patient_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Doctor is not accepting appointments"


@pytest.mark.asyncio
async def test_pending_registration_is_listed_once_approved(
    client: AsyncClient,
    other_patient: dict,
    admin_headers: dict,
    patient_headers: dict,
):
    response = await client.post(
        "/api/v1/admin/doctors",
        json={
            "user_id": str(other_patient["id"]),
            "full_name": "Dr Olive",
            "consultation_fee": 700,
            "is_verified": False,
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    created = response.json()
    assert created["verification_status"] == "pending"

    response = await client.get("/api/v1/doctors", headers=patient_headers)
    assert response.json()["total"] == 0

    response = await client.patch(
        verification_url(created["id"]), json={"status": "approved"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["is_verified"] is True

    response = await client.get("/api/v1/doctors", headers=patient_headers)
    assert [d["full_name"] for d in response.json()["items"]] == ["Dr Olive"]


@pytest.mark.asyncio
async def test_verification_decision_must_be_final(
    client: AsyncClient, doctor: dict, admin_headers: dict
):
    response = await client.patch(
        verification_url(doctor["id"]), json={"status": "pending"}, headers=admin_headers
    )

    assert response.status_code == 422
    assert response.json()["message"] == "Verification status must be approved or rejected."


@pytest.mark.asyncio
async def test_verification_unknown_doctor(client: AsyncClient, admin_headers: dict):
    response = await client.patch(
        verification_url(uuid4()), json={"status": "approved"}, headers=admin_headers
    )

    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundException"


@pytest.mark.asyncio
async def test_verification_is_admin_only(
    client: AsyncClient, doctor: dict, patient_headers: dict, doctor_headers: dict
):
    for headers in (patient_headers, doctor_headers):
        response = await client.patch(
            verification_url(doctor["id"]), json={"status": "rejected"}, headers=headers
        )
        assert response.status_code == 403
