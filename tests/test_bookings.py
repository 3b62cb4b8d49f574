"""Tests for the booking transaction and payment verification."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import insert, select

from telecare.core.payments import PaymentGateway, get_payment_gateway
from telecare.main import app
from telecare.models import appointments, coupons
from telecare.schemas.bookings import BookingCreate
from telecare.services.booking_service import BookingService
from telecare.services.slot_service import SlotService

CONSULTATION_FEE = 500


def booking_payload(doctor: dict, day, time: str = "10:00AM", **extra) -> dict:
    return {
        "doctor_id": str(doctor["id"]),
        "date": day.isoformat(),
        "time": time,
        "fees": CONSULTATION_FEE,
        "payment_method": "razorpay",
        **extra,
    }


def verification_payload(code: str, order_id: str, payment_id: str, signature: str) -> dict:
    return {
        "provider_response": {
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        },
        "booking_id": code,
    }


async def add_coupon(db, code: str, discount: int, **overrides) -> None:
    now = datetime.now(UTC)
    values = {
        "id": uuid4(),
        "name": f"{code} offer",
        "code": code,
        "discount": discount,
        "start_date": now - timedelta(days=1),
        "expiration_date": now + timedelta(days=30),
        "is_active": True,
    }
    values.update(overrides)
    await db.execute(insert(coupons).values(**values))
    await db.commit()


@pytest.mark.asyncio
async def test_booking_round_trip(
    client, doctor, schedule, patient_headers, booking_day, sign_payment, payment_orders
):
    """Book, pay and verify; the slot then disappears from availability."""
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    assert response.status_code == 201
    data = response.json()

    appointment = data["appointment"]
    assert appointment["appointment_id"].startswith("APT")
    assert appointment["status"] == "pending"
    assert appointment["payment_status"] == "pending"
    assert appointment["time"] == "10:00AM"
    assert data["order"]["id"] == "order_1"
    assert data["order"]["amount"] == CONSULTATION_FEE * 100
    assert payment_orders[0]["receipt"] == appointment["appointment_id"]

    code = appointment["appointment_id"]
    signature = sign_payment("order_1", "pay_1")
    response = await client.post(
        "/api/v1/bookings/verify",
        json=verification_payload(code, "order_1", "pay_1", signature),
        headers=patient_headers,
    )
    assert response.status_code == 200
    assert response.json() == {
        "appointment_id": code,
        "fees": CONSULTATION_FEE,
        "status": "pending",
        "payment_status": "completed",
    }

    response = await client.get(
        f"/api/v1/doctors/{doctor['id']}/slots",
        params={"date": booking_day.isoformat()},
        headers=patient_headers,
    )
    assert response.status_code == 200
    slots = [s["slot"] for s in response.json()["slots"]]
    assert "10:00AM" not in slots
    assert "9:30AM" in slots


@pytest.mark.asyncio
async def test_verification_is_idempotent(
    client, doctor, schedule, patient_headers, booking_day, sign_payment
):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    code = response.json()["appointment"]["appointment_id"]
    body = verification_payload(code, "order_1", "pay_1", sign_payment("order_1", "pay_1"))

    first = await client.post("/api/v1/bookings/verify", json=body, headers=patient_headers)
    second = await client.post("/api/v1/bookings/verify", json=body, headers=patient_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json() == second.json()


@pytest.mark.asyncio
async def test_paid_booking_survives_a_different_verification(
    client, doctor, schedule, patient_headers, booking_day, sign_payment
):
    """A second, forged result for a paid booking leaves it paid and holding its slot."""
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    code = response.json()["appointment"]["appointment_id"]
    paid = verification_payload(code, "order_1", "pay_1", sign_payment("order_1", "pay_1"))
    response = await client.post("/api/v1/bookings/verify", json=paid, headers=patient_headers)
    assert response.status_code == 200

    response = await client.post(
        "/api/v1/bookings/verify",
        json=verification_payload(code, "order_1", "pay_2", "garbage"),
        headers=patient_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "PaymentVerificationException"
    assert response.json()["message"] == "Payment for this appointment is already settled"

    listing = await client.get("/api/v1/appointments", headers=patient_headers)
    item = listing.json()["items"][0]
    assert item["status"] == "pending"
    assert item["payment_status"] == "completed"

    response = await client.get(
        f"/api/v1/doctors/{doctor['id']}/slots",
        params={"date": booking_day.isoformat()},
        headers=patient_headers,
    )
    assert "10:00AM" not in [s["slot"] for s in response.json()["slots"]]


@pytest.mark.asyncio
async def test_doctor_cannot_accept_before_payment_verifies(
    client, doctor, schedule, patient_headers, doctor_headers, booking_day, sign_payment
):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    appointment = response.json()["appointment"]
    code = appointment["appointment_id"]

    response = await client.post(
        f"/api/v1/appointments/{appointment['id']}/accept", headers=doctor_headers
    )
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransitionException"
    assert response.json()["message"] == "Payment for this appointment is not completed"

    body = verification_payload(code, "order_1", "pay_1", sign_payment("order_1", "pay_1"))
    response = await client.post("/api/v1/bookings/verify", json=body, headers=patient_headers)
    assert response.status_code == 200
    assert response.json()["payment_status"] == "completed"

    response = await client.post(
        f"/api/v1/appointments/{appointment['id']}/accept", headers=doctor_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"


@pytest.mark.asyncio
async def test_bad_signature_fails_booking_and_frees_slot(
    client, doctor, schedule, patient_headers, booking_day
):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    code = response.json()["appointment"]["appointment_id"]

    response = await client.post(
        "/api/v1/bookings/verify",
        json=verification_payload(code, "order_1", "pay_1", "forged"),
        headers=patient_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "PaymentVerificationException"

    listing = await client.get("/api/v1/appointments", headers=patient_headers)
    item = listing.json()["items"][0]
    assert item["status"] == "failed"
    assert item["payment_status"] == "failed"
    assert item["status_label"] == "Payment Failed"

    response = await client.get(
        f"/api/v1/doctors/{doctor['id']}/slots",
        params={"date": booking_day.isoformat()},
        headers=patient_headers,
    )
    assert "10:00AM" in [s["slot"] for s in response.json()["slots"]]


@pytest.mark.asyncio
async def test_retry_payment_keeps_code(
    client, doctor, schedule, patient_headers, booking_day, sign_payment
):
    """A failed booking can be paid again under the same code."""
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    code = response.json()["appointment"]["appointment_id"]
    await client.post(
        f"/api/v1/bookings/{code}/payment-failed",
        json={"reason": "dismissed"},
        headers=patient_headers,
    )

    response = await client.post(f"/api/v1/bookings/{code}/retry-payment", headers=patient_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["appointment"]["appointment_id"] == code
    assert data["appointment"]["status"] == "failed"
    assert data["appointment"]["payment_status"] == "pending"
    assert data["order"]["id"] == "order_2"

    response = await client.post(
        "/api/v1/bookings/verify",
        json=verification_payload(code, "order_2", "pay_2", sign_payment("order_2", "pay_2")),
        headers=patient_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["payment_status"] == "completed"


@pytest.mark.asyncio
async def test_retry_rejected_when_slot_taken(
    client,
    doctor,
    schedule,
    patient_headers,
    other_patient,
    auth_headers,
    booking_day,
):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    code = response.json()["appointment"]["appointment_id"]
    await client.post(f"/api/v1/bookings/{code}/payment-failed", headers=patient_headers)

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day),
        headers=auth_headers(other_patient),
    )
    assert response.status_code == 201

    response = await client.post(f"/api/v1/bookings/{code}/retry-payment", headers=patient_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "SlotConflictException"


@pytest.mark.asyncio
async def test_held_slot_cannot_be_booked_twice(
    client, doctor, schedule, patient_headers, other_patient, auth_headers, booking_day
):
    first = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day),
        headers=auth_headers(other_patient),
    )
    assert second.status_code == 409
    assert second.json()["error"] == "SlotConflictException"


@pytest.mark.asyncio
async def test_booking_race_is_decided_by_unique_index(
    client,
    doctor,
    schedule,
    patient_headers,
    other_patient,
    auth_headers,
    booking_day,
    monkeypatch,
):
    """Both requests pass the availability check; the insert decides the winner."""

    async def nothing_booked(self, *args, **kwargs):
        return []

    monkeypatch.setattr(SlotService, "_booked_instants", nothing_booked)

    first = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )
    second = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day),
        headers=auth_headers(other_patient),
    )

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"] == "SlotConflictException"
    assert second.json()["message"] == "Slot is no longer available"


@pytest.mark.asyncio
async def test_fee_must_match_consultation_fee(
    client, doctor, schedule, patient_headers, booking_day
):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day, fees=CONSULTATION_FEE - 100),
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Fees do not match the doctor's consultation fee"


@pytest.mark.asyncio
async def test_time_must_be_a_schedule_slot(
    client, doctor, schedule, patient_headers, booking_day
):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day, time="10:15AM"),
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert "not an available slot" in response.json()["message"]


@pytest.mark.asyncio
async def test_slot_label_is_case_and_space_insensitive(
    client, doctor, schedule, patient_headers, booking_day
):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day, time="10:00 am"),
        headers=patient_headers,
    )

    assert response.status_code == 201
    assert response.json()["appointment"]["time"] == "10:00AM"


@pytest.mark.asyncio
async def test_doctor_cannot_book(client, doctor, schedule, doctor_headers, booking_day):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=doctor_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_coupon_discount_applied(
    client, db_session, doctor, schedule, patient_headers, booking_day, payment_orders
):
    await add_coupon(db_session, "SAVE10", 10)

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day, coupon_code="save10"),
        headers=patient_headers,
    )

    assert response.status_code == 201
    appointment = response.json()["appointment"]
    assert appointment["fees"] == 450
    assert appointment["coupon_code"] == "SAVE10"
    assert appointment["coupon_discount"] == 10
    assert appointment["is_applied"] is True
    assert payment_orders[0]["amount"] == 45000


@pytest.mark.asyncio
async def test_expired_coupon_rejected_even_if_active(
    client, db_session, doctor, schedule, patient_headers, booking_day
):
    now = datetime.now(UTC)
    await add_coupon(
        db_session,
        "OLD20",
        20,
        start_date=now - timedelta(days=30),
        expiration_date=now - timedelta(days=1),
        is_active=True,
    )

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day, coupon_code="OLD20"),
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Coupon has expired"


@pytest.mark.asyncio
async def test_fully_discounted_booking_needs_no_payment(
    client, db_session, doctor, schedule, patient_headers, booking_day, payment_orders
):
    await add_coupon(db_session, "FREE", 100)

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(doctor, booking_day, coupon_code="FREE"),
        headers=patient_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["order"] is None
    assert data["appointment"]["fees"] == 0
    assert data["appointment"]["payment_status"] == "anonymous"
    assert payment_orders == []


@pytest.mark.asyncio
async def test_order_failure_marks_booking_failed(
    client, doctor, schedule, patient_headers, booking_day
):
    def unavailable(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"description": "server error"}})

    app.dependency_overrides[get_payment_gateway] = lambda: PaymentGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        base_url="https://payments.test/v1",
        currency="INR",
        transport=httpx.MockTransport(unavailable),
    )

    response = await client.post(
        "/api/v1/bookings", json=booking_payload(doctor, booking_day), headers=patient_headers
    )

    assert response.status_code == 502
    assert response.json()["error"] == "PaymentGatewayException"
    assert "Retry payment for booking APT" in response.json()["message"]

    listing = await client.get("/api/v1/appointments", headers=patient_headers)
    assert listing.json()["items"][0]["status"] == "failed"


@pytest.mark.asyncio
async def test_expire_abandoned_payments(
    db_session, gateway, doctor, schedule, patient, booking_day
):
    """Unpaid bookings past the payment timeout are failed."""
    service = BookingService(db_session, gateway)
    now = datetime.now(UTC)
    data = BookingCreate(
        doctor_id=doctor["id"], date=booking_day, time="10:00AM", fees=CONSULTATION_FEE
    )
    booking = await service.book(patient["id"], data, now=now)

    assert await service.expire_abandoned_payments(now + timedelta(minutes=5)) == 0
    assert await service.expire_abandoned_payments(now + timedelta(minutes=30)) == 1

    result = await db_session.execute(
        select(appointments.c.status, appointments.c.payment_status).where(
            appointments.c.appointment_id == booking.appointment.appointment_id
        )
    )
    assert tuple(result.one()) == ("failed", "failed")


@pytest.mark.asyncio
async def test_admin_expire_endpoint(client, admin_headers, patient_headers):
    response = await client.post("/api/v1/admin/payments/expire", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"expired": 0}

    response = await client.post("/api/v1/admin/payments/expire", headers=patient_headers)
    assert response.status_code == 403
