"""Tests for coupon management and validation."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from telecare.schemas.coupons import CouponCreate
from telecare.services.coupon_service import apply_discount


def coupon_payload(**overrides) -> dict:
    payload = {
        "name": "Monsoon offer",
        "code": "monsoon15",
        "discount": 15,
        "expiration_date": (datetime.now(UTC) + timedelta(days=30)).isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize(
    ("fees", "percent", "expected"),
    [(500, 10, 450), (500, 100, 0), (499, 15, 424), (250, 33, 168), (100, 0, 100)],
)
def test_apply_discount_rounds_half_up(fees, percent, expected):
    assert apply_discount(fees, percent) == expected


def test_coupon_expiration_must_be_future():
    yesterday = datetime.now(UTC) - timedelta(days=1)

    with pytest.raises(ValidationError) as exc_info:
        CouponCreate(name="Save", code="SAVE10", discount=10, expiration_date=yesterday)

    assert "Expiration date should be in the future." in str(exc_info.value)


def test_coupon_window_order():
    now = datetime.now(UTC)

    with pytest.raises(ValidationError) as exc_info:
        CouponCreate(
            name="Save",
            code="SAVE10",
            discount=10,
            start_date=now + timedelta(days=10),
            expiration_date=now + timedelta(days=5),
        )

    assert "Expiration date must be after the start date." in str(exc_info.value)


@pytest.mark.parametrize(
    ("discount", "message"),
    [(0, "Discount must be greater than 0."), (101, "Discount cannot exceed 100.")],
)
def test_coupon_discount_bounds(discount, message):
    with pytest.raises(ValidationError) as exc_info:
        CouponCreate(
            name="Save",
            code="SAVE",
            discount=discount,
            expiration_date=datetime.now(UTC) + timedelta(days=1),
        )

    assert message in str(exc_info.value)


@pytest.mark.asyncio
async def test_admin_coupon_lifecycle(client, admin_headers, patient_headers):
    response = await client.post(
        "/api/v1/admin/coupons", json=coupon_payload(), headers=admin_headers
    )
    assert response.status_code == 201
    coupon = response.json()
    assert coupon["code"] == "MONSOON15"
    assert coupon["is_active"] is True

    response = await client.get("/api/v1/coupons", headers=patient_headers)
    assert [c["code"] for c in response.json()] == ["MONSOON15"]

    response = await client.put(
        f"/api/v1/admin/coupons/{coupon['id']}", json={"discount": 20}, headers=admin_headers
    )
    assert response.json()["discount"] == 20

    response = await client.patch(
        f"/api/v1/admin/coupons/{coupon['id']}/active",
        json={"is_active": False},
        headers=admin_headers,
    )
    assert response.json()["is_active"] is False

    response = await client.get("/api/v1/coupons", headers=patient_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_duplicate_coupon_code(client, admin_headers):
    await client.post("/api/v1/admin/coupons", json=coupon_payload(), headers=admin_headers)

    response = await client.post(
        "/api/v1/admin/coupons", json=coupon_payload(name="Again"), headers=admin_headers
    )

    assert response.status_code == 409
    assert response.json()["message"] == "Coupon code already exists"


@pytest.mark.asyncio
async def test_expired_coupon_create_rejected(client, admin_headers):
    yesterday = (datetime.now(UTC) - timedelta(days=1)).isoformat()

    response = await client.post(
        "/api/v1/admin/coupons",
        json=coupon_payload(expiration_date=yesterday),
        headers=admin_headers,
    )

    assert response.status_code == 422
    assert response.json()["message"] == "Expiration date should be in the future."


@pytest.mark.asyncio
async def test_update_cannot_expire_before_start(client, admin_headers):
    now = datetime.now(UTC)
    response = await client.post(
        "/api/v1/admin/coupons",
        json=coupon_payload(
            start_date=(now + timedelta(days=10)).isoformat(),
            expiration_date=(now + timedelta(days=30)).isoformat(),
        ),
        headers=admin_headers,
    )
    coupon = response.json()

    response = await client.put(
        f"/api/v1/admin/coupons/{coupon['id']}",
        json={"expiration_date": (now + timedelta(days=5)).isoformat()},
        headers=admin_headers,
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Expiration date must be after the start date."

    response = await client.put(
        f"/api/v1/admin/coupons/{coupon['id']}",
        json={"expiration_date": (now + timedelta(days=20)).isoformat()},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["expiration_date"].startswith(
        (now + timedelta(days=20)).date().isoformat()
    )


@pytest.mark.asyncio
async def test_coupon_admin_only(client, patient_headers):
    response = await client.post(
        "/api/v1/admin/coupons", json=coupon_payload(), headers=patient_headers
    )

    assert response.status_code == 403
