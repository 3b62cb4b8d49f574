"""Tests for the payment provider client."""

import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest

from telecare.core.exceptions import PaymentGatewayException
from telecare.core.payments import PaymentGateway, compute_signature, to_minor_units


def make_gateway(handler) -> PaymentGateway:
    return PaymentGateway(
        key_id="rzp_test_key",
        key_secret="secret",
        base_url="https://payments.test/v1/",
        currency="INR",
        transport=httpx.MockTransport(handler),
    )


def test_compute_signature_matches_provider_scheme():
    expected = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()

    assert compute_signature("secret", "order_1", "pay_1") == expected


@pytest.mark.parametrize(
    ("amount", "expected"),
    [(500, 50000), (Decimal("499.99"), 49999), (0.1, 10), (Decimal("10.005"), 1001)],
)
def test_to_minor_units(amount, expected):
    assert to_minor_units(amount) == expected


def test_verify_signature():
    gateway = make_gateway(lambda request: httpx.Response(200))
    signature = compute_signature("secret", "order_1", "pay_1")

    assert gateway.verify_signature("order_1", "pay_1", signature)
    assert not gateway.verify_signature("order_1", "pay_2", signature)
    assert not gateway.verify_signature("order_1", "pay_1", "")


@pytest.mark.asyncio
async def test_create_order():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_9", "amount": 45000, "currency": "INR"})

    order = await make_gateway(handler).create_order(450, receipt="APT123451")

    assert order == {"id": "order_9", "amount": 45000, "currency": "INR", "key_id": "rzp_test_key"}
    assert seen["url"] == "https://payments.test/v1/orders"
    assert seen["auth"].startswith("Basic ")
    assert seen["body"]["amount"] == 45000
    assert seen["body"]["receipt"] == "APT123451"


@pytest.mark.asyncio
async def test_create_order_rejected():
    gateway = make_gateway(lambda request: httpx.Response(400, json={"error": "bad"}))

    with pytest.raises(PaymentGatewayException):
        await gateway.create_order(500, receipt="APT1")


@pytest.mark.asyncio
async def test_create_order_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentGatewayException) as exc_info:
        await make_gateway(handler).create_order(500, receipt="APT1")

    assert exc_info.value.status_code == 502
