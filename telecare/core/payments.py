"""Payment provider client (Razorpay-compatible orders API)."""

import hashlib
import hmac
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
import structlog

from telecare.config import settings
from telecare.core.exceptions import PaymentGatewayException

logger = structlog.get_logger(__name__)


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Signature the provider attaches to a completed checkout."""
    payload = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def to_minor_units(amount: Decimal | int | float) -> int:
    """Convert a currency amount to the provider's minor units (paise, cents)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway:
    """Creates provider orders and verifies checkout signatures."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str,
        currency: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self._transport = transport

    async def create_order(self, amount: Decimal | int, receipt: str) -> dict[str, Any]:
        """
        Create a provider order for ``amount`` (major units).

        Returns:
            Order handle with ``id``, ``amount`` (minor units) and ``currency``

        Raises:
            PaymentGatewayException: If the provider call fails
        """
        payload = {
            "amount": to_minor_units(amount),
            "currency": self.currency,
            "receipt": receipt,
            "payment_capture": 1,
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.key_id, self.key_secret),
                timeout=10.0,
                transport=self._transport,
            ) as client:
                response = await client.post("/orders", json=payload)
        except httpx.HTTPError as e:
            logger.error("payment_order_request_failed", receipt=receipt, error=str(e))
            raise PaymentGatewayException(f"Payment provider unavailable: {e!s}")

        if response.status_code >= 400:
            logger.error(
                "payment_order_rejected",
                receipt=receipt,
                status_code=response.status_code,
                body=response.text,
            )
            raise PaymentGatewayException("Payment provider rejected the order")

        order = response.json()
        logger.info("payment_order_created", receipt=receipt, order_id=order.get("id"))
        return {
            "id": order["id"],
            "amount": order.get("amount", payload["amount"]),
            "currency": order.get("currency", self.currency),
            "key_id": self.key_id,
        }

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check a checkout signature in constant time."""
        if not order_id or not payment_id or not signature:
            return False
        expected = compute_signature(self.key_secret, order_id, payment_id)
        return hmac.compare_digest(expected, signature)


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the configured gateway."""
    return PaymentGateway(
        key_id=settings.payment_key_id,
        key_secret=settings.payment_key_secret,
        base_url=settings.payment_api_url,
        currency=settings.payment_currency,
    )
