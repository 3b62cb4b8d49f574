"""Client-side session state: tokens, role and the pending booking."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class PendingBooking:
    """A booking created but not yet paid and verified."""

    appointment_id: str
    order_id: str | None = None
    amount: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class SessionContext:
    """
    Explicit session passed to the API and booking clients.

    Created on login and cleared on logout, expiry or block. Holds at most
    one pending booking; starting another booking replaces it.
    """

    def __init__(self) -> None:
        self.access_token: str | None = None
        self.refresh_token: str | None = None
        self.user: dict[str, Any] | None = None
        self.pending_booking: PendingBooking | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    @property
    def role(self) -> str | None:
        return self.user.get("role") if self.user else None

    def start(self, login: dict[str, Any]) -> None:
        """Begin a session from a login response."""
        self.clear()
        self.access_token = login["access_token"]
        self.refresh_token = login["refresh_token"]
        self.user = login.get("user")

    def update_tokens(self, access_token: str, refresh_token: str) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token

    def hold_booking(
        self,
        appointment_id: str,
        order_id: str | None = None,
        amount: int | None = None,
    ) -> PendingBooking:
        """Remember the booking awaiting payment, replacing any previous one."""
        if self.pending_booking and self.pending_booking.appointment_id != appointment_id:
            logger.info(
                "pending_booking_replaced",
                previous=self.pending_booking.appointment_id,
                current=appointment_id,
            )
        self.pending_booking = PendingBooking(appointment_id, order_id=order_id, amount=amount)
        return self.pending_booking

    def release_booking(self, appointment_id: str | None = None) -> None:
        """Forget the pending booking (only if it matches ``appointment_id`` when given)."""
        if self.pending_booking is None:
            return
        if appointment_id is None or self.pending_booking.appointment_id == appointment_id:
            self.pending_booking = None

    def clear(self) -> None:
        """End the session."""
        self.access_token = None
        self.refresh_token = None
        self.user = None
        self.pending_booking = None
