#!/usr/bin/env python3
"""
Fail bookings whose payment was abandoned, releasing their slots.

Meant to run from cron; bookings are also swept whenever a new booking is
made. The timeout comes from PAYMENT_TIMEOUT_MINUTES.

Usage:
    python scripts/expire_payments.py
"""

import asyncio

import dotenv

dotenv.load_dotenv()

from telecare.core.payments import get_payment_gateway  # noqa: E402
from telecare.database import session_scope  # noqa: E402
from telecare.services.booking_service import BookingService  # noqa: E402


async def expire() -> int:
    """Run one sweep."""
    async with session_scope() as session:
        return await BookingService(session, get_payment_gateway()).expire_abandoned_payments()


if __name__ == "__main__":
    print(f"Expired {asyncio.run(expire())} abandoned booking(s)")
