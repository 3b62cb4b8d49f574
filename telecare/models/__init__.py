"""Database models."""

from telecare.models.appointments import appointments
from telecare.models.chats import chat_messages, chats
from telecare.models.coupons import coupons
from telecare.models.doctors import doctors
from telecare.models.metadata import metadata
from telecare.models.prescriptions import prescriptions
from telecare.models.schedules import schedules
from telecare.models.users import users

__all__ = [
    "appointments",
    "chat_messages",
    "chats",
    "coupons",
    "doctors",
    "metadata",
    "prescriptions",
    "schedules",
    "users",
]
