"""Appointment lifecycle: statuses, actors and the permitted transitions.

Every surface (patient, doctor, admin) asks this module whether an action
is allowed instead of re-deriving the rules locally. The functions are
pure; persistence and side effects live in the services.
"""

from enum import Enum

from telecare.core.exceptions import ForbiddenException, InvalidTransitionException


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CANCELLED_BY_PROVIDER = "cancelledByProvider"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    ANONYMOUS = "anonymous"


class Actor(str, Enum):
    """Who initiates an action."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"
    SYSTEM = "system"


class LifecycleAction(str, Enum):
    """Actions that read or move an appointment's status."""

    ACCEPT = "accept"
    COMPLETE = "complete"
    CANCEL = "cancel"
    CANCEL_BY_PROVIDER = "cancel_by_provider"
    RESCHEDULE = "reschedule"
    ATTACH_PRESCRIPTION = "attach_prescription"
    REVIEW = "review"
    ADD_MEDICAL_RECORD = "add_medical_record"
    FAIL_PAYMENT = "fail_payment"
    CONFIRM_PAYMENT = "confirm_payment"


# Object phrases for transition errors: "Cannot <phrase> that is <status>"
ACTION_PHRASES = {
    LifecycleAction.ACCEPT: "accept an appointment",
    LifecycleAction.COMPLETE: "complete an appointment",
    LifecycleAction.CANCEL: "cancel an appointment",
    LifecycleAction.CANCEL_BY_PROVIDER: "cancel an appointment",
    LifecycleAction.RESCHEDULE: "reschedule an appointment",
    LifecycleAction.ATTACH_PRESCRIPTION: "attach a prescription to an appointment",
    LifecycleAction.REVIEW: "review an appointment",
    LifecycleAction.ADD_MEDICAL_RECORD: "add a medical record to an appointment",
    LifecycleAction.FAIL_PAYMENT: "fail payment for an appointment",
    LifecycleAction.CONFIRM_PAYMENT: "confirm payment for an appointment",
}

TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.CANCELLED_BY_PROVIDER,
        AppointmentStatus.FAILED,
    }
)

# Statuses that keep a (doctor, slot) pair occupied
SLOT_HOLDING_STATUSES = frozenset(
    {
        AppointmentStatus.PENDING,
        AppointmentStatus.ACCEPTED,
        AppointmentStatus.COMPLETED,
    }
)

STATUS_LABELS = {
    AppointmentStatus.PENDING: "Pending",
    AppointmentStatus.ACCEPTED: "Accepted",
    AppointmentStatus.COMPLETED: "Completed",
    AppointmentStatus.CANCELLED: "Cancelled",
    AppointmentStatus.CANCELLED_BY_PROVIDER: "Cancelled by Doctor",
    AppointmentStatus.FAILED: "Payment Failed",
}

S = AppointmentStatus
A = LifecycleAction

Transition = tuple[AppointmentStatus, frozenset]

# (current status, action) -> (next status, actors allowed to perform it)
TRANSITIONS: dict[tuple[AppointmentStatus, LifecycleAction], Transition] = {
    (S.PENDING, A.ACCEPT): (S.ACCEPTED, frozenset({Actor.DOCTOR})),
    (S.PENDING, A.CANCEL): (S.CANCELLED, frozenset({Actor.PATIENT, Actor.DOCTOR})),
    (S.PENDING, A.ADD_MEDICAL_RECORD): (S.PENDING, frozenset({Actor.PATIENT})),
    (S.PENDING, A.FAIL_PAYMENT): (S.FAILED, frozenset({Actor.PATIENT, Actor.SYSTEM})),
    (S.PENDING, A.CONFIRM_PAYMENT): (S.PENDING, frozenset({Actor.SYSTEM})),
    (S.ACCEPTED, A.CANCEL): (S.CANCELLED, frozenset({Actor.PATIENT})),
    (S.ACCEPTED, A.CANCEL_BY_PROVIDER): (S.CANCELLED_BY_PROVIDER, frozenset({Actor.DOCTOR})),
    (S.ACCEPTED, A.COMPLETE): (S.COMPLETED, frozenset({Actor.DOCTOR})),
    (S.ACCEPTED, A.RESCHEDULE): (S.ACCEPTED, frozenset({Actor.DOCTOR})),
    (S.COMPLETED, A.ATTACH_PRESCRIPTION): (S.COMPLETED, frozenset({Actor.DOCTOR})),
    (S.COMPLETED, A.REVIEW): (S.COMPLETED, frozenset({Actor.PATIENT})),
    # A verified retry payment is the only way out of failed.
    (S.FAILED, A.CONFIRM_PAYMENT): (S.PENDING, frozenset({Actor.SYSTEM})),
}

del S, A


def _coerce(status: AppointmentStatus | str) -> AppointmentStatus:
    return status if isinstance(status, AppointmentStatus) else AppointmentStatus(status)


def is_terminal(status: AppointmentStatus | str) -> bool:
    """Return True if no actor-initiated action can leave ``status``."""
    return _coerce(status) in TERMINAL_STATUSES


def holds_slot(status: AppointmentStatus | str) -> bool:
    """Return True if an appointment in ``status`` occupies its slot."""
    return _coerce(status) in SLOT_HOLDING_STATUSES


def can_transition(
    status: AppointmentStatus | str,
    action: LifecycleAction,
    actor: Actor | str,
) -> bool:
    """Return True if ``actor`` may perform ``action`` on an appointment in ``status``."""
    rule = TRANSITIONS.get((_coerce(status), action))
    if rule is None:
        return False
    return Actor(actor) in rule[1]


def next_status(status: AppointmentStatus | str, action: LifecycleAction) -> AppointmentStatus:
    """
    Return the status an appointment moves to after ``action``.

    Raises:
        InvalidTransitionException: If ``action`` is not valid from ``status``
    """
    current = _coerce(status)
    rule = TRANSITIONS.get((current, action))
    if rule is None:
        raise InvalidTransitionException(
            f"Cannot {ACTION_PHRASES[action]} that is {STATUS_LABELS[current].lower()}"
        )
    return rule[0]


def ensure_transition(
    status: AppointmentStatus | str,
    action: LifecycleAction,
    actor: Actor | str,
) -> AppointmentStatus:
    """
    Validate ``action`` for ``actor`` and return the resulting status.

    Raises:
        InvalidTransitionException: If the status does not allow the action
        ForbiddenException: If the action is valid but not for this actor
    """
    target = next_status(status, action)
    if not can_transition(status, action, actor):
        raise ForbiddenException(
            f"A {Actor(actor).value} cannot {action.value.replace('_', ' ')} this appointment"
        )
    return target
