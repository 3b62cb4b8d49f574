"""Tests for the appointment lifecycle rules."""

import pytest

from telecare.core.exceptions import ForbiddenException, InvalidTransitionException
from telecare.core.lifecycle import (
    ACTION_PHRASES,
    STATUS_LABELS,
    TRANSITIONS,
    Actor,
    AppointmentStatus,
    LifecycleAction,
    can_transition,
    ensure_transition,
    holds_slot,
    is_terminal,
    next_status,
)

S = AppointmentStatus
A = LifecycleAction


@pytest.mark.parametrize(
    ("status", "action", "actor", "expected"),
    [
        (S.PENDING, A.ACCEPT, Actor.DOCTOR, S.ACCEPTED),
        (S.PENDING, A.CANCEL, Actor.PATIENT, S.CANCELLED),
        (S.PENDING, A.CANCEL, Actor.DOCTOR, S.CANCELLED),
        (S.ACCEPTED, A.COMPLETE, Actor.DOCTOR, S.COMPLETED),
        (S.ACCEPTED, A.CANCEL, Actor.PATIENT, S.CANCELLED),
        (S.ACCEPTED, A.CANCEL_BY_PROVIDER, Actor.DOCTOR, S.CANCELLED_BY_PROVIDER),
        (S.ACCEPTED, A.RESCHEDULE, Actor.DOCTOR, S.ACCEPTED),
        (S.COMPLETED, A.ATTACH_PRESCRIPTION, Actor.DOCTOR, S.COMPLETED),
        (S.COMPLETED, A.REVIEW, Actor.PATIENT, S.COMPLETED),
        (S.PENDING, A.FAIL_PAYMENT, Actor.SYSTEM, S.FAILED),
        (S.FAILED, A.CONFIRM_PAYMENT, Actor.SYSTEM, S.PENDING),
    ],
)
def test_allowed_transitions(status, action, actor, expected):
    """Permitted (status, action, actor) triples move to the expected status."""
    assert can_transition(status, action, actor)
    assert ensure_transition(status, action, actor) == expected


@pytest.mark.parametrize(
    ("status", "action", "actor"),
    [
        (S.PENDING, A.ACCEPT, Actor.PATIENT),
        (S.PENDING, A.ACCEPT, Actor.ADMIN),
        (S.ACCEPTED, A.COMPLETE, Actor.PATIENT),
        (S.COMPLETED, A.REVIEW, Actor.DOCTOR),
        (S.COMPLETED, A.ATTACH_PRESCRIPTION, Actor.PATIENT),
        (S.PENDING, A.CONFIRM_PAYMENT, Actor.PATIENT),
    ],
)
def test_wrong_actor_is_forbidden(status, action, actor):
    """A valid action performed by the wrong actor is forbidden, not invalid."""
    assert not can_transition(status, action, actor)
    with pytest.raises(ForbiddenException):
        ensure_transition(status, action, actor)


@pytest.mark.parametrize(
    ("status", "action"),
    [
        (S.PENDING, A.COMPLETE),
        (S.PENDING, A.REVIEW),
        (S.ACCEPTED, A.ACCEPT),
        (S.ACCEPTED, A.ADD_MEDICAL_RECORD),
        (S.COMPLETED, A.CANCEL),
        (S.PENDING, A.ATTACH_PRESCRIPTION),
    ],
)
def test_invalid_transitions(status, action):
    """Actions the status does not allow raise InvalidTransitionException."""
    with pytest.raises(InvalidTransitionException):
        next_status(status, action)


def test_terminal_statuses_have_no_actor_exit():
    """Only the system can leave a terminal status, and only failed -> pending."""
    for (status, action), (target, actors) in TRANSITIONS.items():
        if not is_terminal(status):
            continue
        if target != status:
            assert status == S.FAILED
            assert action == A.CONFIRM_PAYMENT
            assert actors == frozenset({Actor.SYSTEM})


@pytest.mark.parametrize("status", [S.CANCELLED, S.CANCELLED_BY_PROVIDER])
def test_cancelled_is_final(status):
    """Nothing can be done to a cancelled appointment."""
    for action in LifecycleAction:
        for actor in Actor:
            assert not can_transition(status, action, actor)


def test_slot_holding_statuses():
    """Pending, accepted and completed keep their slot; the rest free it."""
    assert holds_slot(S.PENDING)
    assert holds_slot("accepted")
    assert holds_slot(S.COMPLETED)
    assert not holds_slot(S.CANCELLED)
    assert not holds_slot(S.CANCELLED_BY_PROVIDER)
    assert not holds_slot(S.FAILED)


def test_status_labels():
    """Every status has a display label."""
    assert set(STATUS_LABELS) == set(AppointmentStatus)
    assert STATUS_LABELS[S.CANCELLED_BY_PROVIDER] == "Cancelled by Doctor"


def test_transition_error_message_names_status():
    """The error says what was attempted and from which status."""
    with pytest.raises(InvalidTransitionException) as exc_info:
        next_status("cancelled", A.ACCEPT)
    assert exc_info.value.message == "Cannot accept an appointment that is cancelled"
    assert exc_info.value.status_code == 409


def test_every_action_has_an_error_phrase():
    assert set(ACTION_PHRASES) == set(LifecycleAction)

    with pytest.raises(InvalidTransitionException) as exc_info:
        next_status("accepted", A.CONFIRM_PAYMENT)
    assert exc_info.value.message == "Cannot confirm payment for an appointment that is accepted"
