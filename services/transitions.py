"""Booking status machine.

    pending  -> accepted | rejected | cancelled
    accepted -> completed | cancelled

completed, rejected and cancelled are terminal. Only a reschedule puts a
booking back into pending.
"""
from datetime import datetime

from sqlalchemy import update

from models.booking import (
    ACCEPTED,
    BOOKING_STATUSES,
    CANCELLED,
    COMPLETED,
    PENDING,
    REJECTED,
    RELEASED_STATUSES,
    Booking,
)
from models.user import ADMIN, ROLES, VENDOR
from services.errors import Forbidden, InvalidTransition, ValidationError
from services.slots import release_slot

ALLOWED_TRANSITIONS = {
    PENDING: {ACCEPTED, REJECTED, CANCELLED},
    ACCEPTED: {COMPLETED, CANCELLED},
}

MANAGER_ROLES = {VENDOR, ADMIN}


def check_transition(current: str, new: str, role: str) -> bool:
    """Validate ``current -> new`` for ``role``.

    Returns True when the transition gives the slot back. Raises
    ``InvalidTransition``, ``Forbidden`` or ``ValidationError`` otherwise.
    """
    if new not in BOOKING_STATUSES:
        raise ValidationError(f"Unknown booking status: {new}")
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")

    if new in (ACCEPTED, REJECTED):
        if role not in MANAGER_ROLES:
            raise Forbidden("Only vendors can accept or reject bookings")
        if current != PENDING:
            raise InvalidTransition("Only pending bookings can be accepted or rejected")
    elif new == COMPLETED:
        if role not in MANAGER_ROLES:
            raise Forbidden("Only vendors can mark bookings as completed")
        if current != ACCEPTED:
            raise InvalidTransition("Only accepted bookings can be marked as completed")
    elif new == CANCELLED:
        if current == COMPLETED:
            raise InvalidTransition("Cannot cancel a completed booking")
        if current not in ALLOWED_TRANSITIONS:
            raise InvalidTransition(f"Booking is already {current}")
    elif new == PENDING:
        raise InvalidTransition("Bookings only return to pending when rescheduled")

    if new not in ALLOWED_TRANSITIONS.get(current, ()):
        raise InvalidTransition(f"Cannot move a {current} booking to {new}")

    return new in RELEASED_STATUSES


def apply_transition(session, booking: Booking, new_status: str) -> None:
    """Write ``new_status`` and release the slot if needed, in the caller's transaction.

    The update only matches while the row still has the status it was read
    with, so a concurrent transition makes this one fail instead of
    overwriting it.
    """
    current = booking.status
    slot_id = booking.slot_id

    result = session.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == current)
        .values(status=new_status, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition("Booking was changed by another request, reload and retry")

    if new_status in RELEASED_STATUSES and slot_id is not None:
        release_slot(session, slot_id)
