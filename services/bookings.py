"""Booking creation, status updates and rescheduling."""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from models.availability_slot import AvailabilitySlot
from models.booking import (
    ACTIVE_STATUSES,
    BOOKING_STATUSES,
    CANCELLED,
    COMPLETED,
    PENDING,
    Booking,
)
from models.service import Service
from models.user import User
from services.access import ensure_can_act
from services.errors import (
    Forbidden,
    InvalidTransition,
    NotFound,
    ServiceVendorMismatch,
    SlotUnavailable,
    TransactionAborted,
    ValidationError,
    VendorMismatch,
)
from services.payments import PAYMENT_METHODS, new_payment
from services.slots import claim_slot, get_slot, release_slot
from services.transitions import apply_transition, check_transition

logger = logging.getLogger(__name__)

BOOKING_LIST_DEFAULT = 50
BOOKING_LIST_MAX = 200

ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"


def _booking_query(session):
    return session.query(Booking).options(
        joinedload(Booking.customer),
        joinedload(Booking.service).joinedload(Service.vendor),
        joinedload(Booking.slot),
    )


def _is_slot_conflict(exc: IntegrityError) -> bool:
    # postgres names the index, sqlite names the column
    message = str(exc.orig)
    return ACTIVE_SLOT_INDEX in message or "bookings.slot_id" in message


def get_booking(session, booking_id: int) -> Booking:
    booking = _booking_query(session).filter(Booking.id == booking_id).first()
    if booking is None:
        raise NotFound("Booking not found")
    return booking


def list_bookings(
    session,
    customer_id: int | None = None,
    vendor_id: int | None = None,
    status: str | None = None,
    limit: int | None = None,
) -> list[Booking]:
    q = _booking_query(session).outerjoin(AvailabilitySlot, Booking.slot_id == AvailabilitySlot.id)

    if customer_id:
        q = q.filter(Booking.customer_id == customer_id)

    if vendor_id:
        q = q.join(Service, Booking.service_id == Service.id).filter(Service.vendor_id == vendor_id)

    if status:
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"Unknown booking status: {status}")
        q = q.filter(Booking.status == status)

    limit = max(1, min(limit or BOOKING_LIST_DEFAULT, BOOKING_LIST_MAX))
    return (
        q.order_by(
            AvailabilitySlot.slot_date.desc(),
            AvailabilitySlot.start_time.desc(),
            Booking.id.desc(),
        )
        .limit(limit)
        .all()
    )


def create_booking(session, customer_id: int, service_id: int, slot_id: int, payment_method=None,
                   currency="USD") -> Booking:
    """Claim ``slot_id`` and create a pending booking for it.

    The slot claim, the booking row and the optional ``initiated`` payment are
    written in one transaction. If another request claimed the slot after the
    availability check, the conditional claim matches no row and the whole
    transaction is rolled back with ``SlotUnavailable``.
    """
    if payment_method and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {payment_method}")

    slot = get_slot(session, slot_id)
    if not slot.is_available:
        raise SlotUnavailable()

    service = session.get(Service, service_id)
    if service is None:
        raise NotFound("Service not found")
    if service.vendor_id != slot.vendor_id:
        raise ServiceVendorMismatch()
    if slot.service_id is not None and slot.service_id != service.id:
        raise ServiceVendorMismatch("This slot is reserved for a different service")

    if session.get(User, customer_id) is None:
        raise NotFound("Customer not found")

    try:
        claim_slot(session, slot.id)

        booking = Booking(
            customer_id=customer_id,
            service_id=service.id,
            slot_id=slot.id,
            status=PENDING,
        )
        session.add(booking)
        session.flush()

        if payment_method:
            session.add(new_payment(booking.id, service, payment_method, currency=currency))

        session.commit()
    except SlotUnavailable:
        session.rollback()
        logger.info("Slot %s was claimed before customer %s could book it", slot_id, customer_id)
        raise
    except IntegrityError as exc:
        session.rollback()
        if _is_slot_conflict(exc):
            raise SlotUnavailable() from exc
        logger.exception("Booking insert failed for slot %s", slot_id)
        raise TransactionAborted("Failed to create booking") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Booking transaction failed for slot %s", slot_id)
        raise TransactionAborted("Failed to create booking") from exc

    logger.info("Booking %s created: customer=%s service=%s slot=%s", booking.id, customer_id, service_id, slot_id)
    return get_booking(session, booking.id)


def update_booking_status(session, booking_id: int, new_status: str, acting_user_id: int,
                          acting_role: str) -> Booking:
    booking = get_booking(session, booking_id)
    ensure_can_act(session, booking, acting_user_id, acting_role)

    previous = booking.status
    check_transition(previous, new_status, acting_role)

    try:
        apply_transition(session, booking, new_status)
        session.commit()
    except InvalidTransition:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Status update failed for booking %s", booking_id)
        raise TransactionAborted("Failed to update booking status") from exc

    logger.info(
        "Booking %s: %s -> %s by %s %s", booking_id, previous, new_status, acting_role, acting_user_id
    )
    return get_booking(session, booking_id)


def reschedule_booking(session, booking_id: int, new_slot_id: int, customer_id: int) -> Booking:
    """Move a booking to another slot of the same vendor and reset it to pending.

    Releasing the old slot, claiming the new one and updating the booking
    commit together or not at all.
    """
    booking = get_booking(session, booking_id)
    if booking.customer_id != customer_id:
        raise Forbidden("You can only reschedule your own bookings")

    if booking.status in (COMPLETED, CANCELLED):
        raise InvalidTransition("Cannot reschedule a completed or cancelled booking")

    new_slot = session.get(AvailabilitySlot, new_slot_id)
    if new_slot is None:
        raise NotFound("New slot not found")
    if not new_slot.is_available:
        raise SlotUnavailable("New slot is not available")
    if new_slot.vendor_id != booking.service.vendor_id:
        raise VendorMismatch()
    if new_slot.service_id is not None and new_slot.service_id != booking.service_id:
        raise ServiceVendorMismatch("This slot is reserved for a different service")

    old_slot_id = booking.slot_id
    old_status = booking.status

    try:
        # a rejected booking already gave its slot back
        if old_status in ACTIVE_STATUSES and old_slot_id is not None:
            release_slot(session, old_slot_id)

        claim_slot(session, new_slot.id)

        result = session.execute(
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.status == old_status,
                Booking.slot_id == old_slot_id,
            )
            .values(slot_id=new_slot.id, status=PENDING, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransition("Booking was changed by another request, reload and retry")

        session.commit()
    except (SlotUnavailable, InvalidTransition):
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        if _is_slot_conflict(exc):
            raise SlotUnavailable("New slot is not available") from exc
        logger.exception("Reschedule failed for booking %s", booking_id)
        raise TransactionAborted("Failed to reschedule booking") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Reschedule failed for booking %s", booking_id)
        raise TransactionAborted("Failed to reschedule booking") from exc

    logger.info("Booking %s rescheduled from slot %s to slot %s", booking_id, old_slot_id, new_slot_id)
    return get_booking(session, booking_id)
