"""Availability slot repository.

This module is the only writer of ``AvailabilitySlot.is_available``. Claims go
through a conditional update so two transactions racing for the same slot can
never both succeed.
"""
import logging
from datetime import date, time

from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from models.availability_slot import AvailabilitySlot
from models.booking import Booking, RELEASED_STATUSES
from models.service import Service
from models.vendor import Vendor
from services.errors import (
    HasActiveBookings,
    NotFound,
    ServiceVendorMismatch,
    SlotUnavailable,
    TransactionAborted,
    ValidationError,
)

logger = logging.getLogger(__name__)

SLOT_PAGE_SIZE = 100


def get_slot(session, slot_id: int) -> AvailabilitySlot:
    slot = session.get(AvailabilitySlot, slot_id)
    if slot is None:
        raise NotFound("Availability slot not found")
    return slot


def list_slots(
    session,
    vendor_id: int | None = None,
    service_id: int | None = None,
    from_date: date | None = None,
    include_booked: bool = False,
    limit: int = SLOT_PAGE_SIZE,
) -> list[AvailabilitySlot]:
    # past slots are never listed, whatever from_date says
    today = date.today()
    start = max(from_date, today) if from_date else today

    q = session.query(AvailabilitySlot).filter(AvailabilitySlot.slot_date >= start)

    if not include_booked:
        q = q.filter(AvailabilitySlot.is_available.is_(True))

    if vendor_id:
        q = q.filter(AvailabilitySlot.vendor_id == vendor_id)

    if service_id:
        service = session.get(Service, service_id)
        if service is None:
            return []
        q = q.filter(
            AvailabilitySlot.vendor_id == service.vendor_id,
            or_(AvailabilitySlot.service_id.is_(None), AvailabilitySlot.service_id == service.id),
        )

    limit = max(1, min(limit, SLOT_PAGE_SIZE))
    return (
        q.order_by(AvailabilitySlot.slot_date.asc(), AvailabilitySlot.start_time.asc())
        .limit(limit)
        .all()
    )


def create_slot(
    session,
    vendor_id: int,
    slot_date: date,
    start_time: time,
    end_time: time,
    service_id: int | None = None,
) -> AvailabilitySlot:
    """Insert an available slot. Overlapping slots for one vendor are allowed."""
    if start_time.tzinfo is not None or end_time.tzinfo is not None:
        raise ValidationError("start_time and end_time must not carry a UTC offset")
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")

    if session.get(Vendor, vendor_id) is None:
        raise NotFound("Vendor profile not found")

    if service_id is not None:
        service = session.get(Service, service_id)
        if service is None:
            raise NotFound("Service not found")
        if service.vendor_id != vendor_id:
            raise ServiceVendorMismatch("Service does not belong to this vendor")

    slot = AvailabilitySlot(
        vendor_id=vendor_id,
        service_id=service_id,
        slot_date=slot_date,
        start_time=start_time,
        end_time=end_time,
        is_available=True,
    )
    session.add(slot)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to create slot for vendor %s", vendor_id)
        raise TransactionAborted("Failed to create availability slot") from exc

    logger.info("Slot %s created for vendor %s on %s", slot.id, vendor_id, slot_date)
    return slot


def delete_slot(session, slot_id: int, vendor_id: int) -> None:
    slot = session.query(AvailabilitySlot).filter_by(id=slot_id, vendor_id=vendor_id).first()
    if slot is None:
        raise NotFound("Slot not found or you do not have permission to delete it")

    live = (
        session.query(func.count(Booking.id))
        .filter(Booking.slot_id == slot_id, Booking.status.notin_(RELEASED_STATUSES))
        .scalar()
    )
    if live:
        raise HasActiveBookings()

    try:
        # closed bookings keep their history but lose the reference
        session.execute(
            update(Booking)
            .where(Booking.slot_id == slot_id, Booking.status.in_(RELEASED_STATUSES))
            .values(slot_id=None)
            .execution_options(synchronize_session=False)
        )
        # a claim that slipped in after the count above leaves the slot unavailable
        result = session.execute(
            delete(AvailabilitySlot)
            .where(
                AvailabilitySlot.id == slot_id,
                AvailabilitySlot.vendor_id == vendor_id,
                AvailabilitySlot.is_available.is_(True),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise HasActiveBookings()
        session.commit()
    except HasActiveBookings:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to delete slot %s", slot_id)
        raise TransactionAborted("Failed to delete availability slot") from exc

    session.expunge(slot)
    logger.info("Slot %s deleted by vendor %s", slot_id, vendor_id)


def claim_slot(session, slot_id: int) -> None:
    """Mark the slot unavailable, or raise ``SlotUnavailable`` if it already is.

    Runs inside the caller's transaction; the caller commits or rolls back.
    """
    result = session.execute(
        update(AvailabilitySlot)
        .where(AvailabilitySlot.id == slot_id, AvailabilitySlot.is_available.is_(True))
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise SlotUnavailable()


def release_slot(session, slot_id: int) -> bool:
    """Mark the slot available again. Returns False if it already was."""
    result = session.execute(
        update(AvailabilitySlot)
        .where(AvailabilitySlot.id == slot_id, AvailabilitySlot.is_available.is_(False))
        .values(is_available=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
