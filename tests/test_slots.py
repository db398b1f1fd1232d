from datetime import date, time, timedelta, timezone

import pytest

from models import AvailabilitySlot, Booking
from models.booking import ACCEPTED, CANCELLED, COMPLETED, PENDING, REJECTED
from services.errors import (
    HasActiveBookings,
    NotFound,
    ServiceVendorMismatch,
    SlotUnavailable,
    ValidationError,
)
from services.slots import claim_slot, create_slot, delete_slot, list_slots, release_slot


def _tomorrow():
    return date.today() + timedelta(days=1)


def test_create_slot(session, world):
    slot = create_slot(session, world.vendor.id, _tomorrow(), time(14, 0), time(15, 0))
    assert slot.id is not None
    assert slot.is_available is True
    assert slot.service_id is None


def test_create_slot_scoped_to_service(session, world):
    slot = create_slot(session, world.vendor.id, _tomorrow(), time(14, 0), time(15, 0),
                       service_id=world.service.id)
    assert slot.service_id == world.service.id


@pytest.mark.parametrize("start,end", [(time(15, 0), time(14, 0)), (time(9, 0), time(9, 0))])
def test_create_slot_rejects_bad_range(session, world, start, end):
    with pytest.raises(ValidationError):
        create_slot(session, world.vendor.id, _tomorrow(), start, end)


def test_create_slot_rejects_offset_times(session, world):
    offset = timezone(timedelta(hours=5))
    before = session.query(AvailabilitySlot).count()
    with pytest.raises(ValidationError):
        create_slot(session, world.vendor.id, _tomorrow(), time(10, 0, tzinfo=offset), time(11, 0))
    assert session.query(AvailabilitySlot).count() == before


def test_create_slot_unknown_vendor(session, world):
    with pytest.raises(NotFound):
        create_slot(session, 9999, _tomorrow(), time(9, 0), time(10, 0))


def test_create_slot_with_foreign_service(session, world, factory):
    other = factory.vendor()
    other_service = factory.service(other, title="Massage")
    with pytest.raises(ServiceVendorMismatch):
        create_slot(session, world.vendor.id, _tomorrow(), time(9, 0), time(10, 0),
                    service_id=other_service.id)


def test_overlapping_slots_are_allowed(session, world):
    create_slot(session, world.vendor.id, _tomorrow(), time(9, 0), time(10, 0))
    create_slot(session, world.vendor.id, _tomorrow(), time(9, 30), time(10, 30))
    assert session.query(AvailabilitySlot).filter_by(vendor_id=world.vendor.id).count() == 4


def test_list_slots_hides_past_and_booked(session, world, factory):
    factory.slot(world.vendor, days_ahead=-1)
    factory.slot(world.vendor, days_ahead=3, is_available=False)

    ids = [s.id for s in list_slots(session, vendor_id=world.vendor.id)]
    assert ids == [world.slot.id, world.other_slot.id]


def test_list_slots_include_booked(session, world, factory):
    booked = factory.slot(world.vendor, days_ahead=3, is_available=False)
    ids = [s.id for s in list_slots(session, vendor_id=world.vendor.id, include_booked=True)]
    assert booked.id in ids


def test_list_slots_ordering(session, world, factory):
    late = factory.slot(world.vendor, days_ahead=1, start=time(16, 0), end=time(17, 0))
    early = factory.slot(world.vendor, days_ahead=1, start=time(8, 0), end=time(9, 0))

    ids = [s.id for s in list_slots(session, vendor_id=world.vendor.id)]
    assert ids == [early.id, world.slot.id, late.id, world.other_slot.id]


def test_list_slots_from_date(session, world):
    slots = list_slots(session, vendor_id=world.vendor.id, from_date=date.today() + timedelta(days=2))
    assert [s.id for s in slots] == [world.other_slot.id]


def test_list_slots_from_date_in_past_is_clamped(session, world, factory):
    factory.slot(world.vendor, days_ahead=-3)
    slots = list_slots(session, vendor_id=world.vendor.id, from_date=date.today() - timedelta(days=10))
    assert [s.id for s in slots] == [world.slot.id, world.other_slot.id]


def test_list_slots_by_service(session, world, factory):
    other_service = factory.service(world.vendor, title="Colouring")
    scoped = factory.slot(world.vendor, days_ahead=3, service=world.service)
    factory.slot(world.vendor, days_ahead=4, service=other_service)
    factory.slot(factory.vendor(), days_ahead=1)

    ids = [s.id for s in list_slots(session, service_id=world.service.id)]
    assert ids == [world.slot.id, world.other_slot.id, scoped.id]


def test_list_slots_unknown_service(session, world):
    assert list_slots(session, service_id=9999) == []


def test_claim_then_release(session, world):
    claim_slot(session, world.slot.id)
    session.commit()
    with pytest.raises(SlotUnavailable):
        claim_slot(session, world.slot.id)
    session.rollback()

    assert release_slot(session, world.slot.id) is True
    assert release_slot(session, world.slot.id) is False
    session.commit()
    assert session.get(AvailabilitySlot, world.slot.id).is_available is True


def _book(session, world, status):
    booking = Booking(customer_id=world.customer.id, service_id=world.service.id,
                      slot_id=world.slot.id, status=status)
    session.add(booking)
    if status in (PENDING, ACCEPTED, COMPLETED):
        world.slot.is_available = False
    session.commit()
    return booking


def test_delete_free_slot(session, world):
    slot_id = world.slot.id
    delete_slot(session, slot_id, world.vendor.id)
    assert session.get(AvailabilitySlot, slot_id) is None


def test_delete_slot_of_another_vendor(session, world, factory):
    other = factory.vendor()
    with pytest.raises(NotFound):
        delete_slot(session, world.slot.id, other.id)


def test_delete_missing_slot(session, world):
    with pytest.raises(NotFound):
        delete_slot(session, 9999, world.vendor.id)


@pytest.mark.parametrize("status", [PENDING, ACCEPTED, COMPLETED])
def test_delete_slot_blocked_by_bookings(session, world, status):
    _book(session, world, status)
    with pytest.raises(HasActiveBookings):
        delete_slot(session, world.slot.id, world.vendor.id)
    assert session.get(AvailabilitySlot, world.slot.id) is not None


@pytest.mark.parametrize("status", [REJECTED, CANCELLED])
def test_delete_slot_detaches_closed_bookings(session, world, status):
    booking = _book(session, world, status)
    slot_id = world.slot.id

    delete_slot(session, slot_id, world.vendor.id)

    assert session.get(AvailabilitySlot, slot_id) is None
    booking = session.get(Booking, booking.id)
    assert booking.slot_id is None
    assert booking.status == status


def test_delete_slot_claimed_without_booking_row(session, world):
    # the count sees nothing but the slot is held, e.g. by a claim not yet committed elsewhere
    world.slot.is_available = False
    session.commit()
    with pytest.raises(HasActiveBookings):
        delete_slot(session, world.slot.id, world.vendor.id)
