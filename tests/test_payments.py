from datetime import datetime, timedelta

import pytest

from models import AvailabilitySlot, Booking, Payment
from models.booking import ACCEPTED, CANCELLED, COMPLETED, PENDING, REJECTED
from models.payment import FAILED, INITIATED, SUCCESS
from services.bookings import create_booking, get_booking, update_booking_status
from services.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from services.payments import (
    attach_checkout_session,
    create_payment,
    expire_stale_payments,
    find_payment_by_checkout_session,
    get_payment,
    update_payment_status,
)


def _available(session, slot_id):
    session.expire_all()
    return session.get(AvailabilitySlot, slot_id).is_available


@pytest.fixture
def paid_booking(session, world):
    return create_booking(session, world.customer.id, world.service.id, world.slot.id, payment_method="card")


def test_success_accepts_booking(session, world, paid_booking):
    payment = update_payment_status(session, paid_booking.id, SUCCESS,
                                    acting_user_id=world.customer.id, acting_role="customer")

    assert payment.status == SUCCESS
    assert get_booking(session, paid_booking.id).status == ACCEPTED
    assert _available(session, world.slot.id) is False


def test_failure_cancels_booking_and_frees_slot(session, world, paid_booking):
    update_payment_status(session, paid_booking.id, FAILED,
                          acting_user_id=world.customer.id, acting_role="customer")

    assert get_booking(session, paid_booking.id).status == CANCELLED
    assert get_payment(session, paid_booking.id).status == FAILED
    assert _available(session, world.slot.id) is True


def test_repeating_an_outcome_is_a_noop(session, world, paid_booking):
    update_payment_status(session, paid_booking.id, SUCCESS)
    again = update_payment_status(session, paid_booking.id, SUCCESS)

    assert again.status == SUCCESS
    assert get_booking(session, paid_booking.id).status == ACCEPTED


def test_outcome_cannot_be_reversed(session, world, paid_booking):
    update_payment_status(session, paid_booking.id, SUCCESS)
    with pytest.raises(InvalidTransition):
        update_payment_status(session, paid_booking.id, FAILED)
    assert get_booking(session, paid_booking.id).status == ACCEPTED


def test_success_after_vendor_accepted(session, world, paid_booking):
    update_booking_status(session, paid_booking.id, ACCEPTED, world.vendor_user.id, "vendor")
    update_payment_status(session, paid_booking.id, SUCCESS)
    assert get_booking(session, paid_booking.id).status == ACCEPTED


def test_success_for_rejected_booking(session, world, paid_booking):
    update_booking_status(session, paid_booking.id, REJECTED, world.vendor_user.id, "vendor")
    with pytest.raises(InvalidTransition):
        update_payment_status(session, paid_booking.id, SUCCESS)
    assert get_payment(session, paid_booking.id).status == INITIATED


def test_failure_for_rejected_booking_only_touches_payment(session, world, paid_booking):
    update_booking_status(session, paid_booking.id, REJECTED, world.vendor_user.id, "vendor")
    update_payment_status(session, paid_booking.id, FAILED)

    assert get_payment(session, paid_booking.id).status == FAILED
    assert get_booking(session, paid_booking.id).status == REJECTED


def test_failure_for_completed_booking(session, world, paid_booking):
    update_booking_status(session, paid_booking.id, ACCEPTED, world.vendor_user.id, "vendor")
    update_booking_status(session, paid_booking.id, COMPLETED, world.vendor_user.id, "vendor")
    with pytest.raises(InvalidTransition):
        update_payment_status(session, paid_booking.id, FAILED)


def test_vendor_cannot_report_outcome(session, world, paid_booking):
    with pytest.raises(Forbidden):
        update_payment_status(session, paid_booking.id, SUCCESS,
                              acting_user_id=world.vendor_user.id, acting_role="vendor")


def test_other_customer_cannot_report_outcome(session, world, paid_booking):
    with pytest.raises(Forbidden):
        update_payment_status(session, paid_booking.id, FAILED,
                              acting_user_id=world.other_customer.id, acting_role="customer")
    assert get_booking(session, paid_booking.id).status == PENDING


def test_unknown_payment_status(session, world, paid_booking):
    with pytest.raises(ValidationError):
        update_payment_status(session, paid_booking.id, "refunded")


def test_outcome_without_payment(session, world):
    booking = create_booking(session, world.customer.id, world.service.id, world.slot.id)
    with pytest.raises(NotFound):
        update_payment_status(session, booking.id, SUCCESS)


def test_create_payment_later(session, world):
    booking = create_booking(session, world.customer.id, world.service.id, world.slot.id)
    payment = create_payment(session, booking.id, method="wallet",
                             acting_user_id=world.customer.id, acting_role="customer")

    assert payment.status == INITIATED
    assert payment.method == "wallet"
    assert payment.amount == 40.0
    with pytest.raises(InvalidTransition):
        create_payment(session, booking.id)


def test_create_payment_for_cancelled_booking(session, world):
    booking = create_booking(session, world.customer.id, world.service.id, world.slot.id)
    update_booking_status(session, booking.id, CANCELLED, world.customer.id, "customer")
    with pytest.raises(InvalidTransition):
        create_payment(session, booking.id)


def test_create_payment_bad_method(session, world):
    booking = create_booking(session, world.customer.id, world.service.id, world.slot.id)
    with pytest.raises(ValidationError):
        create_payment(session, booking.id, method="barter")
    assert session.query(Payment).count() == 0


def test_checkout_session_lookup(session, world, paid_booking):
    payment = get_payment(session, paid_booking.id)
    attach_checkout_session(session, payment, "cs_test_123")

    found = find_payment_by_checkout_session(session, "cs_test_123")
    assert found.id == payment.id
    assert found.provider == "STRIPE"
    assert find_payment_by_checkout_session(session, "cs_missing") is None


def test_expire_stale_payments(session, world, paid_booking):
    fresh = create_booking(session, world.other_customer.id, world.service.id, world.other_slot.id,
                           payment_method="cash")
    stale = get_payment(session, paid_booking.id)
    stale.created_at = datetime.utcnow() - timedelta(hours=2)
    session.commit()

    assert expire_stale_payments(session, 30) == 1

    assert get_booking(session, paid_booking.id).status == CANCELLED
    assert _available(session, world.slot.id) is True
    assert get_booking(session, fresh.id).status == PENDING
    assert get_payment(session, fresh.id).status == INITIATED


def test_expire_skips_bookings_that_cannot_fail(session, world, paid_booking):
    update_booking_status(session, paid_booking.id, ACCEPTED, world.vendor_user.id, "vendor")
    update_booking_status(session, paid_booking.id, COMPLETED, world.vendor_user.id, "vendor")
    stale = get_payment(session, paid_booking.id)
    stale.created_at = datetime.utcnow() - timedelta(hours=2)
    session.commit()

    assert expire_stale_payments(session, 30) == 0
    assert session.get(Booking, paid_booking.id).status == COMPLETED
