"""Payment records and the payment -> booking status coupling.

A payment outcome is applied together with the booking transition it
implies, in one transaction:

    success -> booking accepted
    failed  -> booking cancelled (slot released)
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from models.booking import ACCEPTED, ACTIVE_STATUSES, CANCELLED, COMPLETED, PENDING, Booking
from models.payment import FAILED, INITIATED, PAYMENT_STATUSES, SUCCESS, Payment
from models.service import Service
from models.user import VENDOR
from services.access import ensure_can_act
from services.errors import (
    BookingError,
    Forbidden,
    InvalidTransition,
    NotFound,
    TransactionAborted,
    ValidationError,
)
from services.transitions import apply_transition

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("card", "cash", "wallet")


def new_payment(booking_id: int, service: Service, method: str, provider="SIMULATED", currency="USD") -> Payment:
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {method}")
    return Payment(
        booking_id=booking_id,
        provider=provider,
        method=method,
        amount=service.price or 0,
        currency=currency,
        status=INITIATED,
    )


def _load_booking(session, booking_id: int) -> Booking:
    booking = session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    return booking


def _authorize(session, booking, acting_user_id, acting_role):
    if acting_role is None:
        return
    if acting_role == VENDOR:
        raise Forbidden("Only the customer can report payment outcomes")
    ensure_can_act(session, booking, acting_user_id, acting_role)


def get_payment(session, booking_id: int) -> Payment:
    payment = session.query(Payment).filter_by(booking_id=booking_id).first()
    if payment is None:
        raise NotFound("Payment not found for this booking")
    return payment


def create_payment(session, booking_id: int, method="card", provider="SIMULATED", currency="USD",
                   acting_user_id=None, acting_role=None) -> Payment:
    booking = _load_booking(session, booking_id)
    _authorize(session, booking, acting_user_id, acting_role)

    if booking.status not in ACTIVE_STATUSES:
        raise InvalidTransition(f"Cannot pay for a {booking.status} booking")
    if session.query(Payment).filter_by(booking_id=booking.id).first() is not None:
        raise InvalidTransition("A payment already exists for this booking")

    payment = new_payment(booking.id, booking.service, method, provider=provider, currency=currency)
    session.add(payment)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to create payment for booking %s", booking_id)
        raise TransactionAborted("Failed to create payment") from exc

    logger.info("Payment %s initiated for booking %s via %s", payment.id, booking_id, provider)
    return payment


def attach_checkout_session(session, payment: Payment, stripe_session_id: str) -> Payment:
    payment.provider = "STRIPE"
    payment.stripe_session_id = stripe_session_id
    payment.updated_at = datetime.utcnow()
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise TransactionAborted("Failed to record checkout session") from exc
    return payment


def find_payment_by_checkout_session(session, stripe_session_id: str):
    return session.query(Payment).filter_by(stripe_session_id=stripe_session_id).first()


def update_payment_status(session, booking_id: int, payment_status: str, acting_user_id=None,
                          acting_role=None) -> Payment:
    """Record a payment outcome and drive the booking status from it.

    Reporting the outcome a payment already has is a no-op. ``acting_role``
    is None for trusted callers such as the Stripe webhook.
    """
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Unknown payment status: {payment_status}")

    booking = _load_booking(session, booking_id)
    _authorize(session, booking, acting_user_id, acting_role)
    payment = get_payment(session, booking.id)

    if payment.status == payment_status:
        return payment
    if payment.status != INITIATED:
        raise InvalidTransition(f"Payment is already {payment.status}")

    target = None
    if payment_status == SUCCESS:
        if booking.status == PENDING:
            target = ACCEPTED
        elif booking.status != ACCEPTED:
            raise InvalidTransition(f"Cannot confirm payment for a {booking.status} booking")
    else:
        if booking.status in ACTIVE_STATUSES:
            target = CANCELLED
        elif booking.status == COMPLETED:
            raise InvalidTransition("Cannot fail payment for a completed booking")
        # rejected/cancelled bookings already gave their slot back

    previous = booking.status
    try:
        payment.status = payment_status
        payment.updated_at = datetime.utcnow()
        if target:
            apply_transition(session, booking, target)
        session.commit()
    except InvalidTransition:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Payment update failed for booking %s", booking_id)
        raise TransactionAborted("Failed to update payment status") from exc

    logger.info(
        "Payment %s for booking %s is %s (booking %s -> %s)",
        payment.id, booking_id, payment_status, previous, target or previous,
    )
    return payment


def expire_stale_payments(session, older_than_minutes: int) -> int:
    """Fail payments stuck in ``initiated`` so their slots are released."""
    cutoff = datetime.utcnow() - timedelta(minutes=older_than_minutes)
    stale = (
        session.query(Payment.booking_id)
        .filter(Payment.status == INITIATED, Payment.created_at < cutoff)
        .all()
    )

    expired = 0
    for (booking_id,) in stale:
        try:
            update_payment_status(session, booking_id, FAILED)
        except BookingError as err:
            logger.warning("Could not expire payment for booking %s: %s", booking_id, err.message)
            continue
        expired += 1
    return expired
