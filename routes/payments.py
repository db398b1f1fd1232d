from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import stripe
from flask import Blueprint, jsonify, current_app, g

from models import db
from models.booking import PENDING
from models.payment import INITIATED
from models.user import CUSTOMER
from security.rbac import require_roles
from services.bookings import get_booking
from services.errors import NotFound
from services.payments import attach_checkout_session, create_payment, get_payment
from utils.audit import log_event
from utils.request_data import int_field, json_body

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")

def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    return urlunparse(parts._replace(query=urlencode(query)))


@payments_bp.post("/checkout")
@require_roles(CUSTOMER)
def start_checkout():
    secret_key = current_app.config.get("STRIPE_SECRET_KEY")
    success_url = current_app.config.get("STRIPE_SUCCESS_URL")
    cancel_url = current_app.config.get("STRIPE_CANCEL_URL")
    if not secret_key:
        return jsonify(error="Stripe secret key missing (STRIPE_SECRET_KEY)"), 500
    if not success_url or not cancel_url:
        return jsonify(error="Stripe success/cancel URLs not configured"), 500

    booking_id = int_field(json_body(), "booking_id")
    if not booking_id:
        return jsonify(error="booking_id required"), 400

    booking = get_booking(db.session, booking_id)
    if booking.customer_id != g.user.id:
        return jsonify(error="Booking not found"), 404
    if booking.status != PENDING:
        return jsonify(error="Only pending bookings can be paid"), 400

    try:
        payment = get_payment(db.session, booking.id)
    except NotFound:
        payment = create_payment(
            db.session,
            booking.id,
            method="card",
            provider="STRIPE",
            currency=current_app.config.get("PAYMENT_CURRENCY", "USD"),
        )
    if payment.status != INITIATED:
        return jsonify(error=f"Payment already {payment.status}"), 409

    # Stripe expects the smallest currency unit
    unit_amount = int(round(float(payment.amount) * 100))

    stripe.api_key = secret_key
    checkout = stripe.checkout.Session.create(
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": payment.currency.lower(),
                "product_data": {"name": f"{booking.service.title} (booking #{booking.id})"},
                "unit_amount": unit_amount,
            },
            "quantity": 1,
        }],
        success_url=_append_query(success_url, {"booking_id": str(booking.id)}),
        cancel_url=_append_query(cancel_url, {"booking_id": str(booking.id)}),
        metadata={
            "booking_id": str(booking.id),
            "payment_id": str(payment.id),
            "user_id": str(g.user.id),
        },
    )

    attach_checkout_session(db.session, payment, checkout["id"])

    log_event("PAYMENT_SESSION_CREATED", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"stripe_session_id": checkout["id"]})
    return jsonify(checkout_url=checkout["url"]), 200
