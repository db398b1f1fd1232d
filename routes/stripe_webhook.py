import logging

import stripe
from flask import Blueprint, request, jsonify, current_app

from models import db
from models.payment import FAILED, SUCCESS, Payment
from services.errors import BookingError
from services.payments import find_payment_by_checkout_session, update_payment_status
from utils.audit import log_event

logger = logging.getLogger(__name__)

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")

CHECKOUT_OUTCOMES = {
    "checkout.session.completed": SUCCESS,
    "checkout.session.expired": FAILED,
}


def _find_payment(checkout):
    meta = checkout.get("metadata") or {}
    payment_id = meta.get("payment_id")
    if payment_id:
        payment = db.session.get(Payment, int(payment_id))
        if payment:
            return payment
    session_id = checkout.get("id")
    if session_id:
        return find_payment_by_checkout_session(db.session, session_id)
    return None


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(
            request.data, request.headers.get("Stripe-Signature"), endpoint_secret
        )
    except (ValueError, stripe.SignatureVerificationError):
        return jsonify(error="Invalid webhook signature"), 400

    outcome = CHECKOUT_OUTCOMES.get(event.get("type"))
    if outcome is None:
        return jsonify(received=True), 200

    checkout = event["data"]["object"]
    payment = _find_payment(checkout)
    if payment is None:
        logger.warning("Stripe event %s for unknown checkout session %s", event.get("type"), checkout.get("id"))
        return jsonify(received=True), 200

    booking_id = payment.booking_id
    try:
        payment = update_payment_status(db.session, booking_id, outcome)
    except BookingError as err:
        # Acknowledge anyway: Stripe retrying will not change the booking state
        logger.warning("Stripe outcome %s not applied to booking %s: %s", outcome, booking_id, err.message)
        log_event("PAYMENT_OUTCOME_REJECTED", entity="payment", entity_id=payment.id,
                  metadata={"booking_id": booking_id, "outcome": outcome, "reason": err.message})
        return jsonify(received=True), 200

    log_event("PAYMENT_" + outcome.upper(), entity="payment", entity_id=payment.id,
              metadata={"stripe_session_id": checkout.get("id"), "booking_id": booking_id})
    return jsonify(received=True), 200
