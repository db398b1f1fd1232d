from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import ADMIN, CUSTOMER, VENDOR
from security.rbac import require_roles
from services.access import can_view_booking, get_vendor_for_user
from services.bookings import (
    create_booking,
    get_booking,
    list_bookings,
    reschedule_booking,
    update_booking_status,
)
from services.payments import create_payment, get_payment, update_payment_status
from utils.audit import log_event
from utils.auth_context import login_required
from utils.request_data import int_field, json_body
from utils.serializers import booking_to_dict, payment_to_dict

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


# ---------- ANY ROLE: list bookings scoped to the caller ----------
@booking_bp.get("")
@login_required
def get_bookings():
    status = request.args.get("status")
    limit = request.args.get("limit", type=int)
    limit = min(limit or 50, current_app.config.get("BOOKING_LIST_MAX", 200))

    customer_id = None
    vendor_id = None
    if g.user.role == CUSTOMER:
        customer_id = g.user.id
    elif g.user.role == VENDOR:
        vendor_id = get_vendor_for_user(db.session, g.user.id).id
    else:
        customer_id = request.args.get("customer_id", type=int)
        vendor_id = request.args.get("vendor_id", type=int)

    rows = list_bookings(db.session, customer_id=customer_id, vendor_id=vendor_id, status=status, limit=limit)
    return jsonify(bookings=[booking_to_dict(b) for b in rows]), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def get_one_booking(booking_id: int):
    booking = get_booking(db.session, booking_id)
    if not can_view_booking(db.session, booking, g.user.id, g.user.role):
        return jsonify(error="Forbidden"), 403
    return jsonify(booking=booking_to_dict(booking)), 200


# ---------- CUSTOMERS: book a slot ----------
@booking_bp.post("")
@require_roles(CUSTOMER)
def post_booking():
    data = json_body()
    service_id = int_field(data, "service_id")
    slot_id = int_field(data, "slot_id")
    if not service_id or not slot_id:
        return jsonify(error="Missing required fields: service_id, slot_id"), 400

    booking = create_booking(
        db.session,
        customer_id=g.user.id,
        service_id=service_id,
        slot_id=slot_id,
        payment_method=data.get("payment_method"),
        currency=current_app.config.get("PAYMENT_CURRENCY", "USD"),
    )

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"slot_id": slot_id, "service_id": service_id})
    return jsonify(booking=booking_to_dict(booking)), 201


# ---------- ANY ROLE: move a booking through its status machine ----------
@booking_bp.patch("/<int:booking_id>/status")
@login_required
def patch_status(booking_id: int):
    data = json_body()
    status = data.get("status")
    if not status or not isinstance(status, str):
        return jsonify(error="Missing or invalid status"), 400

    booking = update_booking_status(
        db.session,
        booking_id=booking_id,
        new_status=status,
        acting_user_id=g.user.id,
        acting_role=g.user.role,
    )

    log_event("BOOKING_STATUS_UPDATE", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"status": status})
    return jsonify(booking=booking_to_dict(booking)), 200


# ---------- CUSTOMERS: reschedule ----------
@booking_bp.post("/<int:booking_id>/reschedule")
@require_roles(CUSTOMER)
def post_reschedule(booking_id: int):
    data = json_body()
    new_slot_id = int_field(data, "new_slot_id")
    if not new_slot_id:
        return jsonify(error="Missing required field: new_slot_id"), 400

    booking = reschedule_booking(db.session, booking_id, new_slot_id, customer_id=g.user.id)

    log_event("BOOKING_RESCHEDULE", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"new_slot_id": new_slot_id})
    return jsonify(booking=booking_to_dict(booking)), 200


# ---------- Payment record for a booking ----------
@booking_bp.get("/<int:booking_id>/payment")
@login_required
def get_booking_payment(booking_id: int):
    booking = get_booking(db.session, booking_id)
    if not can_view_booking(db.session, booking, g.user.id, g.user.role):
        return jsonify(error="Forbidden"), 403
    return jsonify(payment=payment_to_dict(get_payment(db.session, booking_id))), 200


@booking_bp.post("/<int:booking_id>/payment")
@require_roles(CUSTOMER)
def post_booking_payment(booking_id: int):
    data = json_body()
    payment = create_payment(
        db.session,
        booking_id,
        method=data.get("payment_method") or "card",
        currency=current_app.config.get("PAYMENT_CURRENCY", "USD"),
        acting_user_id=g.user.id,
        acting_role=g.user.role,
    )

    log_event("PAYMENT_CREATE", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"booking_id": booking_id})
    return jsonify(payment=payment_to_dict(payment)), 201


@booking_bp.patch("/<int:booking_id>/payment")
@require_roles(CUSTOMER, ADMIN)
def patch_booking_payment(booking_id: int):
    data = json_body()
    payment_status = data.get("payment_status")
    if not payment_status or not isinstance(payment_status, str):
        return jsonify(error="Missing or invalid payment_status"), 400

    payment = update_payment_status(
        db.session,
        booking_id,
        payment_status,
        acting_user_id=g.user.id,
        acting_role=g.user.role,
    )
    booking = get_booking(db.session, booking_id)

    log_event("PAYMENT_STATUS_UPDATE", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"booking_id": booking_id, "status": payment_status})
    return jsonify(payment=payment_to_dict(payment), booking=booking_to_dict(booking)), 200
