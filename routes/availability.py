from datetime import date, time

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import VENDOR
from security.rbac import vendor_required
from services.access import get_vendor_for_user
from services.slots import create_slot, delete_slot, list_slots
from utils.audit import log_event
from utils.request_data import int_field, json_body
from utils.serializers import slot_to_dict

availability_bp = Blueprint("availability", __name__, url_prefix="/availability")


def _parse_date(value: str):
    # Expect YYYY-MM-DD
    return date.fromisoformat(value)


def _parse_time(value: str):
    # Accept HH:MM or HH:MM:SS; slots are local wall-clock times
    parsed = time.fromisoformat(value)
    if parsed.tzinfo is not None:
        raise ValueError("time must not carry a UTC offset")
    return parsed


# ---------- ANYONE: browse slots ----------
@availability_bp.get("")
def get_slots():
    vendor_id = request.args.get("vendor_id", type=int)
    service_id = request.args.get("service_id", type=int)
    from_date = None
    if request.args.get("from_date"):
        try:
            from_date = _parse_date(request.args["from_date"])
        except ValueError:
            return jsonify(error="Invalid from_date. Use YYYY-MM-DD"), 400

    # Vendors without an explicit vendor_id manage their own slots, booked ones included
    include_booked = False
    user = getattr(g, "user", None)
    if user is not None and user.role == VENDOR and not vendor_id:
        vendor_id = get_vendor_for_user(db.session, user.id).id
        include_booked = True

    slots = list_slots(
        db.session,
        vendor_id=vendor_id,
        service_id=service_id,
        from_date=from_date,
        include_booked=include_booked,
        limit=current_app.config.get("SLOT_PAGE_SIZE", 100),
    )
    return jsonify(slots=[slot_to_dict(s) for s in slots]), 200


# ---------- VENDORS: create slots ----------
@availability_bp.post("")
@vendor_required
def post_slot():
    data = json_body()
    slot_date = data.get("slot_date")
    start_time = data.get("start_time")
    end_time = data.get("end_time")
    service_id = data.get("service_id")

    if not slot_date or not start_time or not end_time:
        return jsonify(error="Missing required fields: slot_date, start_time, end_time"), 400

    try:
        day = _parse_date(slot_date)
        st = _parse_time(start_time)
        et = _parse_time(end_time)
        if service_id is not None:
            service_id = int_field(data, "service_id")
            if service_id is None:
                raise ValueError("service_id")
    except (TypeError, ValueError):
        return jsonify(error="Invalid slot_date, start_time, end_time or service_id"), 400

    slot = create_slot(
        db.session,
        vendor_id=g.vendor.id,
        slot_date=day,
        start_time=st,
        end_time=et,
        service_id=service_id,
    )

    log_event("SLOT_CREATE", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(slot=slot_to_dict(slot)), 201


# ---------- VENDORS: delete slots ----------
@availability_bp.delete("/<int:slot_id>")
@vendor_required
def remove_slot(slot_id: int):
    delete_slot(db.session, slot_id, g.vendor.id)

    log_event("SLOT_DELETE", user_id=g.user.id, entity="slot", entity_id=slot_id)
    return jsonify(message="Slot deleted"), 200
