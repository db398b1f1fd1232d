"""JSON shapes returned by the API."""


def _time(value):
    return value.isoformat(timespec="seconds") if value else None


def _date(value):
    return value.isoformat() if value else None


def slot_to_dict(slot):
    return {
        "id": slot.id,
        "vendor_id": slot.vendor_id,
        "service_id": slot.service_id,
        "slot_date": _date(slot.slot_date),
        "start_time": _time(slot.start_time),
        "end_time": _time(slot.end_time),
        "is_available": slot.is_available,
    }


def booking_to_dict(booking):
    # display fields are joined at read time; slot may be gone for closed bookings
    customer = booking.customer
    service = booking.service
    vendor = service.vendor if service else None
    slot = booking.slot
    return {
        "id": booking.id,
        "customer_id": booking.customer_id,
        "service_id": booking.service_id,
        "slot_id": booking.slot_id,
        "status": booking.status,
        "booking_date": booking.booking_date.isoformat(),
        "customer_name": customer.name if customer else None,
        "customer_email": customer.email if customer else None,
        "service_title": service.title if service else None,
        "service_price": float(service.price) if service and service.price is not None else None,
        "vendor_id": service.vendor_id if service else None,
        "vendor_name": vendor.business_name if vendor else None,
        "slot_date": _date(slot.slot_date) if slot else None,
        "start_time": _time(slot.start_time) if slot else None,
        "end_time": _time(slot.end_time) if slot else None,
    }


def payment_to_dict(payment):
    return {
        "id": payment.id,
        "booking_id": payment.booking_id,
        "amount": float(payment.amount),
        "currency": payment.currency,
        "method": payment.method,
        "provider": payment.provider,
        "status": payment.status,
        "created_at": payment.created_at.isoformat(),
        "updated_at": payment.updated_at.isoformat(),
    }
