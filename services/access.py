from models.booking import Booking
from models.user import ADMIN, CUSTOMER, ROLES
from models.vendor import Vendor
from services.errors import Forbidden, NotFound, ValidationError


def get_vendor_for_user(session, user_id: int) -> Vendor:
    vendor = session.query(Vendor).filter_by(user_id=user_id).first()
    if vendor is None:
        raise NotFound("Vendor profile not found")
    return vendor


def ensure_can_act(session, booking: Booking, user_id: int, role: str) -> None:
    """Raise ``Forbidden`` unless the actor may mutate ``booking``.

    Customers act on their own bookings, vendors on bookings for their own
    services (checked against the vendor row's ``user_id``), admins on any.
    """
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")

    if role == ADMIN:
        return

    if role == CUSTOMER:
        if booking.customer_id != user_id:
            raise Forbidden("You can only update your own bookings")
        return

    vendor = session.get(Vendor, booking.service.vendor_id)
    if vendor is None:
        raise NotFound("Vendor profile not found")
    if vendor.user_id != user_id:
        raise Forbidden("You can only update bookings for your services")


def can_view_booking(session, booking: Booking, user_id: int, role: str) -> bool:
    try:
        ensure_can_act(session, booking, user_id, role)
    except (Forbidden, NotFound, ValidationError):
        return False
    return True
