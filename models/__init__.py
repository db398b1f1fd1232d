from .db import db
from .user import User
from .vendor import Vendor
from .service import Service
from .availability_slot import AvailabilitySlot
from .booking import Booking
from .payment import Payment
from .login_session import LoginSession
from .audit_log import AuditLog
