from datetime import datetime
from models.db import db

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
COMPLETED = "completed"
CANCELLED = "cancelled"

BOOKING_STATUSES = (PENDING, ACCEPTED, REJECTED, COMPLETED, CANCELLED)

# statuses that hold a claim on their slot
ACTIVE_STATUSES = (PENDING, ACCEPTED)

# statuses that gave their slot back
RELEASED_STATUSES = (REJECTED, CANCELLED)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    # current claim only; cleared when a vendor deletes a slot that only closed bookings point at
    slot_id = db.Column(
        db.Integer,
        db.ForeignKey("availability_slots.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status = db.Column(db.String(20), nullable=False, default=PENDING)

    booking_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    customer = db.relationship("User")
    service = db.relationship("Service")
    slot = db.relationship("AvailabilitySlot")

    __table_args__ = (
        # Hard business-rule: one live booking per slot (history rows are allowed)
        db.Index(
            "uq_bookings_active_slot",
            "slot_id",
            unique=True,
            sqlite_where=db.text("status IN ('pending', 'accepted')"),
            postgresql_where=db.text("status IN ('pending', 'accepted')"),
        ),
    )
