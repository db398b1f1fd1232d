from datetime import datetime
from models.db import db

INITIATED = "initiated"
SUCCESS = "success"
FAILED = "failed"
PAYMENT_STATUSES = (INITIATED, SUCCESS, FAILED)


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)

    provider = db.Column(db.String(20), nullable=False, default="SIMULATED")  # SIMULATED, STRIPE
    method = db.Column(db.String(20), nullable=False, default="card")
    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    currency = db.Column(db.String(10), nullable=False, default="USD")

    status = db.Column(db.String(20), nullable=False, default=INITIATED)
    stripe_session_id = db.Column(db.String(255), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking")
