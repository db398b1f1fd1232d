from datetime import datetime
from models.db import db

CUSTOMER = "customer"
VENDOR = "vendor"
ADMIN = "admin"
ROLES = (CUSTOMER, VENDOR, ADMIN)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # one role per account: customer, vendor or admin
    role = db.Column(db.String(20), nullable=False, default=CUSTOMER)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    vendor = db.relationship("Vendor", back_populates="user", uselist=False)
