from datetime import datetime
from models.db import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    # null for webhook and CLI events
    user_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(80), nullable=False, index=True)  # BOOKING_CREATE, PAYMENT_SUCCESS, ...
    entity = db.Column(db.String(40), nullable=True)  # booking, slot, payment
    entity_id = db.Column(db.String(40), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        # history of one booking/slot/payment
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
    )
