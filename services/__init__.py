"""Booking/slot lifecycle core.

Every operation takes the SQLAlchemy session it should run in as its first
argument; the HTTP layer passes ``db.session``.
"""
