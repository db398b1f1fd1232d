from functools import wraps

from flask import g, jsonify

from models import db
from models.user import User
from security.session import current_session


def load_current_user():
    """Resolve the session cookie into ``g.user``; None for anonymous requests."""
    g.session = current_session()
    g.user = db.session.get(User, g.session.user_id) if g.session else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
