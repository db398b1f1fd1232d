from functools import wraps

from flask import g, jsonify

from models import db
from models.user import VENDOR
from services.access import get_vendor_for_user


def require_roles(*roles: str):
    """Let the view run only for a signed-in user whose role is in ``roles``.

    Usage: @require_roles(CUSTOMER, ADMIN)
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401
            if user.role not in roles:
                return jsonify(error=f"Forbidden: {' or '.join(roles)} only"), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def vendor_required(fn):
    """``require_roles(VENDOR)`` plus the caller's vendor profile in ``g.vendor``."""
    @require_roles(VENDOR)
    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.vendor = get_vendor_for_user(db.session, g.user.id)
        return fn(*args, **kwargs)
    return wrapper
