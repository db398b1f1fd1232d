import secrets

from flask import current_app, g, jsonify, request

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = frozenset(("POST", "PUT", "PATCH", "DELETE"))


def set_csrf_cookie(resp):
    resp.set_cookie(
        CSRF_COOKIE,
        secrets.token_urlsafe(32),
        httponly=False,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp


def clear_csrf_cookie(resp):
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp


def csrf_failure():
    """``before_request`` hook: an error response when the check fails, else None."""
    if not current_app.config.get("CSRF_ENABLED", True):
        return None
    if request.method not in UNSAFE_METHODS:
        return None
    if request.path in current_app.config.get("CSRF_EXEMPT_PATHS", ()):
        return None
    # anonymous writes have no session cookie to ride on
    if getattr(g, "user", None) is None:
        return None

    sent = request.headers.get(CSRF_HEADER)
    expected = request.cookies.get(CSRF_COOKIE)
    if sent and expected and secrets.compare_digest(sent, expected):
        return None
    return jsonify(error="CSRF validation failed"), 403
