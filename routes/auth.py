from flask import Blueprint, jsonify, g

from models.user import User
from security.csrf import clear_csrf_cookie, set_csrf_cookie
from security.password import verify_password
from security.session import end_session, start_session
from utils.audit import log_event
from utils.auth_context import login_required
from utils.request_data import json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/login")
def login():
    data = json_body()
    email = data.get("email")
    email = email.strip().lower() if isinstance(email, str) else ""
    password = data.get("password")
    if not isinstance(password, str):
        password = ""

    user = User.query.filter_by(email=email).first()
    if user is None or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    resp = jsonify(message="Login OK", role=user.role)
    revoked = start_session(resp, user.id)
    set_csrf_cookie(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    vendor = g.user.vendor
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        name=g.user.name,
        role=g.user.role,
        vendor_id=vendor.id if vendor else None,
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    resp = jsonify(message="Logged out")
    end_session(resp)
    clear_csrf_cookie(resp)

    log_event("LOGOUT", user_id=g.user.id)
    return resp, 200
