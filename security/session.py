# cookie holds a random token; only its sha256 digest is stored
import hashlib
import secrets
from datetime import datetime, timedelta

from flask import current_app, request

from models import db
from models.login_session import LoginSession


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "servicebook_session")


def _lifetime() -> int:
    return current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)


def _is_live(sess: LoginSession, now: datetime) -> bool:
    if sess.revoked or sess.expires_at <= now:
        return False
    idle = timedelta(seconds=current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200))
    return (sess.last_seen_at or sess.created_at) + idle > now


def start_session(resp, user_id: int) -> int:
    """Open a session for ``user_id`` and set its cookie on ``resp``.

    Returns how many older sessions of the user were revoked.
    """
    revoked = (
        LoginSession.query
        .filter_by(user_id=user_id, revoked=False)
        .update({"revoked": True}, synchronize_session=False)
    )

    token = secrets.token_urlsafe(32)
    now = datetime.utcnow()
    db.session.add(LoginSession(
        user_id=user_id,
        token_hash=_digest(token),
        created_at=now,
        last_seen_at=now,
        expires_at=now + timedelta(seconds=_lifetime()),
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        user_agent=(request.headers.get("User-Agent") or "")[:255] or None,
    ))
    db.session.commit()

    resp.set_cookie(
        cookie_name(),
        token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=_lifetime(),
        path="/",
    )
    return revoked


def current_session():
    """The live session named by the request cookie, touched for idle tracking."""
    token = request.cookies.get(cookie_name())
    if not token:
        return None

    sess = LoginSession.query.filter_by(token_hash=_digest(token)).first()
    now = datetime.utcnow()
    if sess is None or not _is_live(sess, now):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def end_session(resp) -> bool:
    """Revoke the request's session and clear its cookie on ``resp``."""
    token = request.cookies.get(cookie_name())
    resp.delete_cookie(cookie_name(), path="/")
    if not token:
        return False

    updated = (
        LoginSession.query
        .filter_by(token_hash=_digest(token), revoked=False)
        .update({"revoked": True}, synchronize_session=False)
    )
    db.session.commit()
    return updated == 1
