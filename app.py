import logging

from flask import Flask, jsonify
from config import Config
from routes import health_bp, auth_bp, availability_bp, booking_bp, payments_bp, webhook_bp

from models import db
from flask_migrate import Migrate
from services.errors import BookingError
from utils.auth_context import load_current_user
from security.csrf import csrf_failure


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(availability_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.before_request
    def _load_user():
        load_current_user()

    app.before_request(csrf_failure)

    @app.errorhandler(BookingError)
    def _booking_error(err):
        return jsonify(error=err.message), err.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, ROLES, VENDOR
from models.vendor import Vendor
from security.password import hash_password
from services.payments import expire_stale_payments

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("password")
    @click.option("--role", type=click.Choice(ROLES), default="customer", show_default=True)
    @click.option("--name", default=None)
    @click.option("--business-name", default=None, help="Vendor display name (vendors only).")
    def create_user(email, password, role, name, business_name):
        """Create a user account (and its vendor profile for vendors)."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            click.echo("User already exists")
            return

        user = User(email=email, name=name, role=role, password_hash=hash_password(password))
        db.session.add(user)
        db.session.flush()
        if role == VENDOR:
            db.session.add(Vendor(user_id=user.id, business_name=business_name or name))
        db.session.commit()

        click.echo(f"{user.email} created as {role}")

    @app.cli.command("expire-stale-payments")
    @click.option("--minutes", type=int, default=None, help="Age after which an initiated payment fails.")
    def expire_payments(minutes):
        """Fail payments stuck in 'initiated' and release their slots."""
        minutes = minutes or app.config.get("STALE_PAYMENT_MINUTES", 30)
        count = expire_stale_payments(db.session, minutes)
        click.echo(f"Expired {count} payment(s)")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
