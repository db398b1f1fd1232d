from datetime import date, time, timedelta
from types import SimpleNamespace

import pytest

from app import create_app
from config import TestConfig
from models import db, AvailabilitySlot, Service, User, Vendor
from models.user import ADMIN, CUSTOMER, VENDOR
from security.password import hash_password

PASSWORD = "correct-horse-battery"


@pytest.fixture
def app(tmp_path):
    # a file database so separate connections (and threads) see each other's commits
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "servicebook-test.db")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def session(app):
    with app.app_context():
        yield db.session


class Factory:
    def __init__(self, session):
        self.session = session
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def user(self, role=CUSTOMER, email=None, name=None):
        n = self._next()
        user = User(
            email=email or f"{role}{n}@example.com",
            name=name or f"{role.title()} {n}",
            role=role,
            password_hash=hash_password(PASSWORD),
        )
        self.session.add(user)
        self.session.commit()
        return user

    def vendor(self, business_name=None):
        user = self.user(role=VENDOR)
        vendor = Vendor(user_id=user.id, business_name=business_name or f"Studio {user.id}")
        self.session.add(vendor)
        self.session.commit()
        return vendor

    def service(self, vendor, title="Haircut", price=25.0):
        service = Service(vendor_id=vendor.id, title=title, price=price)
        self.session.add(service)
        self.session.commit()
        return service

    def slot(self, vendor, days_ahead=1, start=time(10, 0), end=time(11, 0), service=None,
             is_available=True):
        slot = AvailabilitySlot(
            vendor_id=vendor.id,
            service_id=service.id if service else None,
            slot_date=date.today() + timedelta(days=days_ahead),
            start_time=start,
            end_time=end,
            is_available=is_available,
        )
        self.session.add(slot)
        self.session.commit()
        return slot


@pytest.fixture
def factory(session):
    return Factory(session)


@pytest.fixture
def world(factory):
    """One vendor with a service and two open slots, two customers, one admin."""
    vendor = factory.vendor(business_name="Glow Salon")
    service = factory.service(vendor, title="Haircut", price=40.0)
    return SimpleNamespace(
        vendor=vendor,
        vendor_user=vendor.user,
        service=service,
        slot=factory.slot(vendor, days_ahead=1),
        other_slot=factory.slot(vendor, days_ahead=2),
        customer=factory.user(CUSTOMER),
        other_customer=factory.user(CUSTOMER),
        admin=factory.user(ADMIN),
    )


@pytest.fixture
def seeded(app):
    """Plain ids for HTTP tests, created without holding an app context open."""
    with app.app_context():
        f = Factory(db.session)
        vendor = f.vendor(business_name="Glow Salon")
        other_vendor = f.vendor(business_name="Other Place")
        service = f.service(vendor, title="Haircut", price=40.0)
        ids = SimpleNamespace(
            vendor_id=vendor.id,
            vendor_email=vendor.user.email,
            other_vendor_id=other_vendor.id,
            other_vendor_email=other_vendor.user.email,
            service_id=service.id,
            slot_id=f.slot(vendor, days_ahead=1).id,
            other_slot_id=f.slot(vendor, days_ahead=2).id,
            foreign_slot_id=f.slot(other_vendor, days_ahead=1).id,
        )
        customer = f.user(CUSTOMER)
        other_customer = f.user(CUSTOMER)
        admin = f.user(ADMIN)
        ids.customer_id = customer.id
        ids.customer_email = customer.email
        ids.other_customer_email = other_customer.email
        ids.admin_email = admin.email
    return ids


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login():
    def _login(client, email, password=PASSWORD):
        resp = client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp
    return _login
