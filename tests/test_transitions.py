import pytest

from models.booking import ACCEPTED, CANCELLED, COMPLETED, PENDING, REJECTED
from models.user import ADMIN, CUSTOMER, VENDOR
from services.errors import Forbidden, InvalidTransition, ValidationError
from services.transitions import check_transition


@pytest.mark.parametrize(
    "current,new,releases",
    [
        (PENDING, ACCEPTED, False),
        (PENDING, REJECTED, True),
        (PENDING, CANCELLED, True),
        (ACCEPTED, COMPLETED, False),
        (ACCEPTED, CANCELLED, True),
    ],
)
def test_vendor_allowed_transitions(current, new, releases):
    assert check_transition(current, new, VENDOR) is releases


@pytest.mark.parametrize("current,new", [(PENDING, ACCEPTED), (ACCEPTED, COMPLETED), (PENDING, REJECTED)])
def test_admin_can_manage_like_a_vendor(current, new):
    check_transition(current, new, ADMIN)


@pytest.mark.parametrize("current", [PENDING, ACCEPTED])
def test_customer_can_cancel_live_bookings(current):
    assert check_transition(current, CANCELLED, CUSTOMER) is True


@pytest.mark.parametrize("new", [ACCEPTED, REJECTED, COMPLETED])
def test_customer_cannot_manage(new):
    with pytest.raises(Forbidden):
        check_transition(PENDING, new, CUSTOMER)


@pytest.mark.parametrize(
    "current,new",
    [
        (ACCEPTED, ACCEPTED),
        (REJECTED, ACCEPTED),
        (ACCEPTED, REJECTED),
        (PENDING, COMPLETED),
        (COMPLETED, COMPLETED),
        (CANCELLED, COMPLETED),
        (COMPLETED, CANCELLED),
        (REJECTED, CANCELLED),
        (CANCELLED, CANCELLED),
        (ACCEPTED, PENDING),
        (CANCELLED, PENDING),
    ],
)
def test_disallowed_transitions(current, new):
    with pytest.raises(InvalidTransition):
        check_transition(current, new, VENDOR)


def test_cancel_completed_message():
    with pytest.raises(InvalidTransition) as exc:
        check_transition(COMPLETED, CANCELLED, CUSTOMER)
    assert exc.value.message == "Cannot cancel a completed booking"


def test_cancel_twice_message():
    with pytest.raises(InvalidTransition) as exc:
        check_transition(CANCELLED, CANCELLED, CUSTOMER)
    assert exc.value.message == "Booking is already cancelled"


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        check_transition(PENDING, "archived", VENDOR)


def test_unknown_role_is_a_validation_error():
    with pytest.raises(ValidationError):
        check_transition(PENDING, ACCEPTED, "guest")


def test_error_status_codes():
    assert Forbidden().status_code == 403
    assert InvalidTransition().status_code == 409
    assert ValidationError().status_code == 400
