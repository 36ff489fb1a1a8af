import pytest

from errors import Forbidden, InvalidInput
from permissions import (
    STATUS_PERMISSIONS,
    can_set_status,
    display_status,
    is_terminal,
    resolve_target_status,
    staff_of,
)
from schemas import Actor, OrderStatus, Role


class TestStatusPermissions:

    def test_customer_may_only_cancel(self):
        assert STATUS_PERMISSIONS[Role.CUSTOMER] == frozenset({OrderStatus.CANCELLED})
        for status in OrderStatus:
            assert can_set_status(Role.CUSTOMER, status) == (status == OrderStatus.CANCELLED)

    @pytest.mark.parametrize("role", [Role.OWNER, Role.ADMIN])
    def test_staff_statuses(self, role):
        assert not can_set_status(role, OrderStatus.PLACED)
        assert not can_set_status(role, OrderStatus.CANCELLED)
        for status in ("ACCEPTED", "PREPARING", "READY", "DISPATCHED", "DELIVERED", "REJECTED"):
            assert can_set_status(role, OrderStatus(status))

    def test_resolve_accepts_lowercase(self):
        assert resolve_target_status(Role.CUSTOMER, "cancelled") == OrderStatus.CANCELLED
        assert resolve_target_status(Role.OWNER, " ready ") == OrderStatus.READY

    @pytest.mark.parametrize("value", ["ACCEPTED", "DELIVERED", "NOPE", "PENDING"])
    def test_customer_gets_forbidden_for_anything_else(self, value):
        with pytest.raises(Forbidden):
            resolve_target_status(Role.CUSTOMER, value)

    def test_staff_unknown_status_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            resolve_target_status(Role.ADMIN, "OUT_FOR_DELIVERY")

    @pytest.mark.parametrize("value", ["PLACED", "CANCELLED"])
    def test_staff_known_but_not_permitted(self, value):
        with pytest.raises(Forbidden):
            resolve_target_status(Role.OWNER, value)


class TestStaffOf:

    def test_admin_manages_any_restaurant(self):
        admin = Actor(id="a1", role=Role.ADMIN)
        assert staff_of(admin, {"owner_user_id": "someone"})

    def test_owner_manages_only_own_restaurant(self):
        owner = Actor(id="o1", role=Role.OWNER)
        assert staff_of(owner, {"owner_user_id": "o1"})
        assert not staff_of(owner, {"owner_user_id": "o2"})
        assert not staff_of(owner, {"owner_user_id": None})

    def test_customer_never_staff(self):
        customer = Actor(id="c1", role=Role.CUSTOMER)
        assert not staff_of(customer, {"owner_user_id": "c1"})

    def test_missing_restaurant(self):
        assert not staff_of(Actor(id="a1", role=Role.ADMIN), None)


def test_terminal_statuses():
    assert is_terminal("DELIVERED")
    assert is_terminal("REJECTED")
    assert is_terminal("CANCELLED")
    assert not is_terminal("PLACED")
    assert not is_terminal("DISPATCHED")


@pytest.mark.parametrize("status, shown", [
    ("PLACED", "PENDING"),
    ("ACCEPTED", "CONFIRMED"),
    ("PREPARING", "PREPARING"),
    ("READY", "PREPARING"),
    ("DISPATCHED", "OUT_FOR_DELIVERY"),
    ("DELIVERED", "DELIVERED"),
    ("REJECTED", "CANCELLED"),
    ("CANCELLED", "CANCELLED"),
])
def test_display_status(status, shown):
    assert display_status(status) == shown


def test_requester_may_cancel_whatever_the_role():
    for role in Role:
        assert can_set_status(role, OrderStatus.CANCELLED, requester=True)
        assert resolve_target_status(role, "CANCELLED", requester=True) == OrderStatus.CANCELLED
    assert not can_set_status(Role.CUSTOMER, OrderStatus.ACCEPTED, requester=True)
