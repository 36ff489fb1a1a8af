"""
Order status permissions

Which role may move an order into which status, which orders a staff
account may act on, and how server statuses map onto the vocabulary the
web client shows. The client runs its own cosmetic progress timer on top
of display_status; that timer is never fed back into the server.
"""

from typing import Any, Dict, FrozenSet, Mapping, Optional

from errors import Forbidden, InvalidInput
from schemas import Actor, OrderStatus, Role

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
    OrderStatus.CANCELLED,
})

STAFF_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DISPATCHED,
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
})

STATUS_PERMISSIONS: Mapping[Role, FrozenSet[OrderStatus]] = {
    Role.CUSTOMER: frozenset({OrderStatus.CANCELLED}),
    Role.OWNER: STAFF_STATUSES,
    Role.ADMIN: STAFF_STATUSES,
}

DISPLAY_STATUS: Dict[OrderStatus, str] = {
    OrderStatus.PLACED: "PENDING",
    OrderStatus.ACCEPTED: "CONFIRMED",
    OrderStatus.PREPARING: "PREPARING",
    OrderStatus.READY: "PREPARING",
    OrderStatus.DISPATCHED: "OUT_FOR_DELIVERY",
    OrderStatus.DELIVERED: "DELIVERED",
    OrderStatus.REJECTED: "CANCELLED",
    OrderStatus.CANCELLED: "CANCELLED",
}


def is_staff(role: Role) -> bool:
    return role in (Role.OWNER, Role.ADMIN)


def can_set_status(role: Role, status: OrderStatus, requester: bool = False) -> bool:
    """Whoever placed an order may cancel it, whatever their role."""
    if requester and status == OrderStatus.CANCELLED:
        return True
    return status in STATUS_PERMISSIONS.get(role, frozenset())


def is_terminal(status: Any) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def resolve_target_status(role: Role, value: Any, requester: bool = False) -> OrderStatus:
    """Parse a requested status and check the role may set it.

    Customers get Forbidden for anything but CANCELLED, recognised or not.
    Staff get InvalidInput for an unknown status and Forbidden for a known
    one outside their set (PLACED, and CANCELLED unless they placed the order).
    """
    raw = value.strip().upper() if isinstance(value, str) else value
    try:
        target = OrderStatus(raw)
    except ValueError:
        if role == Role.CUSTOMER:
            raise Forbidden("Customers may only cancel orders")
        raise InvalidInput(f"Invalid status: {value!r}")
    if not can_set_status(role, target, requester):
        if role == Role.CUSTOMER:
            raise Forbidden("Customers may only cancel orders")
        raise Forbidden(f"Role {role.value} may not set status {target.value}")
    return target


def staff_of(actor: Actor, restaurant: Optional[Dict[str, Any]]) -> bool:
    """True when the actor may manage the given restaurant."""
    if restaurant is None:
        return False
    if actor.role == Role.ADMIN:
        return True
    if actor.role == Role.OWNER:
        return restaurant.get("owner_user_id") == actor.id
    return False


def display_status(status: Any) -> str:
    return DISPLAY_STATUS[OrderStatus(status)]
