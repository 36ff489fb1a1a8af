"""
Order lifecycle: order creation, cart items and status changes.

An order is bound to one restaurant. Its items can only change while the
order is PLACED; after that only its status moves, according to the
permission table in permissions.py. Totals are derived from the item
price snapshots on every read and never stored.
"""

import logging
from typing import Any, Dict, List

from pymongo import ReturnDocument
from pymongo.database import Database

from catalog import DISH, RESTAURANT, find_active_restaurant, find_available_dish
from database import NEWEST_FIRST, create_document, get_document, get_documents, now_utc, serialize, to_object_id
from errors import Forbidden, InvalidInput, NotFound
from permissions import display_status, is_terminal, resolve_target_status, staff_of
from schemas import Actor, Order, OrderStatus, Role

logger = logging.getLogger(__name__)

ORDER = "order"
ORDER_ITEM = "orderitem"
USER = "user"


# ---------------------- Delivery estimate ----------------------
def estimate_delivery_minutes(ux: int, uy: int, rx: int, ry: int) -> int:
    distance = abs(ux - rx) + abs(uy - ry)
    if distance <= 3:
        return 20
    if distance <= 6:
        return 35
    return 50


# ---------------------- Helpers ----------------------
def _load_owned_order(db: Database, actor: Actor, order_id: str) -> Dict[str, Any]:
    order = get_document(db, ORDER, order_id)
    if not order or order.get("user_id") != actor.id:
        raise NotFound("Order not found")
    return order


def _require_placed(order: Dict[str, Any]) -> None:
    if order.get("status") != OrderStatus.PLACED.value:
        raise InvalidInput(f"Order items cannot change once the order is {order.get('status')}")


def _claim_placed(db: Database, order: Dict[str, Any]) -> None:
    """Conditional write on the order, immediately before an item write, that
    only matches while it is still PLACED. A status change committed after
    this point and before the item write is not caught.
    """
    claimed = db[ORDER].find_one_and_update(
        {"_id": order["_id"], "status": OrderStatus.PLACED.value},
        {"$set": {"updated_at": now_utc()}},
    )
    if claimed is None:
        current = db[ORDER].find_one({"_id": order["_id"]}, {"status": 1}) or order
        raise InvalidInput(f"Order items cannot change once the order is {current.get('status')}")


def _serialize_item(doc: Dict[str, Any]) -> Dict[str, Any]:
    item = serialize(doc)
    item["line_total_cents"] = item["quantity"] * item["price_cents_at_order"]
    return item


def _removed(order_id: str, dish_id: str) -> Dict[str, Any]:
    return {"removed": True, "order_id": order_id, "dish_id": dish_id}


def _summarise(db: Database, orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach restaurant_name, total_cents and display_status to order rows."""
    if not orders:
        return []
    order_ids = [str(o["_id"]) for o in orders]
    totals: Dict[str, int] = {oid: 0 for oid in order_ids}
    for item in db[ORDER_ITEM].find({"order_id": {"$in": order_ids}}):
        totals[item["order_id"]] += item["quantity"] * item["price_cents_at_order"]

    restaurant_ids = list({to_object_id(o["restaurant_id"]) for o in orders})
    names = {
        str(r["_id"]): r.get("name")
        for r in db[RESTAURANT].find({"_id": {"$in": restaurant_ids}}, {"name": 1})
    }

    rows = []
    for order in orders:
        row = serialize(order)
        row["restaurant_name"] = names.get(row["restaurant_id"])
        row["total_cents"] = totals[row["id"]]
        row["display_status"] = display_status(row["status"])
        rows.append(row)
    return rows


def _can_view(db: Database, actor: Actor, order: Dict[str, Any]) -> bool:
    if order.get("user_id") == actor.id:
        return True
    if actor.role == Role.CUSTOMER:
        return False
    return staff_of(actor, get_document(db, RESTAURANT, order["restaurant_id"]))


# ---------------------- Orders ----------------------
def create_order(db: Database, actor: Actor, restaurant_id: str) -> Dict[str, Any]:
    if not restaurant_id:
        raise InvalidInput("restaurant_id is required")
    user = get_document(db, USER, actor.id)
    if not user:
        raise NotFound("User not found")
    restaurant = find_active_restaurant(db, restaurant_id)

    estimate = estimate_delivery_minutes(
        user.get("location_x", 0), user.get("location_y", 0),
        restaurant.get("location_x", 0), restaurant.get("location_y", 0),
    )
    model = Order(
        user_id=actor.id,
        restaurant_id=str(restaurant["_id"]),
        status=OrderStatus.PLACED,
        estimated_delivery_min=estimate,
    )
    oid = create_document(db, ORDER, model)
    logger.info("Order %s placed by user %s at restaurant %s (eta %d min)", oid, actor.id, model.restaurant_id, estimate)
    return _summarise(db, [get_document(db, ORDER, oid)])[0]


def list_orders(db: Database, actor: Actor) -> List[Dict[str, Any]]:
    if actor.role == Role.ADMIN:
        filt: Dict[str, Any] = {}
    elif actor.role == Role.OWNER:
        owned = [str(r["_id"]) for r in db[RESTAURANT].find({"owner_user_id": actor.id}, {"_id": 1})]
        filt = {"$or": [{"user_id": actor.id}, {"restaurant_id": {"$in": owned}}]}
    else:
        filt = {"user_id": actor.id}
    return _summarise(db, get_documents(db, ORDER, filt, sort=NEWEST_FIRST))


def get_order_detail(db: Database, actor: Actor, order_id: str) -> Dict[str, Any]:
    order = get_document(db, ORDER, order_id)
    if not order or not _can_view(db, actor, order):
        raise NotFound("Order not found")
    detail = _summarise(db, [order])[0]

    items = get_documents(db, ORDER_ITEM, {"order_id": detail["id"]}, sort=[("created_at", 1), ("_id", 1)])
    dish_ids = [to_object_id(i["dish_id"]) for i in items]
    dish_names = {str(d["_id"]): d.get("name") for d in db[DISH].find({"_id": {"$in": dish_ids}}, {"name": 1})}
    detail["items"] = []
    for doc in items:
        item = _serialize_item(doc)
        item["dish_name"] = dish_names.get(item["dish_id"])
        detail["items"].append(item)
    return detail


def checkout(db: Database, actor: Actor, order_id: str) -> Dict[str, Any]:
    """Confirm a cart is ready to be handed to the restaurant. Status is unchanged."""
    order = _load_owned_order(db, actor, order_id)
    _require_placed(order)
    if db[ORDER_ITEM].count_documents({"order_id": str(order["_id"])}) == 0:
        raise InvalidInput("Cannot check out an empty order")
    return get_order_detail(db, actor, order_id)


# ---------------------- Cart items ----------------------
def add_item(db: Database, actor: Actor, order_id: str, dish_id: str, quantity: int) -> Dict[str, Any]:
    """Add quantity of a dish, merging into an existing item.

    The price snapshot is written only when the item row is created.
    """
    if quantity <= 0:
        raise InvalidInput("quantity must be a positive integer")
    order = _load_owned_order(db, actor, order_id)
    _require_placed(order)
    dish = find_available_dish(db, dish_id)
    if dish.get("restaurant_id") != order["restaurant_id"]:
        raise InvalidInput("dish does not belong to this order restaurant")

    _claim_placed(db, order)
    now = now_utc()
    item = db[ORDER_ITEM].find_one_and_update(
        {"order_id": str(order["_id"]), "dish_id": str(dish["_id"])},
        {
            "$inc": {"quantity": quantity},
            "$set": {"updated_at": now},
            "$setOnInsert": {"price_cents_at_order": dish["price_cents"], "created_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return _serialize_item(item)


def set_item_quantity(db: Database, actor: Actor, order_id: str, dish_id: str, quantity: int) -> Dict[str, Any]:
    """Replace an item's quantity; zero removes the item."""
    if quantity < 0:
        raise InvalidInput("quantity must be zero or a positive integer")
    order = _load_owned_order(db, actor, order_id)
    _claim_placed(db, order)
    key = {"order_id": str(order["_id"]), "dish_id": str(to_object_id(dish_id))}

    if quantity == 0:
        if db[ORDER_ITEM].delete_one(key).deleted_count == 0:
            raise NotFound("Order item not found")
        return _removed(key["order_id"], key["dish_id"])

    item = db[ORDER_ITEM].find_one_and_update(
        key,
        {"$set": {"quantity": quantity, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if item is None:
        raise NotFound("Order item not found")
    return _serialize_item(item)


def remove_item(db: Database, actor: Actor, order_id: str, dish_id: str) -> Dict[str, Any]:
    order = _load_owned_order(db, actor, order_id)
    _claim_placed(db, order)
    key = {"order_id": str(order["_id"]), "dish_id": str(to_object_id(dish_id))}
    if db[ORDER_ITEM].delete_one(key).deleted_count == 0:
        raise NotFound("Order item not found")
    return _removed(key["order_id"], key["dish_id"])


# ---------------------- Status ----------------------
def change_status(db: Database, actor: Actor, order_id: str, status: Any) -> Dict[str, Any]:
    order = get_document(db, ORDER, order_id)
    requester = order is not None and order.get("user_id") == actor.id
    target = resolve_target_status(actor.role, status, requester)
    if not order:
        raise NotFound("Order not found")

    if actor.role == Role.CUSTOMER or (requester and target == OrderStatus.CANCELLED):
        if not requester:
            raise NotFound("Order not found")
    elif not staff_of(actor, get_document(db, RESTAURANT, order["restaurant_id"])):
        raise Forbidden("Not staff of this order's restaurant")

    current = order["status"]
    if is_terminal(current):
        raise InvalidInput(f"Order is already {current}")

    # conditional on the status we checked, so a concurrent change is not overwritten
    updated = db[ORDER].find_one_and_update(
        {"_id": order["_id"], "status": current},
        {"$set": {"status": target.value, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise InvalidInput("Order status changed concurrently, reload the order")
    logger.info("Order %s: %s -> %s by %s %s", order_id, current, target.value, actor.role.value, actor.id)
    return _summarise(db, [updated])[0]
