"""
Catalog store: restaurants and dishes

Read-only lookups used by the order engine, plus the staff-only calls
that create restaurants and dishes and toggle dish price/availability.
"""

from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_document, get_documents, now_utc, serialize, to_object_id
from errors import Forbidden, InvalidInput, NotFound
from permissions import is_staff, staff_of
from schemas import Actor, Dish, Restaurant, Role

RESTAURANT = "restaurant"
DISH = "dish"


def find_active_restaurant(db: Database, restaurant_id: str) -> Dict[str, Any]:
    restaurant = db[RESTAURANT].find_one({"_id": to_object_id(restaurant_id), "is_active": True})
    if not restaurant:
        raise NotFound("Restaurant not found")
    return restaurant


def find_dish(db: Database, dish_id: str) -> Dict[str, Any]:
    dish = get_document(db, DISH, dish_id)
    if not dish:
        raise NotFound("Dish not found")
    return dish


def find_available_dish(db: Database, dish_id: str) -> Dict[str, Any]:
    dish = find_dish(db, dish_id)
    if not dish.get("is_available", False):
        raise InvalidInput("Dish is not available")
    return dish


def list_restaurants(db: Database) -> List[Dict[str, Any]]:
    docs = get_documents(db, RESTAURANT, {"is_active": True}, sort=[("_id", 1)])
    return [serialize(d) for d in docs]


def get_restaurant(db: Database, restaurant_id: str) -> Dict[str, Any]:
    return serialize(find_active_restaurant(db, restaurant_id))


def list_dishes(db: Database, restaurant_id: str) -> List[Dict[str, Any]]:
    find_active_restaurant(db, restaurant_id)
    docs = get_documents(db, DISH, {"restaurant_id": restaurant_id}, sort=[("_id", 1)])
    return [serialize(d) for d in docs]


def create_restaurant(
    db: Database,
    actor: Actor,
    name: str,
    cuisine: Optional[str] = None,
    address: Optional[str] = None,
    location_x: int = 0,
    location_y: int = 0,
    owner_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    if not is_staff(actor.role):
        raise Forbidden("Only restaurant staff can create restaurants")
    # owners always own what they create; admins may assign an owner
    if actor.role == Role.OWNER:
        owner_user_id = actor.id
    model = Restaurant(
        name=name,
        cuisine=cuisine,
        address=address,
        location_x=location_x,
        location_y=location_y,
        owner_user_id=owner_user_id,
    )
    rid = create_document(db, RESTAURANT, model)
    return serialize(get_document(db, RESTAURANT, rid))


def add_dish(
    db: Database,
    actor: Actor,
    restaurant_id: str,
    name: str,
    price_cents: int,
    description: Optional[str] = None,
    is_available: bool = True,
) -> Dict[str, Any]:
    restaurant = get_document(db, RESTAURANT, restaurant_id)
    if not restaurant:
        raise NotFound("Restaurant not found")
    if not staff_of(actor, restaurant):
        raise Forbidden("Only staff of this restaurant can add dishes")
    model = Dish(
        restaurant_id=str(restaurant["_id"]),
        name=name,
        description=description,
        price_cents=price_cents,
        is_available=is_available,
    )
    did = create_document(db, DISH, model)
    return serialize(get_document(db, DISH, did))


def update_dish(db: Database, actor: Actor, dish_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply staff edits to a dish. Existing order items keep their price snapshot."""
    dish = find_dish(db, dish_id)
    restaurant = get_document(db, RESTAURANT, dish["restaurant_id"])
    if not staff_of(actor, restaurant):
        raise Forbidden("Only staff of this restaurant can edit its dishes")
    if not changes:
        return serialize(dish)
    updated = db[DISH].find_one_and_update(
        {"_id": dish["_id"]},
        {"$set": {**changes, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    return serialize(updated)
