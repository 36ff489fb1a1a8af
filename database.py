"""
MongoDB access for the Food Delivery API

Each Pydantic model in schemas.py maps to a collection named after the
lowercased class name. Routes receive the database through the get_db
dependency so tests can swap in an in-memory client.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import Internal, InvalidInput

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "food_delivery")

db: Optional[Database] = None
if DATABASE_URL:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def get_db() -> Database:
    if db is None:
        raise Internal("Database not configured")
    return db


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    # one row per dish per order; the cart upsert relies on it
    database["orderitem"].create_index(
        [("order_id", ASCENDING), ("dish_id", ASCENDING)], unique=True
    )
    database["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["order"].create_index("restaurant_id")
    database["dish"].create_index("restaurant_id")
    database["review"].create_index("restaurant_id")
    database["dishreview"].create_index("dish_id")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise InvalidInput("Invalid id format")


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document, stamping created_at/updated_at. Returns the new id."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = now_utc()
    doc = {**data, "created_at": now, "updated_at": now}
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_document(database: Database, collection_name: str, id_str: str) -> Optional[Dict[str, Any]]:
    return database[collection_name].find_one({"_id": to_object_id(id_str)})


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Dict[str, Any], hidden: tuple = ()) -> Dict[str, Any]:
    out = {k: v for k, v in doc.items() if k not in hidden}
    out["id"] = str(out.pop("_id"))
    return out
