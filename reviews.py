"""
Restaurant and dish reviews. Append-only; a user may review the same
target any number of times.
"""

from typing import Any, Dict, List, Optional

from pymongo.database import Database

from catalog import find_dish
from database import NEWEST_FIRST, create_document, get_document, get_documents, serialize, to_object_id
from errors import InvalidInput
from schemas import Actor, DishReview, Review

REVIEW = "review"
DISH_REVIEW = "dishreview"


def _check_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidInput("rating must be an integer between 1 and 5")
    return rating


def _with_reviewer_names(db: Database, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    user_ids = list({to_object_id(d["user_id"]) for d in docs})
    names = {
        str(u["_id"]): u.get("full_name") or u.get("email")
        for u in db["user"].find({"_id": {"$in": user_ids}}, {"full_name": 1, "email": 1})
    }
    rows = []
    for doc in docs:
        row = serialize(doc)
        row["reviewer_name"] = names.get(row["user_id"])
        rows.append(row)
    return rows


def create_restaurant_review(
    db: Database, actor: Actor, restaurant_id: str, rating: int, comment: Optional[str] = None
) -> Dict[str, Any]:
    model = Review(
        restaurant_id=str(to_object_id(restaurant_id)),
        user_id=actor.id,
        rating=_check_rating(rating),
        comment=comment,
    )
    rid = create_document(db, REVIEW, model)
    return serialize(get_document(db, REVIEW, rid))


def create_dish_review(
    db: Database, actor: Actor, dish_id: str, rating: int, comment: Optional[str] = None
) -> Dict[str, Any]:
    _check_rating(rating)
    dish = find_dish(db, dish_id)
    model = DishReview(dish_id=str(dish["_id"]), user_id=actor.id, rating=rating, comment=comment)
    rid = create_document(db, DISH_REVIEW, model)
    return serialize(get_document(db, DISH_REVIEW, rid))


def list_restaurant_reviews(db: Database, restaurant_id: str) -> List[Dict[str, Any]]:
    filt = {"restaurant_id": str(to_object_id(restaurant_id))}
    return _with_reviewer_names(db, get_documents(db, REVIEW, filt, sort=NEWEST_FIRST))


def list_dish_reviews(db: Database, dish_id: str) -> List[Dict[str, Any]]:
    filt = {"dish_id": str(to_object_id(dish_id))}
    return _with_reviewer_names(db, get_documents(db, DISH_REVIEW, filt, sort=NEWEST_FIRST))
