"""
Shared fixtures: an in-memory MongoDB (mongomock) wired into the app via
dependency overrides, plus factories for users, restaurants and dishes.
"""

import itertools
import os
from types import SimpleNamespace

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import hash_password, session_token
from database import create_document, ensure_indexes, get_db, get_document
from main import app
from schemas import Actor, Dish, Restaurant, Role, User

PASSWORD = "Str0ngPass!"

_counter = itertools.count(1)


@pytest.fixture
def db():
    database = mongomock.MongoClient().db
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(role=Role.CUSTOMER, location=(0, 0), email=None, full_name=None):
        email = email or f"user{next(_counter)}@example.com"
        model = User(
            email=email,
            password_hash=hash_password(PASSWORD),
            role=role,
            full_name=full_name,
            location_x=location[0],
            location_y=location[1],
        )
        uid = create_document(db, "user", model)
        token = session_token(get_document(db, "user", uid))
        return SimpleNamespace(
            id=uid,
            email=email,
            actor=Actor(id=uid, role=role, email=email),
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )
    return _make


@pytest.fixture
def make_restaurant(db):
    def _make(owner=None, location=(0, 0), is_active=True, name="Trattoria"):
        model = Restaurant(
            name=name,
            cuisine="italian",
            location_x=location[0],
            location_y=location[1],
            is_active=is_active,
            owner_user_id=owner.id if owner else None,
        )
        return create_document(db, "restaurant", model)
    return _make


@pytest.fixture
def make_dish(db):
    def _make(restaurant_id, price_cents=500, is_available=True, name="Margherita"):
        model = Dish(restaurant_id=restaurant_id, name=name, price_cents=price_cents, is_available=is_available)
        return create_document(db, "dish", model)
    return _make


@pytest.fixture
def customer(make_user):
    return make_user(location=(2, 1), full_name="Ada Customer")


@pytest.fixture
def owner(make_user):
    return make_user(role=Role.OWNER)


@pytest.fixture
def admin(make_user):
    return make_user(role=Role.ADMIN)


@pytest.fixture
def restaurant_id(make_restaurant, owner):
    return make_restaurant(owner=owner)


@pytest.fixture
def dish_id(make_dish, restaurant_id):
    return make_dish(restaurant_id, price_cents=500)
