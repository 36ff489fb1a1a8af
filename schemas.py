"""
Database Schemas for the Food Delivery App

Each Pydantic model maps to a MongoDB collection (lowercased class name)
- User -> user
- Restaurant -> restaurant
- Dish -> dish
- Order -> order
- OrderItem -> orderitem
- Review -> review
- DishReview -> dishreview

References between documents are stored as the string form of the
referenced ObjectId.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, Enum):
    CUSTOMER = "CUSTOMER"
    OWNER = "OWNER"
    ADMIN = "ADMIN"


class OrderStatus(str, Enum):
    PLACED = "PLACED"
    ACCEPTED = "ACCEPTED"
    PREPARING = "PREPARING"
    READY = "READY"
    DISPATCHED = "DISPATCHED"
    DELIVERED = "DELIVERED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class Document(BaseModel):
    model_config = ConfigDict(use_enum_values=True)


class User(Document):
    """Customer or staff account.
    Registration only ever creates CUSTOMER accounts; OWNER and ADMIN
    accounts are provisioned directly in the database.
    """
    email: EmailStr
    password_hash: str = Field(..., description="bcrypt hash")
    role: Role = Role.CUSTOMER
    full_name: Optional[str] = None
    address: Optional[str] = None
    location_x: int = 0
    location_y: int = 0


class Restaurant(Document):
    name: str
    cuisine: Optional[str] = None
    address: Optional[str] = None
    location_x: int = 0
    location_y: int = 0
    is_active: bool = True
    owner_user_id: Optional[str] = Field(None, description="Links to user._id (OWNER role)")


class Dish(Document):
    restaurant_id: str
    name: str
    description: Optional[str] = None
    price_cents: int = Field(..., ge=0)
    is_available: bool = True


class Order(Document):
    user_id: str
    restaurant_id: str
    status: OrderStatus = OrderStatus.PLACED
    estimated_delivery_min: int = Field(..., gt=0, description="Frozen at creation")


class OrderItem(Document):
    order_id: str
    dish_id: str
    quantity: int = Field(..., ge=1)
    price_cents_at_order: int = Field(..., ge=0, description="Dish price when first added")


class Review(Document):
    restaurant_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class DishReview(Document):
    dish_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class Actor(BaseModel):
    """The authenticated caller, as carried in the session token."""
    id: str
    role: Role
    email: Optional[str] = None
