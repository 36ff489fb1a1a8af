import logging
import os
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AfterValidator, BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError

import auth
import catalog
import database
import orders
import reviews
from auth import get_current_user
from database import ensure_indexes, get_db
from errors import ServiceError
from schemas import Actor

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
RETURN_RESET_TOKEN = os.getenv("RETURN_RESET_TOKEN", "").lower() in ("1", "true", "yes")

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        ensure_indexes(database.db)
    else:
        logger.warning("DATABASE_URL not set; data endpoints will fail")
    yield


app = FastAPI(title="Food Delivery API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------- Errors ----------------------
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Storage error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ---------------------- Auth ----------------------
def _bcrypt_sized(value: str) -> str:
    # bcrypt only accepts 72 bytes of input
    if len(value.encode("utf-8")) > 72:
        raise ValueError("password must be at most 72 bytes when UTF-8 encoded")
    return value


Password = Annotated[str, Field(min_length=6), AfterValidator(_bcrypt_sized)]


class RegisterBody(BaseModel):
    email: EmailStr
    password: Password
    full_name: Optional[str] = None
    address: Optional[str] = None
    location_x: int = 0
    location_y: int = 0


class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordBody(BaseModel):
    email: EmailStr


class ResetTokenBody(BaseModel):
    token: str


class ResetPasswordBody(BaseModel):
    token: str
    new_password: Password


class ChangePasswordBody(BaseModel):
    old_password: str
    new_password: Password


class UpdateProfileBody(BaseModel):
    full_name: Optional[str] = None
    address: Optional[str] = None
    location_x: Optional[int] = None
    location_y: Optional[int] = None


@app.post("/auth/register", status_code=201)
def register(body: RegisterBody, db: Database = Depends(get_db)):
    return auth.register_user(
        db, body.email, body.password,
        full_name=body.full_name, address=body.address,
        location_x=body.location_x, location_y=body.location_y,
    )


@app.post("/auth/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    return auth.authenticate(db, body.email, body.password)


@app.post("/auth/forgot-password")
def forgot_password(body: ForgotPasswordBody, db: Database = Depends(get_db)):
    """Always answers the same way so the endpoint cannot be used to probe for accounts."""
    token = auth.create_reset_token(db, body.email)
    response = {"message": "If that email is registered, a reset link has been sent"}
    if token and RETURN_RESET_TOKEN:
        response["resetToken"] = token
    return response


@app.post("/auth/validate-reset-token")
def validate_reset_token(body: ResetTokenBody, db: Database = Depends(get_db)):
    return {"valid": auth.validate_reset_token(db, body.token)}


@app.post("/auth/reset-password")
def reset_password(body: ResetPasswordBody, db: Database = Depends(get_db)):
    return auth.reset_password(db, body.token, body.new_password)


@app.get("/me")
def get_me(user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return auth.get_profile(db, user)


@app.patch("/me")
def update_me(body: UpdateProfileBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return auth.update_profile(db, user, body.model_dump(exclude_unset=True, exclude_none=True))


@app.patch("/me/password")
def change_password(body: ChangePasswordBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return auth.change_password(db, user, body.old_password, body.new_password)


# ---------------------- Restaurants & Dishes ----------------------
class CreateRestaurantBody(BaseModel):
    name: str = Field(..., min_length=1)
    cuisine: Optional[str] = None
    address: Optional[str] = None
    location_x: int = 0
    location_y: int = 0
    owner_user_id: Optional[str] = None


class CreateDishBody(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price_cents: int = Field(..., ge=0)
    is_available: bool = True


class UpdateDishBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None


@app.get("/restaurants")
def list_restaurants(db: Database = Depends(get_db)):
    return catalog.list_restaurants(db)


@app.post("/restaurants", status_code=201)
def create_restaurant(body: CreateRestaurantBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return catalog.create_restaurant(db, user, **body.model_dump())


@app.get("/restaurants/{restaurant_id}")
def get_restaurant(restaurant_id: str, db: Database = Depends(get_db)):
    return catalog.get_restaurant(db, restaurant_id)


@app.get("/restaurants/{restaurant_id}/dishes")
def list_dishes(restaurant_id: str, db: Database = Depends(get_db)):
    return catalog.list_dishes(db, restaurant_id)


@app.post("/restaurants/{restaurant_id}/dishes", status_code=201)
def add_dish(restaurant_id: str, body: CreateDishBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return catalog.add_dish(db, user, restaurant_id, **body.model_dump())


@app.patch("/dishes/{dish_id}")
def update_dish(dish_id: str, body: UpdateDishBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return catalog.update_dish(db, user, dish_id, body.model_dump(exclude_unset=True, exclude_none=True))


# ---------------------- Orders ----------------------
class CreateOrderBody(BaseModel):
    restaurant_id: str = Field(..., min_length=1)


class AddItemBody(BaseModel):
    dish_id: str
    quantity: int = Field(..., gt=0, strict=True)


class SetQuantityBody(BaseModel):
    dish_id: str
    quantity: int = Field(..., ge=0, strict=True)


class UpdateOrderStatusBody(BaseModel):
    status: str


@app.post("/orders", status_code=201)
def create_order(body: CreateOrderBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.create_order(db, user, body.restaurant_id)


@app.get("/orders")
def list_orders(user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.list_orders(db, user)


@app.get("/orders/{order_id}")
def get_order(order_id: str, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.get_order_detail(db, user, order_id)


@app.post("/orders/{order_id}/items", status_code=201)
def add_order_item(order_id: str, body: AddItemBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.add_item(db, user, order_id, body.dish_id, body.quantity)


@app.patch("/orders/{order_id}/items")
def set_order_item_quantity(order_id: str, body: SetQuantityBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.set_item_quantity(db, user, order_id, body.dish_id, body.quantity)


@app.delete("/orders/{order_id}/items/{dish_id}")
def remove_order_item(order_id: str, dish_id: str, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.remove_item(db, user, order_id, dish_id)


@app.post("/orders/{order_id}/checkout")
def checkout_order(order_id: str, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.checkout(db, user, order_id)


@app.patch("/orders/{order_id}/status")
def update_order_status(order_id: str, body: UpdateOrderStatusBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.change_status(db, user, order_id, body.status)


# ---------------------- Reviews ----------------------
class CreateReviewBody(BaseModel):
    rating: int = Field(..., ge=1, le=5, strict=True)
    comment: Optional[str] = None


@app.get("/restaurants/{restaurant_id}/reviews")
def list_restaurant_reviews(restaurant_id: str, db: Database = Depends(get_db)):
    return reviews.list_restaurant_reviews(db, restaurant_id)


@app.post("/restaurants/{restaurant_id}/reviews", status_code=201)
def create_restaurant_review(restaurant_id: str, body: CreateReviewBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return reviews.create_restaurant_review(db, user, restaurant_id, body.rating, body.comment)


@app.get("/dishes/{dish_id}/reviews")
def list_dish_reviews(dish_id: str, db: Database = Depends(get_db)):
    return reviews.list_dish_reviews(db, dish_id)


@app.post("/dishes/{dish_id}/reviews", status_code=201)
def create_dish_review(dish_id: str, body: CreateReviewBody, user: Actor = Depends(get_current_user), db: Database = Depends(get_db)):
    return reviews.create_dish_review(db, user, dish_id, body.rating, body.comment)


# ---------------------- Misc ----------------------
@app.get("/")
def read_root():
    return {"message": "Food Delivery API"}


@app.get("/health")
def health():
    response = {"status": "ok", "database": "not configured"}
    if database.db is not None:
        try:
            database.db.command("ping")
            response["database"] = "connected"
        except PyMongoError as e:
            response["database"] = f"error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
