"""
Accounts, passwords and session tokens.

Session tokens are HS256 JWTs carrying {sub, role, email}. Password reset
tokens are short-lived JWTs bound to a fingerprint of the current
password hash, so they stop working as soon as the password changes.
"""

import hashlib
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_document, now_utc, serialize
from errors import Conflict, InvalidInput, Unauthenticated
from schemas import Actor, Role, User

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALG = "HS256"
TOKEN_EXPIRE_MIN = int(os.getenv("TOKEN_EXPIRE_MIN", 60 * 24 * 7))  # 7 days
RESET_TOKEN_EXPIRE_MIN = int(os.getenv("RESET_TOKEN_EXPIRE_MIN", 30))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 10))

RESET_PURPOSE = "password_reset"
PROFILE_FIELDS = ("full_name", "address", "location_x", "location_y")
HIDDEN_FIELDS = ("password_hash",)


# ---------------------- Passwords ----------------------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


# ---------------------- JWT ----------------------
def create_jwt(payload: Dict[str, Any], expire_min: int = TOKEN_EXPIRE_MIN) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expire_min)
    to_encode = {"exp": exp, "iat": now, **payload}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def decode_jwt(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError as e:
        raise Unauthenticated(f"Invalid token: {e}")


def session_token(user: Dict[str, Any]) -> str:
    return create_jwt({"sub": str(user["_id"]), "role": user.get("role"), "email": user.get("email")})


def verify_token(token: str) -> Actor:
    data = decode_jwt(token)
    if data.get("purpose"):
        raise Unauthenticated("Invalid token")
    try:
        return Actor(id=data["sub"], role=data["role"], email=data.get("email"))
    except (KeyError, ValidationError):
        raise Unauthenticated("Invalid token")


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Actor:
    if not creds:
        raise Unauthenticated("Authorization required")
    return verify_token(creds.credentials)


# ---------------------- Accounts ----------------------
def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return serialize(user, hidden=HIDDEN_FIELDS)


def register_user(
    db: Database,
    email: str,
    password: str,
    full_name: Optional[str] = None,
    address: Optional[str] = None,
    location_x: int = 0,
    location_y: int = 0,
) -> Dict[str, Any]:
    email = email.lower()
    if db["user"].find_one({"email": email}, {"_id": 1}):
        raise Conflict("email already exists")
    model = User(
        email=email,
        password_hash=hash_password(password),
        role=Role.CUSTOMER,
        full_name=full_name,
        address=address,
        location_x=location_x,
        location_y=location_y,
    )
    try:
        uid = create_document(db, "user", model)
    except DuplicateKeyError:
        raise Conflict("email already exists")
    logger.info("Registered customer %s", uid)
    return {"id": uid, "email": email, "role": Role.CUSTOMER.value}


def authenticate(db: Database, email: str, password: str) -> Dict[str, Any]:
    user = db["user"].find_one({"email": email.lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        logger.warning("Rejected login for %s", email)
        raise Unauthenticated("invalid credentials")
    return {
        "token": session_token(user),
        "user": {"id": str(user["_id"]), "email": user["email"], "role": user.get("role")},
    }


def _load_user(db: Database, actor: Actor) -> Dict[str, Any]:
    user = get_document(db, "user", actor.id)
    if not user:
        raise Unauthenticated("User no longer exists")
    return user


def get_profile(db: Database, actor: Actor) -> Dict[str, Any]:
    return public_user(_load_user(db, actor))


def update_profile(db: Database, actor: Actor, changes: Dict[str, Any]) -> Dict[str, Any]:
    user = _load_user(db, actor)
    updates = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
    if updates:
        db["user"].update_one({"_id": user["_id"]}, {"$set": {**updates, "updated_at": now_utc()}})
    return get_profile(db, actor)


def change_password(db: Database, actor: Actor, old_password: str, new_password: str) -> Dict[str, Any]:
    user = _load_user(db, actor)
    if not verify_password(old_password, user.get("password_hash", "")):
        raise Unauthenticated("current password is incorrect")
    _set_password(db, user, new_password)
    return {"message": "Password updated"}


def _set_password(db: Database, user: Dict[str, Any], new_password: str) -> None:
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(new_password), "updated_at": now_utc()}},
    )


# ---------------------- Password reset ----------------------
def create_reset_token(db: Database, email: str) -> Optional[str]:
    """Reset token for the account, or None when no account has this email."""
    user = db["user"].find_one({"email": email.lower()})
    if not user:
        return None
    return create_jwt(
        {"sub": str(user["_id"]), "purpose": RESET_PURPOSE, "fp": _fingerprint(user["password_hash"])},
        expire_min=RESET_TOKEN_EXPIRE_MIN,
    )


def _user_for_reset_token(db: Database, token: str) -> Dict[str, Any]:
    try:
        data = decode_jwt(token)
    except Unauthenticated:
        raise InvalidInput("Invalid or expired reset token")
    user = get_document(db, "user", data.get("sub", "")) if data.get("purpose") == RESET_PURPOSE else None
    if not user or data.get("fp") != _fingerprint(user["password_hash"]):
        raise InvalidInput("Invalid or expired reset token")
    return user


def validate_reset_token(db: Database, token: str) -> bool:
    try:
        _user_for_reset_token(db, token)
    except InvalidInput:
        return False
    return True


def reset_password(db: Database, token: str, new_password: str) -> Dict[str, Any]:
    user = _user_for_reset_token(db, token)
    _set_password(db, user, new_password)
    logger.info("Password reset for user %s", user["_id"])
    return {"message": "Password has been reset"}
