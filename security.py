import os
import re
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request
from passlib.context import CryptContext

from database import get_db
from errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(days=7)
RESET_TOKEN_TTL = timedelta(hours=1)
MIN_PASSWORD_LENGTH = 6
DEV_JWT_SECRET = "dev-secret"

_QUOTED = re.compile(r'^"(.+)"$')


def jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if secret:
        return secret
    if os.getenv("ENVIRONMENT") == "production":
        raise RuntimeError("JWT_SECRET must be set in production")
    return DEV_JWT_SECRET


def check_jwt_secret() -> None:
    """Called at startup: refuse to run in production without JWT_SECRET, warn elsewhere."""
    if os.getenv("JWT_SECRET"):
        return
    if os.getenv("ENVIRONMENT") == "production":
        raise RuntimeError("JWT_SECRET must be set in production")
    logger.warning("JWT_SECRET is not set; using the development secret, tokens can be forged")


# -------------------- Passwords --------------------

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


# -------------------- Session tokens --------------------

def create_access_token(user: Dict[str, Any]) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": str(user["_id"]),
        "email": user["email"],
        "iat": now,
        "exp": now + ACCESS_TOKEN_TTL,
    }
    return jwt.encode(payload, jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry. Any failure is reported as an invalid token."""
    try:
        claims = jwt.decode(token, jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        raise Unauthorized("Unauthorized, Token invalid")
    if not claims.get("id"):
        raise Unauthorized("Unauthorized, Token invalid")
    return claims


# -------------------- Reset tokens --------------------

def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_reset_token() -> Tuple[str, str]:
    """Return (raw token for the email link, digest to persist)."""
    raw_token = secrets.token_hex(32)
    return raw_token, hash_reset_token(raw_token)


# -------------------- Dependencies --------------------

def _clean(token: Any) -> Optional[str]:
    if not isinstance(token, str) or not token:
        return None
    return _QUOTED.sub(r"\1", token)


async def get_request_token(request: Request) -> Optional[str]:
    """Locate a token in the Authorization header, then cookies, then a JSON or form body."""
    authorization = request.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        token = _clean(authorization.split(" ", 1)[1])
        if token:
            return token

    token = _clean(request.cookies.get("token") or request.cookies.get("accessToken"))
    if token:
        return token

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            return _clean(body.get("token"))
    elif content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        return _clean(form.get("token"))
    return None


def get_current_user(token: Optional[str] = Depends(get_request_token)) -> Dict[str, Any]:
    if not token:
        raise Unauthorized("Unauthorized, Token missing")
    claims = decode_token(token)
    try:
        user_id = ObjectId(claims["id"])
    except (InvalidId, TypeError):
        raise Unauthorized("Unauthorized, Token invalid")
    user = get_db()["user"].find_one({"_id": user_id})
    if not user:
        raise Unauthorized("Unauthorized, User not found")
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        logger.info("Rejected non-admin user %s on admin route", user.get("_id"))
        raise Forbidden("Forbidden, admins only")
    return user
