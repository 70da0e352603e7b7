import os
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status
from pydantic import EmailStr
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, utcnow
from errors import Conflict, Forbidden, InternalError, NotFound, Unauthorized, ValidationError
from helpers import RequestBody, get_collection_name, ok, public_user, to_object_id
from mailer import EmailDeliveryError, password_changed_email, password_reset_email, send_email, try_send_email
from schemas import User
from security import (
    ACCESS_TOKEN_TTL,
    MIN_PASSWORD_LENGTH,
    RESET_TOKEN_TTL,
    create_access_token,
    decode_token,
    generate_reset_token,
    get_current_user,
    get_request_token,
    hash_password,
    hash_reset_token,
    require_admin,
    verify_password,
)
from uploads import save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

USERS = get_collection_name(User)
RESET_REQUESTED_MESSAGE = "If an account with that email exists, a password reset link has been sent"


class RegisterRequest(RequestBody):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class LoginRequest(RequestBody):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(RequestBody):
    name: Optional[str] = None
    phone_number: Optional[str] = None


class UserUpdate(RequestBody):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone_number: Optional[str] = None


class ForgotPasswordRequest(RequestBody):
    email: Optional[EmailStr] = None


class ResetPasswordRequest(RequestBody):
    token: Optional[str] = None
    new_password: Optional[str] = None
    password: Optional[str] = None


def check_password_length(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def normalize_email(email: str) -> str:
    return str(email).strip().lower()


def token_claims(token: Optional[str]) -> Dict[str, Any]:
    if not token:
        return {}
    claims = decode_token(token)
    return {"iat": claims.get("iat"), "exp": claims.get("exp")}


# -------------------- Register / Login --------------------
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, request: Request):
    name = (payload.name or "").strip()
    if not name or not payload.email or not payload.password:
        raise ValidationError("All fields are required")
    check_password_length(payload.password)

    col = get_db()[USERS]
    email = normalize_email(payload.email)
    if col.find_one({"email": email}):
        raise Conflict("User already exists")

    doc = User(name=name, email=email, password_hash=hash_password(payload.password))
    try:
        user_id = create_document(USERS, doc)
    except DuplicateKeyError:
        raise Conflict("User already exists")

    user = col.find_one({"_id": to_object_id(user_id)})
    logger.info("Registered user %s", user_id)
    return ok(
        "Registration successful",
        public_user(request, user),
        token=create_access_token(user),
    )


@router.post("/login")
def login(payload: LoginRequest, request: Request):
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required")
    user = get_db()[USERS].find_one({"email": normalize_email(payload.email)})
    if not user or not verify_password(payload.password, user.get("password_hash")):
        logger.info("Failed login for %s", payload.email)
        raise Unauthorized("Invalid credentials")
    return ok("Login successful", public_user(request, user), token=create_access_token(user))


# -------------------- Token checks --------------------
@router.get("/verify")
def verify_token(
    request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
    token: Optional[str] = Depends(get_request_token),
):
    return ok("Token is valid", {**public_user(request, user), **token_claims(token)})


@router.get("/verify-admin")
def verify_admin_token(
    request: Request,
    user: Dict[str, Any] = Depends(require_admin),
    token: Optional[str] = Depends(get_request_token),
):
    return ok("Admin token is valid", {**public_user(request, user), **token_claims(token)})


@router.post("/set-cookies")
def set_auth_cookie(response: Response, token: Optional[str] = Depends(get_request_token)):
    if not token:
        raise ValidationError("Token is required")
    decode_token(token)
    response.set_cookie(
        key="token",
        value=token,
        max_age=int(ACCESS_TOKEN_TTL.total_seconds()),
        httponly=True,
        samesite="lax",
        secure=os.getenv("ENVIRONMENT") == "production",
    )
    return ok("Auth cookie set")


# -------------------- Profile --------------------
@router.put("/update-profile")
def update_profile(payload: ProfileUpdate, request: Request, user: Dict[str, Any] = Depends(get_current_user)):
    update = {k: v for k, v in payload.model_dump().items() if v}
    if not update:
        raise ValidationError("No fields to update")
    update["updated_at"] = utcnow()
    updated = get_db()[USERS].find_one_and_update(
        {"_id": user["_id"]}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise NotFound("User not found")
    return ok("Profile updated successfully", public_user(request, updated))


@router.put("/profile-picture")
def upload_profile_picture(
    request: Request,
    file: UploadFile = File(..., alias="profilePicture"),
    user: Dict[str, Any] = Depends(get_current_user),
):
    path = save_image(file, "profilePicture", "users")
    updated = get_db()[USERS].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": {"profile_picture": path, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ok("Profile picture updated successfully", public_user(request, updated))


@router.put("/users/{user_id}")
def update_user_by_id(
    user_id: str,
    payload: UserUpdate,
    request: Request,
    current: Dict[str, Any] = Depends(get_current_user),
):
    target_id = to_object_id(user_id)
    if current.get("role") != "admin" and current["_id"] != target_id:
        raise Forbidden("Forbidden")

    col = get_db()[USERS]
    existing = col.find_one({"_id": target_id})
    if not existing:
        raise NotFound("User not found")

    update: Dict[str, Any] = {}
    if payload.name:
        update["name"] = payload.name
    if payload.phone_number:
        update["phone_number"] = payload.phone_number
    if payload.email:
        email = normalize_email(payload.email)
        if email != existing["email"]:
            if col.find_one({"email": email}):
                raise Conflict("Email already in use")
            update["email"] = email
    if payload.password:
        check_password_length(payload.password)
        update["password_hash"] = hash_password(payload.password)
    if not update:
        raise ValidationError("No fields to update")

    update["updated_at"] = utcnow()
    updated = col.find_one_and_update(
        {"_id": target_id}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    return ok("User updated successfully", public_user(request, updated))


# -------------------- Password reset --------------------
@router.post("/forgot-password")
@router.post("/request-password-reset")
def forgot_password(payload: ForgotPasswordRequest):
    if not payload.email:
        raise ValidationError("Email is required")

    col = get_db()[USERS]
    email = normalize_email(payload.email)
    user = col.find_one({"email": email})
    if not user:
        logger.info("Password reset requested for unknown email")
        return ok(RESET_REQUESTED_MESSAGE)

    raw_token, hashed_token = generate_reset_token()
    col.update_one(
        {"_id": user["_id"]},
        {"$set": {
            "reset_password_token": hashed_token,
            "reset_password_expires": utcnow() + RESET_TOKEN_TTL,
            "updated_at": utcnow(),
        }},
    )

    client_url = os.getenv("CLIENT_URL", "http://localhost:3000").rstrip("/")
    reset_url = f"{client_url}/auth/reset-password?{urlencode({'token': raw_token, 'email': email})}"
    try:
        send_email("Password Reset Request", password_reset_email(user.get("name", ""), reset_url), email)
    except EmailDeliveryError as e:
        logger.error("Failed to send reset email to user %s: %s", user["_id"], e)
        raise InternalError("Failed to send reset email. Please try again later.")

    logger.info("Password reset link issued for user %s", user["_id"])
    return ok(RESET_REQUESTED_MESSAGE)


def consume_reset_token(raw_token: Optional[str], payload: Optional[ResetPasswordRequest]):
    payload = payload or ResetPasswordRequest()
    raw_token = raw_token or payload.token
    new_password = payload.new_password or payload.password

    if not raw_token:
        raise ValidationError("Reset token is required")
    if not new_password:
        raise ValidationError("Password is required")
    check_password_length(new_password)

    now = utcnow()
    # Matching and clearing happen in one update so a token is consumed once.
    user = get_db()[USERS].find_one_and_update(
        {
            "reset_password_token": hash_reset_token(raw_token),
            "reset_password_expires": {"$gt": now},
        },
        {
            "$set": {"password_hash": hash_password(new_password), "updated_at": now},
            "$unset": {"reset_password_token": "", "reset_password_expires": ""},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise ValidationError("Invalid or expired reset token")

    logger.info("Password reset completed for user %s", user["_id"])
    try_send_email("Password Reset Successful", password_changed_email(user.get("name", "")), user["email"])
    return ok("Password has been reset successfully")


@router.post("/reset-password/{token}")
def reset_password_with_path_token(token: str, payload: Optional[ResetPasswordRequest] = None):
    return consume_reset_token(token, payload)


@router.post("/reset-password")
def reset_password(token: Optional[str] = None, payload: Optional[ResetPasswordRequest] = None):
    return consume_reset_token(token, payload)
