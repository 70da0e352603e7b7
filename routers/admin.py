import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from pydantic import EmailStr
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, get_documents, utcnow
from errors import Conflict, NotFound, ValidationError
from helpers import RequestBody, get_collection_name, ok, public_user, to_object_id
from routers.auth import check_password_length, normalize_email
from schemas import Role, User
from security import hash_password, require_admin
from uploads import save_image

logger = logging.getLogger(__name__)

# Every route here is admin-gated.
router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

USERS = get_collection_name(User)


class AdminUserCreate(RequestBody):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[Role] = None


class AdminUserUpdate(RequestBody):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[Role] = None


def find_user(user_id: str) -> Dict[str, Any]:
    user = get_db()[USERS].find_one({"_id": to_object_id(user_id)})
    if not user:
        raise NotFound("User not found")
    return user


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(payload: AdminUserCreate, request: Request):
    if not payload.name or not payload.email or not payload.password:
        raise ValidationError("Name, email and password are required")
    check_password_length(payload.password)

    email = normalize_email(payload.email)
    if get_db()[USERS].find_one({"email": email}):
        raise Conflict("User already exists")

    doc = User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        phone_number=payload.phone_number,
        role=payload.role or "user",
    )
    try:
        new_id = create_document(USERS, doc)
    except DuplicateKeyError:
        raise Conflict("User already exists")
    logger.info("Admin created user %s with role %s", new_id, doc.role)
    return ok("User created successfully", public_user(request, find_user(new_id)))


@router.get("/users")
def list_users(request: Request):
    return ok("Users fetched successfully", [public_user(request, u) for u in get_documents(USERS)])


@router.get("/users/{user_id}")
def get_user(user_id: str, request: Request):
    return ok("User fetched successfully", public_user(request, find_user(user_id)))


@router.put("/users/{user_id}")
def update_user(user_id: str, payload: AdminUserUpdate, request: Request):
    user = find_user(user_id)
    col = get_db()[USERS]

    update: Dict[str, Any] = {}
    if payload.name:
        update["name"] = payload.name
    if payload.phone_number:
        update["phone_number"] = payload.phone_number
    if payload.role:
        update["role"] = payload.role
    if payload.email:
        email = normalize_email(payload.email)
        if email != user["email"]:
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
        {"_id": user["_id"]}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    return ok("User updated successfully", public_user(request, updated))


@router.post("/users/{user_id}/image")
def upload_user_image(user_id: str, request: Request, file: UploadFile = File(..., alias="image")):
    user = find_user(user_id)
    path = save_image(file, "image", "users")
    updated = get_db()[USERS].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": {"profile_picture": path, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ok("User image uploaded successfully", public_user(request, updated))


@router.delete("/users/{user_id}")
def delete_user(user_id: str):
    res = get_db()[USERS].delete_one({"_id": to_object_id(user_id)})
    if res.deleted_count == 0:
        raise NotFound("User not found")
    logger.info("Admin deleted user %s", user_id)
    return ok("User deleted successfully", {"id": user_id})
