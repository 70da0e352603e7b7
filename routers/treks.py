import re
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from pydantic import Field
from pymongo import ReturnDocument

from database import create_document, get_db, get_documents, utcnow
from errors import NotFound, ValidationError
from helpers import RequestBody, get_collection_name, ok, to_object_id, with_image_url
from schemas import Difficulty, Trek
from security import require_admin
from uploads import save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/treks", tags=["Treks"])

TREKS = get_collection_name(Trek)


class TrekCreate(RequestBody):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    difficulty: Difficulty = "moderate"
    duration_days: int = Field(..., ge=1)
    price: float = Field(..., gt=0)
    location: str = Field(..., min_length=1)
    max_group_size: int = Field(10, ge=1)
    is_active: bool = True


class TrekUpdate(RequestBody):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    difficulty: Optional[Difficulty] = None
    duration_days: Optional[int] = Field(None, ge=1)
    price: Optional[float] = Field(None, gt=0)
    location: Optional[str] = Field(None, min_length=1)
    max_group_size: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


def find_trek(trek_id: str) -> Dict[str, Any]:
    doc = get_db()[TREKS].find_one({"_id": to_object_id(trek_id)})
    if not doc:
        raise NotFound("Trek not found")
    return doc


@router.get("")
def list_treks(
    request: Request,
    difficulty: Optional[Difficulty] = None,
    location: Optional[str] = None,
    min_days: Optional[int] = Query(None, ge=1),
    max_days: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
):
    filter_q: Dict[str, Any] = {"is_active": True}
    if difficulty:
        filter_q["difficulty"] = difficulty
    if location:
        filter_q["location"] = {"$regex": re.escape(location), "$options": "i"}
    if min_days is not None or max_days is not None:
        dur_cond: Dict[str, Any] = {}
        if min_days is not None:
            dur_cond["$gte"] = min_days
        if max_days is not None:
            dur_cond["$lte"] = max_days
        filter_q["duration_days"] = dur_cond
    if search:
        pattern = re.escape(search)
        filter_q["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]

    docs = get_documents(TREKS, filter_q)
    return ok("Treks fetched successfully", [with_image_url(request, d) for d in docs])


@router.get("/{trek_id}")
def get_trek(trek_id: str, request: Request):
    return ok("Trek fetched successfully", with_image_url(request, find_trek(trek_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_trek(payload: TrekCreate, request: Request, admin: Dict[str, Any] = Depends(require_admin)):
    doc = Trek(**payload.model_dump(), created_by=admin["_id"])
    new_id = create_document(TREKS, doc)
    logger.info("Trek %s created by %s", new_id, admin["_id"])
    return ok("Trek created successfully", with_image_url(request, find_trek(new_id)))


@router.put("/{trek_id}")
def update_trek(trek_id: str, payload: TrekUpdate, request: Request, _: Dict[str, Any] = Depends(require_admin)):
    update = payload.model_dump(exclude_none=True)
    if not update:
        raise ValidationError("No fields to update")
    doc = get_db()[TREKS].find_one_and_update(
        {"_id": to_object_id(trek_id)},
        {"$set": {**update, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Trek not found")
    return ok("Trek updated successfully", with_image_url(request, doc))


@router.post("/{trek_id}/image")
def upload_trek_image(
    trek_id: str,
    request: Request,
    file: UploadFile = File(..., alias="trekImage"),
    _: Dict[str, Any] = Depends(require_admin),
):
    find_trek(trek_id)
    path = save_image(file, "trekImage", "treks")
    doc = get_db()[TREKS].find_one_and_update(
        {"_id": to_object_id(trek_id)},
        {"$set": {"image": path, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ok("Trek image uploaded successfully", with_image_url(request, doc))


@router.delete("/{trek_id}")
def delete_trek(trek_id: str, _: Dict[str, Any] = Depends(require_admin)):
    res = get_db()[TREKS].delete_one({"_id": to_object_id(trek_id)})
    if res.deleted_count == 0:
        raise NotFound("Trek not found")
    logger.info("Trek %s deleted", trek_id)
    return ok("Trek deleted successfully", {"id": trek_id})
