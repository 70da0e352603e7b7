import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from pydantic import EmailStr, Field
from pymongo import ReturnDocument

from database import create_document, get_db, get_documents, utcnow
from errors import NotFound, ValidationError
from helpers import RequestBody, get_collection_name, ok, to_object_id, with_image_url
from schemas import Guide
from security import require_admin
from uploads import save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/guides", tags=["Guides"])

GUIDES = get_collection_name(Guide)


class GuideBody(RequestBody):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0)
    languages: Optional[Union[List[str], str]] = None


def as_list(value: Union[List[str], str, None]) -> List[str]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def find_guide(guide_id: str) -> Dict[str, Any]:
    doc = get_db()[GUIDES].find_one({"_id": to_object_id(guide_id)})
    if not doc:
        raise NotFound("Guide not found")
    return doc


@router.get("")
def list_guides(request: Request):
    docs = get_documents(GUIDES)
    return ok("Guides fetched successfully", [with_image_url(request, d) for d in docs])


@router.get("/{guide_id}")
def get_guide(guide_id: str, request: Request):
    return ok("Guide fetched successfully", with_image_url(request, find_guide(guide_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_guide(payload: GuideBody, request: Request, admin: Dict[str, Any] = Depends(require_admin)):
    if not payload.name or not payload.name.strip():
        raise ValidationError("Name is required")
    doc = Guide(
        name=payload.name.strip(),
        email=payload.email,
        phone_number=payload.phone_number,
        bio=payload.bio,
        experience_years=payload.experience_years or 0,
        languages=as_list(payload.languages),
        created_by=admin["_id"],
    )
    new_id = create_document(GUIDES, doc)
    logger.info("Guide %s created by %s", new_id, admin["_id"])
    return ok("Guide created successfully", with_image_url(request, find_guide(new_id)))


@router.put("/{guide_id}")
def update_guide(guide_id: str, payload: GuideBody, request: Request, _: Dict[str, Any] = Depends(require_admin)):
    update = payload.model_dump(exclude_none=True)
    if "name" in update and not update["name"].strip():
        raise ValidationError("Name is required")
    if "languages" in update:
        update["languages"] = as_list(update["languages"])
    if not update:
        raise ValidationError("No fields to update")

    doc = get_db()[GUIDES].find_one_and_update(
        {"_id": to_object_id(guide_id)},
        {"$set": {**update, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Guide not found")
    return ok("Guide updated successfully", with_image_url(request, doc))


@router.post("/{guide_id}/image")
def upload_guide_image(
    guide_id: str,
    request: Request,
    file: UploadFile = File(..., alias="image"),
    _: Dict[str, Any] = Depends(require_admin),
):
    find_guide(guide_id)
    path = save_image(file, "image", "guides")
    doc = get_db()[GUIDES].find_one_and_update(
        {"_id": to_object_id(guide_id)},
        {"$set": {"image": path, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ok("Guide image uploaded successfully", with_image_url(request, doc))


@router.delete("/{guide_id}")
def delete_guide(guide_id: str, _: Dict[str, Any] = Depends(require_admin)):
    res = get_db()[GUIDES].delete_one({"_id": to_object_id(guide_id)})
    if res.deleted_count == 0:
        raise NotFound("Guide not found")
    return ok("Guide deleted successfully", {"id": guide_id})
