import re
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from pymongo import ReturnDocument

from database import create_document, get_db, get_documents, utcnow
from errors import NotFound, ValidationError
from helpers import RequestBody, get_collection_name, ok, to_object_id, with_image_url
from schemas import Blog, BlogStatus
from security import require_admin
from uploads import save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blogs", tags=["Blogs"])

BLOGS = get_collection_name(Blog)


class BlogBody(RequestBody):
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    tags: Optional[Union[List[str], str]] = None
    status: Optional[BlogStatus] = None


def as_tags(value: Union[List[str], str, None]) -> List[str]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


# -------------------- Public --------------------
@router.get("")
def list_published_blogs(request: Request, tag: Optional[str] = None, search: Optional[str] = None):
    filter_q: Dict[str, Any] = {"status": "published"}
    if tag:
        filter_q["tags"] = {"$regex": f"^{re.escape(tag)}$", "$options": "i"}
    if search:
        pattern = re.escape(search)
        filter_q["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"content": {"$regex": pattern, "$options": "i"}},
        ]
    docs = get_documents(BLOGS, filter_q)
    return ok("Blogs fetched successfully", [with_image_url(request, d) for d in docs])


# -------------------- Admin --------------------
@router.get("/admin/all")
def list_all_blogs(request: Request, _: Dict[str, Any] = Depends(require_admin)):
    docs = get_documents(BLOGS)
    return ok("Blogs fetched successfully", [with_image_url(request, d) for d in docs])


@router.get("/{blog_id}")
def get_published_blog(blog_id: str, request: Request):
    doc = get_db()[BLOGS].find_one({"_id": to_object_id(blog_id)})
    # Drafts look missing to readers, not forbidden.
    if not doc or doc.get("status") != "published":
        raise NotFound("Blog not found")
    return ok("Blog fetched successfully", with_image_url(request, doc))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_blog(payload: BlogBody, request: Request, admin: Dict[str, Any] = Depends(require_admin)):
    if not payload.title or not payload.content:
        raise ValidationError("Title and content are required")
    doc = Blog(
        title=payload.title,
        content=payload.content,
        excerpt=payload.excerpt,
        tags=as_tags(payload.tags),
        status=payload.status or "draft",
        author_id=admin["_id"],
    )
    new_id = create_document(BLOGS, doc)
    logger.info("Blog %s created by %s", new_id, admin["_id"])
    created = get_db()[BLOGS].find_one({"_id": to_object_id(new_id)})
    return ok("Blog created successfully", with_image_url(request, created))


@router.put("/{blog_id}")
def update_blog(blog_id: str, payload: BlogBody, request: Request, _: Dict[str, Any] = Depends(require_admin)):
    update: Dict[str, Any] = {}
    if payload.title:
        update["title"] = payload.title
    if payload.content:
        update["content"] = payload.content
    if payload.excerpt:
        update["excerpt"] = payload.excerpt
    if payload.tags is not None:
        update["tags"] = as_tags(payload.tags)
    if payload.status:
        update["status"] = payload.status
    if not update:
        raise ValidationError("No fields to update")

    doc = get_db()[BLOGS].find_one_and_update(
        {"_id": to_object_id(blog_id)},
        {"$set": {**update, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Blog not found")
    return ok("Blog updated successfully", with_image_url(request, doc))


@router.post("/{blog_id}/image")
def upload_blog_image(
    blog_id: str,
    request: Request,
    file: UploadFile = File(..., alias="blogImage"),
    _: Dict[str, Any] = Depends(require_admin),
):
    if not get_db()[BLOGS].find_one({"_id": to_object_id(blog_id)}):
        raise NotFound("Blog not found")
    path = save_image(file, "blogImage", "blogs")
    doc = get_db()[BLOGS].find_one_and_update(
        {"_id": to_object_id(blog_id)},
        {"$set": {"image": path, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ok("Blog image uploaded successfully", with_image_url(request, doc))


@router.delete("/{blog_id}")
def delete_blog(blog_id: str, _: Dict[str, Any] = Depends(require_admin)):
    res = get_db()[BLOGS].delete_one({"_id": to_object_id(blog_id)})
    if res.deleted_count == 0:
        raise NotFound("Blog not found")
    return ok("Blog deleted successfully", {"id": blog_id})
