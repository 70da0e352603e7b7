from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from errors import ValidationError
from uploads import image_url

# Never leave the server.
PRIVATE_USER_FIELDS = ("password_hash", "reset_password_token", "reset_password_expires")


class RequestBody(BaseModel):
    """Request payload accepting both snake_case and the camelCase names clients send.

    Strings are trimmed, so whitespace-only values fail required and min_length checks.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def get_collection_name(model_cls) -> str:
    return model_cls.__name__.lower()


def to_object_id(id_str: Any) -> ObjectId:
    try:
        return ObjectId(str(id_str))
    except Exception:
        raise ValidationError("Invalid id")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def with_image_url(request: Request, doc: Optional[Dict[str, Any]], field: str = "image") -> Optional[Dict[str, Any]]:
    """Serialize a document and add an absolute ``image_url`` built from its stored path."""
    out = serialize_doc(doc)
    if out is not None:
        out["image_url"] = image_url(request, out.get(field))
    return out


def public_user(request: Request, user: Dict[str, Any]) -> Dict[str, Any]:
    doc = {k: v for k, v in user.items() if k not in PRIVATE_USER_FIELDS}
    return with_image_url(request, doc, field="profile_picture")


def ok(message: str, data: Any = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message}
    body.update(extra)
    if data is not None:
        body["data"] = data
    return body
