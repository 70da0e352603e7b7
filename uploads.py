import os
import uuid
import shutil
import logging
from typing import Optional

from fastapi import Request, UploadFile

from errors import ValidationError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def upload_root() -> str:
    return os.getenv("UPLOAD_DIR", "uploads")


def ensure_upload_root() -> str:
    root = upload_root()
    os.makedirs(root, exist_ok=True)
    return root


def save_image(file: UploadFile, field_name: str, subdir: str) -> str:
    """
    Persist an uploaded image and return its path relative to the upload root,
    prefixed with "uploads/" so it can be appended to the site URL as-is.
    """
    if not (file.content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed!")

    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    if size > MAX_UPLOAD_BYTES:
        raise ValidationError("Image must be 5 MB or smaller")

    extension = os.path.splitext(file.filename or "")[1].lower()
    filename = f"{field_name}-{uuid.uuid4()}{extension}"
    target_dir = os.path.join(ensure_upload_root(), subdir)
    os.makedirs(target_dir, exist_ok=True)
    with open(os.path.join(target_dir, filename), "wb") as out:
        shutil.copyfileobj(file.file, out)

    logger.info("Stored upload %s/%s (%d bytes)", subdir, filename, size)
    return f"uploads/{subdir}/{filename}"


def image_url(request: Request, relative_path: Optional[str]) -> Optional[str]:
    if not relative_path:
        return None
    return f"{str(request.base_url).rstrip('/')}/{relative_path.lstrip('/')}"
