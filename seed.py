"""
Ensure an admin account exists.

    python seed.py

Reads ADMIN_EMAIL, ADMIN_PASSWORD and ADMIN_NAME. An existing account with
that email is promoted to admin and its password reset to ADMIN_PASSWORD.
"""

import os
import logging
from typing import Optional

from database import create_document, get_db, utcnow
from schemas import User
from security import hash_password

logger = logging.getLogger(__name__)


def ensure_admin_user(
    email: Optional[str] = None,
    password: Optional[str] = None,
    name: Optional[str] = None,
) -> str:
    email = (email or os.getenv("ADMIN_EMAIL", "admin@justhike.com")).strip().lower()
    password = password or os.getenv("ADMIN_PASSWORD")
    name = name or os.getenv("ADMIN_NAME", "JustHike Admin")
    if not password:
        raise ValueError("ADMIN_PASSWORD must be set")

    col = get_db()["user"]
    existing = col.find_one({"email": email})
    if not existing:
        user_id = create_document(
            "user",
            User(name=name, email=email, password_hash=hash_password(password), role="admin"),
        )
        logger.info("Admin user created: %s", email)
        return user_id

    col.update_one(
        {"_id": existing["_id"]},
        {"$set": {"role": "admin", "password_hash": hash_password(password), "updated_at": utcnow()}},
    )
    logger.info("Admin user updated: %s", email)
    return str(existing["_id"])


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s: %(name)s: %(message)s")
    ensure_admin_user()
