import os
import tempfile
from typing import Any, Callable, Dict, List, Optional

# Must be set before the application modules are imported.
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="justhike-uploads-")
for _var in ("DATABASE_URL", "DATABASE_NAME", "SMTP_HOST", "SMTP_USER", "SMTP_PASS"):
    os.environ.pop(_var, None)

import mongomock
from bson import ObjectId
import pytest
from fastapi.testclient import TestClient

import database
import mailer
from database import create_document
from main import app
from schemas import Trek, User
from security import create_access_token, hash_password

TEST_PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch):
    """A fresh in-memory MongoDB for every test."""
    db = mongomock.MongoClient()["justhike_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture(autouse=True)
def outbox(monkeypatch) -> List[Dict[str, str]]:
    """Capture outgoing mail instead of talking to an SMTP server."""
    sent: List[Dict[str, str]] = []

    def fake_send(subject: str, body_html: str, to_email: str) -> None:
        sent.append({"subject": subject, "body": body_html, "to": to_email})

    monkeypatch.setattr(mailer, "send_email", fake_send)
    monkeypatch.setattr("routers.auth.send_email", fake_send)
    return sent


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_user(mongo_db) -> Callable[..., Dict[str, Any]]:
    counter = {"n": 0}

    def _make(role: str = "user", email: Optional[str] = None, password: str = TEST_PASSWORD) -> Dict[str, Any]:
        counter["n"] += 1
        email = email or f"{role}{counter['n']}@example.com"
        user_id = create_document(
            "user",
            User(name=f"{role.title()} {counter['n']}", email=email, password_hash=hash_password(password), role=role),
        )
        user = mongo_db["user"].find_one({"email": email})
        user["token"] = create_access_token(user)
        user["headers"] = {"Authorization": f"Bearer {user['token']}"}
        user["id"] = user_id
        return user

    return _make


@pytest.fixture
def admin(make_user) -> Dict[str, Any]:
    return make_user(role="admin")


@pytest.fixture
def user(make_user) -> Dict[str, Any]:
    return make_user(role="user")


@pytest.fixture
def make_trek(mongo_db, admin) -> Callable[..., Dict[str, Any]]:
    def _make(**overrides: Any) -> Dict[str, Any]:
        fields = {
            "title": "Annapurna Circuit",
            "description": "Classic circuit trek.",
            "difficulty": "moderate",
            "duration_days": 10,
            "price": 1200,
            "location": "Nepal",
            "max_group_size": 10,
            "created_by": admin["_id"],
        }
        fields.update(overrides)
        trek_id = create_document("trek", Trek(**fields))
        return mongo_db["trek"].find_one({"_id": ObjectId(trek_id)})

    return _make
