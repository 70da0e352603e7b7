import pytest

from security import verify_password
from seed import ensure_admin_user


def test_creates_admin(mongo_db):
    ensure_admin_user(email="Boss@JustHike.com", password="admin123", name="Boss")
    stored = mongo_db["user"].find_one({"email": "boss@justhike.com"})
    assert stored["role"] == "admin"
    assert verify_password("admin123", stored["password_hash"])


def test_promotes_existing_account(mongo_db, user):
    user_id = ensure_admin_user(email=user["email"], password="promoted1")
    assert user_id == user["id"]
    stored = mongo_db["user"].find_one({"_id": user["_id"]})
    assert stored["role"] == "admin"
    assert verify_password("promoted1", stored["password_hash"])
    assert mongo_db["user"].count_documents({}) == 1


def test_password_is_required(monkeypatch):
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    with pytest.raises(ValueError):
        ensure_admin_user(email="boss@justhike.com")
