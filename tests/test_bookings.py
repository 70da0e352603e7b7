from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId


def start_date() -> str:
    return (datetime.now(timezone.utc) + timedelta(days=30)).isoformat()


@pytest.fixture
def trek(make_trek):
    return make_trek(price=1200)


@pytest.fixture
def booking(client, user, trek):
    response = client.post(
        "/api/bookings",
        headers=user["headers"],
        json={"trekId": str(trek["_id"]), "startDate": start_date(), "participants": 2},
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestCreateBooking:
    def test_requires_authentication(self, client, trek):
        response = client.post(
            "/api/bookings", json={"trekId": str(trek["_id"]), "startDate": start_date(), "participants": 2}
        )
        assert response.status_code == 401

    def test_validates_missing_fields(self, client, user, trek):
        response = client.post("/api/bookings", headers=user["headers"], json={"trekId": str(trek["_id"])})
        assert response.status_code == 400
        assert response.json()["message"] == "trekId, startDate, participants are required"

    def test_rejects_unknown_trek(self, client, user):
        response = client.post(
            "/api/bookings",
            headers=user["headers"],
            json={"trekId": str(ObjectId()), "startDate": start_date(), "participants": 2},
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Trek not found"

    def test_rejects_non_positive_participants(self, client, user, trek):
        response = client.post(
            "/api/bookings",
            headers=user["headers"],
            json={"trekId": str(trek["_id"]), "startDate": start_date(), "participants": -1},
        )
        assert response.status_code == 400

    def test_total_price_is_participants_times_trek_price(self, booking, user, trek):
        assert booking["total_price"] == 2 * 1200
        assert booking["status"] == "pending"
        assert booking["user_id"] == str(user["_id"])
        assert booking["trek"]["id"] == str(trek["_id"])


class TestMyBookings:
    def test_lists_only_own_bookings(self, client, user, booking, make_user):
        other = make_user()
        mine = client.get("/api/bookings", headers=user["headers"])
        assert any(b["id"] == booking["id"] for b in mine.json()["data"])

        theirs = client.get("/api/bookings", headers=other["headers"])
        assert theirs.status_code == 200
        assert theirs.json()["data"] == []

    def test_other_users_booking_is_not_found(self, client, booking, make_user):
        other = make_user()
        response = client.get(f"/api/bookings/{booking['id']}", headers=other["headers"])
        assert response.status_code == 404
        assert response.json()["message"] == "Booking not found"

    def test_update_participants_recomputes_price(self, client, user, booking):
        response = client.put(f"/api/bookings/{booking['id']}", headers=user["headers"], json={"participants": 3})
        assert response.status_code == 200
        assert response.json()["message"] == "Booking updated successfully"
        assert response.json()["data"]["total_price"] == 3600

    def test_update_uses_current_trek_price(self, client, user, booking, trek, mongo_db):
        mongo_db["trek"].update_one({"_id": trek["_id"]}, {"$set": {"price": 1500}})
        response = client.put(f"/api/bookings/{booking['id']}", headers=user["headers"], json={"participants": 2})
        assert response.json()["data"]["total_price"] == 3000

    def test_update_start_date_only_keeps_price(self, client, user, booking):
        response = client.put(f"/api/bookings/{booking['id']}", headers=user["headers"], json={"startDate": start_date()})
        assert response.status_code == 200
        assert response.json()["data"]["total_price"] == 2400

    def test_cancelled_booking_cannot_be_updated(self, client, user, booking):
        cancel = client.delete(f"/api/bookings/{booking['id']}", headers=user["headers"])
        assert cancel.status_code == 200
        assert cancel.json()["data"]["status"] == "cancelled"

        response = client.put(f"/api/bookings/{booking['id']}", headers=user["headers"], json={"participants": 3})
        assert response.status_code == 400
        assert response.json()["message"] == "Only pending bookings can be updated"

    def test_completed_booking_cannot_be_cancelled(self, client, user, booking, mongo_db):
        mongo_db["booking"].update_one({"_id": ObjectId(booking["id"])}, {"$set": {"status": "completed"}})
        response = client.delete(f"/api/bookings/{booking['id']}", headers=user["headers"])
        assert response.status_code == 400
        assert response.json()["message"] == "Only pending or confirmed bookings can be cancelled"


class TestAdminBookings:
    def test_users_cannot_list_all(self, client, user):
        response = client.get("/api/bookings/admin/all", headers=user["headers"])
        assert response.status_code == 403
        assert response.json()["message"] == "Forbidden, admins only"

    def test_admin_lists_all_with_user_embedded(self, client, admin, booking):
        response = client.get("/api/bookings/admin/all", headers=admin["headers"])
        assert response.status_code == 200
        item = next(b for b in response.json()["data"] if b["id"] == booking["id"])
        assert item["user"]["id"] == booking["user_id"]
        assert "password_hash" not in item["user"]

    def test_admin_confirms_and_assigns_guide(self, client, admin, booking, mongo_db):
        guide_id = mongo_db["guide"].insert_one({"name": "Pemba", "languages": []}).inserted_id
        response = client.put(
            f"/api/bookings/admin/{booking['id']}",
            headers=admin["headers"],
            json={"status": "confirmed", "guideId": str(guide_id)},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "confirmed"
        assert data["guide"]["name"] == "Pemba"

    def test_admin_update_rejects_unknown_guide(self, client, admin, booking):
        response = client.put(
            f"/api/bookings/admin/{booking['id']}", headers=admin["headers"], json={"guideId": str(ObjectId())}
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Guide not found"

    def test_admin_update_rejects_unknown_status(self, client, admin, booking):
        response = client.put(f"/api/bookings/admin/{booking['id']}", headers=admin["headers"], json={"status": "lost"})
        assert response.status_code == 400

    def test_admin_deletes_booking(self, client, admin, booking):
        response = client.delete(f"/api/bookings/admin/{booking['id']}", headers=admin["headers"])
        assert response.status_code == 200
        again = client.get(f"/api/bookings/admin/{booking['id']}", headers=admin["headers"])
        assert again.status_code == 404

