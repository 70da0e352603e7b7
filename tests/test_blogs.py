import pytest


@pytest.fixture
def draft(client, admin):
    response = client.post(
        "/api/blogs",
        headers=admin["headers"],
        json={"title": "Packing List", "content": "Layers, layers, layers.", "tags": "gear"},
    )
    assert response.status_code == 201
    return response.json()["data"]


def test_new_posts_default_to_draft(draft, admin):
    assert draft["status"] == "draft"
    assert draft["tags"] == ["gear"]
    assert draft["author_id"] == str(admin["_id"])


def test_draft_is_invisible_to_the_public(client, draft):
    response = client.get(f"/api/blogs/{draft['id']}")
    assert response.status_code == 404
    assert response.json()["message"] == "Blog not found"

    listing = client.get("/api/blogs")
    assert all(b["id"] != draft["id"] for b in listing.json()["data"])


def test_publishing_makes_post_visible(client, admin, draft):
    response = client.put(f"/api/blogs/{draft['id']}", headers=admin["headers"], json={"status": "published"})
    assert response.status_code == 200

    single = client.get(f"/api/blogs/{draft['id']}")
    assert single.status_code == 200
    assert single.json()["data"]["title"] == "Packing List"
    listing = client.get("/api/blogs")
    assert [b["id"] for b in listing.json()["data"]] == [draft["id"]]


def test_admin_sees_drafts(client, admin, draft):
    response = client.get("/api/blogs/admin/all", headers=admin["headers"])
    assert response.status_code == 200
    assert [b["id"] for b in response.json()["data"]] == [draft["id"]]


def test_admin_listing_is_gated(client, user):
    response = client.get("/api/blogs/admin/all", headers=user["headers"])
    assert response.status_code == 403


def test_title_and_content_required(client, admin):
    response = client.post("/api/blogs", headers=admin["headers"], json={"title": "Only a title"})
    assert response.status_code == 400
    assert response.json()["message"] == "Title and content are required"


def test_search_filter(client, admin):
    for title in ("Monsoon Trekking", "Winter Gear"):
        client.post(
            "/api/blogs",
            headers=admin["headers"],
            json={"title": title, "content": "Body", "status": "published"},
        )
    found = client.get("/api/blogs", params={"search": "monsoon"}).json()["data"]
    assert [b["title"] for b in found] == ["Monsoon Trekking"]


def test_delete_blog(client, admin, draft):
    assert client.delete(f"/api/blogs/{draft['id']}", headers=admin["headers"]).status_code == 200
    again = client.delete(f"/api/blogs/{draft['id']}", headers=admin["headers"])
    assert again.status_code == 404


def test_unknown_status_rejected(client, admin, draft):
    response = client.put(f"/api/blogs/{draft['id']}", headers=admin["headers"], json={"status": "archived"})
    assert response.status_code == 400


@pytest.mark.parametrize("body", [{"title": "   ", "content": "Body"}, {"title": "Title", "content": "  "}])
def test_blank_title_or_content_rejected(client, admin, body):
    response = client.post("/api/blogs", headers=admin["headers"], json=body)
    assert response.status_code == 400
    assert response.json()["message"] == "Title and content are required"
