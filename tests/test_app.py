def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Welcome to the JustHike API"}


def test_schema_lists_collections(client):
    response = client.get("/schema")
    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"user", "trek", "guide", "booking", "blog"}
    assert "email" in body["user"]["properties"]
    assert "duration_days" in body["trek"]["properties"]


def test_database_diagnostics(client, mongo_db):
    mongo_db["trek"].insert_one({"title": "Probe"})
    response = client.get("/test")
    assert response.status_code == 200
    body = response.json()
    assert body["connection_status"] == "Connected"
    assert "trek" in body["collections"]


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_malformed_json_is_a_bad_request(client):
    response = client.post(
        "/api/auth/login", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
