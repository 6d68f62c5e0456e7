import pytest
from pymongo.errors import ServerSelectionTimeoutError


def _register_super(client, email="owner@acme.com", password="secret123"):
    response = client.post(
        "/api/vendors/register",
        json={"name": "Acme Fleet", "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def super_vendor(client):
    return _register_super(client)


@pytest.fixture
def city_vendor(client, super_vendor):
    response = client.post(
        "/api/vendors/register/city",
        headers=_auth(super_vendor["token"]),
        json={
            "name": "Metro Fleet",
            "email": "metro@acme.com",
            "password": "secret123",
            "parent_vendor_id": super_vendor["vendor"]["vendor_id"],
            "permissions": ["ALL"],
            "operating_area": {"city": "Metropolis", "zones": ["North", "South"]},
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_register_super_vendor(client, mailer):
    body = client.post(
        "/api/vendors/register",
        json={"name": "Acme Fleet", "email": "Owner@Acme.com", "password": "secret123"},
    ).json()

    assert body["success"] is True
    assert body["data"]["token"]
    vendor = body["data"]["vendor"]
    assert vendor["vendor_type"] == "SUPER"
    assert vendor["email"] == "owner@acme.com"
    assert "password_hash" not in vendor
    assert "owner@acme.com" in mailer.sent_to()


def test_self_registration_of_child_type_is_rejected(client):
    response = client.post(
        "/api/vendors/register",
        json={"name": "Rogue", "email": "rogue@acme.com", "password": "secret123", "vendor_type": "CITY"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"]["statusCode"] == 400


def test_duplicate_email_conflicts(client, super_vendor):
    response = client.post(
        "/api/vendors/register",
        json={"name": "Again", "email": "owner@acme.com", "password": "secret123"},
    )
    assert response.status_code == 409


def test_validation_error_uses_error_envelope(client):
    response = client.post("/api/vendors/register", json={"name": "No Email", "password": "secret123"})
    assert response.status_code == 400
    body = response.json()
    assert body == {"success": False, "error": {"message": body["error"]["message"], "statusCode": 400}}
    assert "email" in body["error"]["message"]


def test_login(client, super_vendor):
    response = client.post("/api/vendors/login", json={"email": "owner@acme.com", "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["data"]["vendor"]["vendor_id"] == super_vendor["vendor"]["vendor_id"]

    bad = client.post("/api/vendors/login", json={"email": "owner@acme.com", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json() == {"success": False, "error": {"message": "Invalid email or password", "statusCode": 401}}


def test_protected_routes_require_a_token(client):
    response = client.get("/api/vendors/profile")
    assert response.status_code == 401
    assert response.json()["error"]["statusCode"] == 401

    garbage = client.get("/api/vendors/profile", headers=_auth("not-a-jwt"))
    assert garbage.status_code == 401


def test_profile_round_trip(client, super_vendor):
    headers = _auth(super_vendor["token"])
    response = client.patch("/api/vendors/profile", headers=headers, json={"name": "Acme Mobility"})
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Acme Mobility"

    profile = client.get("/api/vendors/profile", headers=headers).json()["data"]
    assert profile["name"] == "Acme Mobility"


def test_profile_cannot_change_hierarchy_fields(client, super_vendor):
    response = client.patch(
        "/api/vendors/profile",
        headers=_auth(super_vendor["token"]),
        json={"vendor_type": "CITY"},
    )
    assert response.status_code == 400


def test_register_city_vendor(client, super_vendor, city_vendor):
    assert city_vendor["vendor_type"] == "CITY"
    assert city_vendor["parent_vendor_id"] == super_vendor["vendor"]["vendor_id"]

    tree = client.get("/api/vendors/hierarchy", headers=_auth(super_vendor["token"])).json()["data"]
    assert [child["id"] for child in tree["vendor"]["children"]] == [city_vendor["vendor_id"]]


def test_local_vendor_must_fit_city_operating_area(client, super_vendor, city_vendor):
    headers = _auth(super_vendor["token"])
    payload = {
        "name": "Corner Cabs",
        "email": "corner@acme.com",
        "password": "secret123",
        "parent_vendor_id": city_vendor["vendor_id"],
        "operating_area": {"city": "Gotham", "zones": ["North"]},
    }

    mismatch = client.post("/api/vendors/register/local", headers=headers, json=payload)
    assert mismatch.status_code == 400
    assert mismatch.json()["success"] is False

    payload["operating_area"] = {"city": "Metropolis", "zones": ["North"]}
    created = client.post("/api/vendors/register/local", headers=headers, json=payload)
    assert created.status_code == 201
    assert created.json()["data"]["vendor_type"] == "LOCAL"


def test_vehicle_lifecycle_over_http(client, super_vendor):
    headers = _auth(super_vendor["token"])

    created = client.post(
        "/api/vehicles",
        headers=headers,
        json={
            "registration_number": "ka01ab1234",
            "model": "Innova",
            "seating_capacity": 7,
            "fuel_type": "DIESEL",
            "documents": {"permit": {"number": "P-1", "document_url": "https://files/p.pdf"}},
        },
    )
    assert created.status_code == 201, created.text
    vehicle = created.json()["data"]
    assert vehicle["registration_number"] == "KA01AB1234"
    assert [d["document_type"] for d in vehicle["documents"]] == ["permit"]

    listed = client.get("/api/vehicles", headers=headers).json()["data"]
    assert [v["vehicle_id"] for v in listed] == [vehicle["vehicle_id"]]

    status = client.get(f"/api/vehicles/{vehicle['vehicle_id']}/documents/status", headers=headers).json()["data"]
    assert status["total"] == 1
    assert status["is_compliant"] is False

    deleted = client.delete(f"/api/vehicles/{vehicle['vehicle_id']}", headers=headers)
    assert deleted.status_code == 200
    assert client.get(f"/api/vehicles/{vehicle['vehicle_id']}", headers=headers).status_code == 404


def test_vendor_cannot_reach_another_vendors_vehicle(client, super_vendor):
    other = _register_super(client, email="other@acme.com")
    created = client.post(
        "/api/vehicles",
        headers=_auth(super_vendor["token"]),
        json={"registration_number": "KA09ZZ0001", "model": "Dzire", "seating_capacity": 4, "fuel_type": "CNG"},
    )
    vehicle_id = created.json()["data"]["vehicle_id"]

    response = client.get(f"/api/vehicles/{vehicle_id}", headers=_auth(other["token"]))
    assert response.status_code == 403


def test_request_stats_are_tracked(client, super_vendor):
    client.post("/api/vendors/login", json={"email": "owner@acme.com", "password": "wrong-pass"})

    stats = client.get("/api/v1/monitoring/stats", headers=_auth(super_vendor["token"])).json()["data"]

    assert stats["requests"]["total"] >= 2
    assert stats["requests"]["failed"] >= 1


def test_database_failure_renders_503(client, super_vendor, monkeypatch):
    async def broken(vendor_id):
        raise ServerSelectionTimeoutError("mongo down")

    monkeypatch.setattr(client.app.state.services.vendors, "get_dashboard", broken)

    response = client.get("/api/vendors/dashboard", headers=_auth(super_vendor["token"]))

    assert response.status_code == 503
    assert response.json()["error"]["message"] == "Database unavailable, please retry"
