from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from main import app

ADMIN = {"X-User-Id": "1", "X-Admin": "true"}


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client


def _iso(days: int) -> str:
    moment = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return (moment + timedelta(days=days)).isoformat()


def _create(client, path: str, payload: dict, headers: dict = ADMIN) -> dict:
    response = client.post(path, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _seed(client, suffix: str) -> dict:
    owner = _create(client, "/api/users/", {
        "name": "Owner",
        "email": f"owner-{suffix}@example.com",
        "password_hash": "hashed",
    }, headers={})
    owner_headers = {"X-User-Id": str(owner["id"])}
    state = _create(client, "/api/states/", {"name": f"state {suffix}"})
    city = _create(client, "/api/cities/", {"name": "springfield", "state_id": state["id"]})
    location = _create(client, "/api/locations/", {
        "name": "Central",
        "address": "10 Elm St",
        "phone_number": "+1 217 555 0199",
        "city_id": city["id"],
        "user_id": owner["id"],
    }, headers=owner_headers)
    car = _create(client, "/api/cars/", {
        "location_id": location["id"],
        "brand": "Ford",
        "model": "Focus",
        "year": 2020,
        "price_by_day": 100,
        "registration_number": f"reg{suffix}00",
    })
    return {
        "owner": owner,
        "owner_headers": owner_headers,
        "state": state,
        "city": city,
        "location": location,
        "car": car,
    }


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "Rental Core Running"}


def test_request_id_is_echoed(client):
    response = client.get("/", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"
    assert client.get("/").headers["X-Request-ID"]


def test_state_writes_need_admin(client):
    response = client.post("/api/states/", json={"name": "Vermont"})
    assert response.status_code == 401

    response = client.post("/api/states/", json={"name": "Vermont"}, headers={"X-User-Id": "5"})
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_duplicate_state_is_conflict(client):
    created = _create(client, "/api/states/", {"name": "rhode island"})
    assert created["name"] == "Rhode Island"

    response = client.post("/api/states/", json={"name": "RHODE  ISLAND"}, headers=ADMIN)
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "DUPLICATE"
    assert body["error"]["details"] == {"scope": "state.name"}


def test_payload_shape_errors(client):
    response = client.post("/api/states/", json={"name": "Ohio", "extra": 1}, headers=ADMIN)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_city_with_missing_state(client):
    response = client.post("/api/cities/", json={"name": "Nowhere", "state_id": 99999}, headers=ADMIN)
    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "REFERENCE_ERROR"
    assert body["error"]["details"] == {"field": "state_id"}


def test_booking_flow(client):
    seed = _seed(client, "a1")
    car_id = seed["car"]["id"]
    renter = _create(client, "/api/users/", {
        "name": "Renter",
        "email": "renter-a1@example.com",
        "password_hash": "hashed",
    }, headers={})
    renter_headers = {"X-User-Id": str(renter["id"])}

    booked = _create(client, "/api/reservations/", {
        "car_id": car_id,
        "start_date": _iso(10),
        "end_date": _iso(13),
    }, headers=renter_headers)
    assert booked["status"] == "pending"
    assert booked["total_price"] == 300
    assert booked["user_id"] == renter["id"]

    response = client.post("/api/reservations/", json={
        "car_id": car_id,
        "start_date": _iso(11),
        "end_date": _iso(12),
    }, headers=renter_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "RESERVATION_CONFLICT"

    availability = client.get(
        f"/api/cars/{car_id}/availability",
        params={"start_date": _iso(13), "end_date": _iso(15)},
    )
    assert availability.json()["data"] == {"car_id": car_id, "available": True}

    status_url = f"/api/reservations/{booked['id']}/status"
    response = client.patch(status_url, json={"status": "completed"}, headers=ADMIN)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    response = client.patch(status_url, json={"status": "confirmed"}, headers=renter_headers)
    assert response.status_code == 403

    response = client.patch(status_url, json={"status": "confirmed"}, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "confirmed"

    mine = client.get("/api/reservations/my-reservations", headers=renter_headers).json()["data"]
    assert [reservation["id"] for reservation in mine] == [booked["id"]]


def test_booking_in_the_past_is_rejected(client):
    seed = _seed(client, "b2")
    response = client.post("/api/reservations/", json={
        "car_id": seed["car"]["id"],
        "start_date": _iso(-2),
        "end_date": _iso(1),
    }, headers=seed["owner_headers"])
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_location_ownership(client):
    seed = _seed(client, "c3")
    location_url = f"/api/locations/{seed['location']['id']}"

    response = client.put(location_url, json={"name": "Hijacked"}, headers={"X-User-Id": "424242"})
    assert response.status_code == 403

    response = client.put(location_url, json={"name": "  Central Station "}, headers=seed["owner_headers"])
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Central Station"

    response = client.delete(f"{location_url}/soft", headers=seed["owner_headers"])
    assert response.status_code == 200
    assert client.get(location_url).status_code == 404

    listed = client.get("/api/locations/", params={"user_id": seed["owner"]["id"], "deleted": True})
    assert [location["id"] for location in listed.json()["data"]] == [seed["location"]["id"]]


def test_car_filters(client):
    seed = _seed(client, "d4")
    location_id = seed["location"]["id"]
    _create(client, "/api/cars/", {
        "location_id": location_id,
        "brand": "Porsche",
        "model": "911",
        "year": 2023,
        "price_by_day": 900,
        "registration_number": "POR911D4",
    })

    response = client.get("/api/cars/", params={"location_id": location_id, "min_price": 500})
    assert [car["brand"] for car in response.json()["data"]] == ["Porsche"]

    response = client.get("/api/cars/", params={"location_id": location_id})
    assert [car["price_by_day"] for car in response.json()["data"]] == [100, 900]


def test_delete_state_cascades(client):
    seed = _seed(client, "e5")
    _create(client, "/api/reservations/", {
        "car_id": seed["car"]["id"],
        "start_date": _iso(20),
        "end_date": _iso(21),
    }, headers=seed["owner_headers"])
    state_url = f"/api/states/{seed['state']['id']}"

    response = client.delete(state_url, params={"cascade": False}, headers=ADMIN)
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"field": "city"}

    response = client.delete(state_url, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["data"]["deleted"] == {
        "reservation": 1,
        "car": 1,
        "location": 1,
        "city": 1,
        "state": 1,
    }
    assert client.get(f"/api/cities/{seed['city']['id']}").status_code == 404
    assert client.get(f"/api/cars/{seed['car']['id']}").status_code == 404


def test_state_listing_and_autocomplete(client):
    _create(client, "/api/states/", {"name": "zz listing one"})
    _create(client, "/api/states/", {"name": "zz listing two"})

    response = client.get("/api/states/", params={"search": "zz listing", "limit": 1})
    page = response.json()["data"]
    assert page["meta"]["total"] == 2
    assert page["meta"]["pages"] == 2
    assert [state["name"] for state in page["data"]] == ["Zz Listing One"]

    response = client.get("/api/states/autocomplete/zz list")
    assert response.json()["data"] == ["Zz Listing One", "Zz Listing Two"]


def test_users_me_and_soft_delete(client):
    user = _create(client, "/api/users/", {
        "name": "Someone",
        "email": "someone-f6@example.com",
        "password_hash": "hashed",
    }, headers={})
    headers = {"X-User-Id": str(user["id"])}

    assert client.get("/api/users/me", headers=headers).json()["data"]["email"] == "someone-f6@example.com"

    response = client.post("/api/users/", json={
        "name": "Sneaky",
        "email": "sneaky-f6@example.com",
        "password_hash": "hashed",
        "is_admin": True,
    })
    assert response.status_code == 403

    assert client.delete(f"/api/users/{user['id']}/soft", headers=headers).status_code == 200
    assert client.get("/api/users/me", headers=headers).status_code == 404


def test_location_search_matches_name_or_address(client):
    seed = _seed(client, "g7")
    owner_id = seed["owner"]["id"]
    harbour = _create(client, "/api/locations/", {
        "name": "Harbour Point",
        "address": "5 Quay Road",
        "phone_number": "+12175550123",
        "city_id": seed["city"]["id"],
        "user_id": owner_id,
    }, headers=seed["owner_headers"])

    def search(term, **params):
        response = client.get("/api/locations/", params={"user_id": owner_id, "search": term, **params})
        return [location["id"] for location in response.json()["data"]]

    assert search("harbour") == [harbour["id"]]
    assert search("ELM ST") == [seed["location"]["id"]]
    assert search("%") == []

    client.delete(f"/api/locations/{harbour['id']}/soft", headers=seed["owner_headers"])
    assert search("quay") == []
    assert search("quay", deleted=True) == [harbour["id"]]


def test_only_admins_hand_a_location_to_another_owner(client):
    seed = _seed(client, "h8")
    other = _create(client, "/api/users/", {
        "name": "Other",
        "email": "other-h8@example.com",
        "password_hash": "hashed",
    }, headers={})
    location_url = f"/api/locations/{seed['location']['id']}"

    response = client.put(location_url, json={"user_id": other["id"]}, headers=seed["owner_headers"])
    assert response.status_code == 403

    response = client.put(
        location_url,
        json={"user_id": seed["owner"]["id"], "name": "Central Depot"},
        headers=seed["owner_headers"],
    )
    assert response.status_code == 200

    response = client.put(location_url, json={"user_id": other["id"]}, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["data"]["user_id"] == other["id"]


def test_cars_of_soft_deleted_location_leave_the_catalog(client):
    seed = _seed(client, "i9")
    car_url = f"/api/cars/{seed['car']['id']}"
    assert client.get(car_url).status_code == 200

    client.delete(f"/api/locations/{seed['location']['id']}/soft", headers=seed["owner_headers"])

    assert client.get(car_url).status_code == 404
    response = client.post("/api/reservations/", json={
        "car_id": seed["car"]["id"],
        "start_date": _iso(30),
        "end_date": _iso(31),
    }, headers=seed["owner_headers"])
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"field": "car_id"}
