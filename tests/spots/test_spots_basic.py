import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from fastapi.testclient import TestClient

from spots_service import store
from spots_service.catalog import parse_catalog
from spots_service.database import Base, engine
from spots_service.errors import StorageFailure
from spots_service.main import app, get_catalog

client = TestClient(app)

TEST_CATALOG = parse_catalog(
    [
        {"Building": "Robarts Library", "Room Number": "4033", "Seating Spaces": "48",
         "Group/Individual": "Individual", "Type of space": "Library"},
        {"Building": "Gerstein", "Room Number": "B112", "Seating Spaces": "16",
         "Group/Individual": "Group", "Type of space": "Study Room"},
        {"Building": "Bahen Centre", "Room Number": "2270", "Seating Spaces": "25",
         "Group/Individual": "Group", "Type of space": "Computer Lab"},
        {"Building": "Sidney Smith Hall", "Room Number": "1072", "Seating Spaces": "30",
         "Group/Individual": "Individual", "Type of space": "Study Room"},
        {"Building": "Student Commons", "Room Number": "Lounge", "Seating Spaces": "Varies",
         "Group/Individual": "Group", "Type of space": "Lounge"},
    ]
)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_catalog] = lambda: TEST_CATALOG
    yield
    app.dependency_overrides.pop(get_catalog, None)
    Base.metadata.drop_all(bind=engine)


def review(spot_key, author, rating):
    res = client.post(
        f"/api/v1/spots/{spot_key}/reviews",
        json={"author": author, "text": "Visited", "rating": rating},
    )
    assert res.status_code == 201
    return res.json()


def keys_of(res):
    return [entry["spot"]["spot_key"] for entry in res.json()]


def test_root_health_check():
    res = client.get("/")
    assert res.status_code == 200
    assert res.json() == {"service": "spots", "status": "running"}


def test_list_spots_with_ratings():
    review("gerstein-b112", "a", 5)
    review("gerstein-b112", "b", 4)

    res = client.get("/api/v1/spots")
    assert res.status_code == 200
    data = res.json()
    assert len(data) == 5

    by_key = {entry["spot"]["spot_key"]: entry for entry in data}
    gerstein = by_key["gerstein-b112"]
    assert gerstein["spot"]["Building"] == "Gerstein"
    assert gerstein["spot"]["capacity"] == 16
    assert gerstein["rating"]["average"] == pytest.approx(4.5)
    assert gerstein["rating"]["total_reviews"] == 2
    assert gerstein["rating"]["has_reviews"] is True

    robarts = by_key["robarts-library-4033"]["rating"]
    assert robarts == {"average": 0, "total_reviews": 0, "has_reviews": False}


def test_list_spots_search_type_and_capacity():
    res = client.get("/api/v1/spots", params={"search": "library"})
    assert keys_of(res) == ["robarts-library-4033"]

    res = client.get("/api/v1/spots", params={"type": "study room"})
    assert keys_of(res) == ["gerstein-b112", "sidney-smith-hall-1072"]

    res = client.get("/api/v1/spots", params={"capacity": "medium"})
    assert keys_of(res) == ["bahen-centre-2270", "sidney-smith-hall-1072"]

    res = client.get("/api/v1/spots", params={"type": "Study Room", "capacity": "small"})
    assert keys_of(res) == ["gerstein-b112"]


def test_list_spots_rejects_unknown_capacity():
    res = client.get("/api/v1/spots", params={"capacity": "huge"})
    assert res.status_code == 422


def test_listing_survives_storage_failure_for_one_spot(monkeypatch):
    review("robarts-library-4033", "a", 3)
    real_list_reviews = store.list_reviews

    def flaky(db, spot_key):
        if spot_key == "robarts-library-4033":
            raise StorageFailure("unreachable")
        return real_list_reviews(db, spot_key)

    monkeypatch.setattr(store, "list_reviews", flaky)

    res = client.get("/api/v1/spots")
    assert res.status_code == 200
    by_key = {entry["spot"]["spot_key"]: entry for entry in res.json()}
    assert len(by_key) == 5
    assert by_key["robarts-library-4033"]["rating"]["total_reviews"] == 0


def test_space_types_menu():
    res = client.get("/api/v1/spots/types")
    assert res.status_code == 200
    assert res.json() == ["all", "Library", "Study Room", "Computer Lab", "Lounge"]


def test_spot_detail():
    review("gerstein-b112", "a", 2)
    review("gerstein-b112", "b", 5)
    review("gerstein-b112", "c", 5)
    review("sidney-smith-hall-1072", "a", 4)

    res = client.get("/api/v1/spots/gerstein-b112", params={"sort": "highest", "min_rating": "3"})
    assert res.status_code == 200
    data = res.json()

    assert data["spot"]["Room Number"] == "B112"
    assert data["rating"]["total_reviews"] == 3
    assert data["rating"]["average"] == pytest.approx(4.0)
    assert data["breakdown"] == {"5": 2, "4": 0, "3": 0, "2": 1, "1": 0}
    assert [r["author"] for r in data["reviews"]] == ["c", "b"]
    assert [s["spot"]["spot_key"] for s in data["similar"]] == ["sidney-smith-hall-1072"]
    assert data["similar"][0]["rating"]["total_reviews"] == 1
    assert data["reviews_available"] is True


def test_spot_detail_not_found():
    res = client.get("/api/v1/spots/no-such-spot")
    assert res.status_code == 404
    body = res.json()
    assert body["path"] == "/api/v1/spots/no-such-spot"
    assert body["method"] == "GET"
    assert body["detail"] == "Study spot not found"


def test_spot_detail_renders_when_store_unavailable(monkeypatch):
    def failing(db, spot_key):
        raise StorageFailure("unreachable")

    monkeypatch.setattr(store, "list_reviews", failing)

    res = client.get("/api/v1/spots/gerstein-b112")
    assert res.status_code == 200
    data = res.json()
    assert data["rating"]["has_reviews"] is False
    assert data["reviews"] == []
    assert data["reviews_available"] is False


def test_spot_rating_endpoint():
    review("bahen-centre-2270", "a", 1)
    review("bahen-centre-2270", "b", 4)

    res = client.get("/api/v1/spots/bahen-centre-2270/rating")
    assert res.status_code == 200
    assert res.json()["average"] == pytest.approx(2.5)

    assert client.get("/api/v1/spots/no-such-spot/rating").status_code == 404
