"""Integration tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from datagate.api import create_app
from datagate.auth import JWTService

SECRET = "test-secret-key-that-is-long-enough"


@pytest.fixture
def jwt_service():
    return JWTService(SECRET)


@pytest.fixture
def client(engine, jwt_service):
    return TestClient(create_app(engine, jwt_service))


@pytest.fixture
def alice_headers(jwt_service, alice_id):
    return {"Authorization": f"Bearer {jwt_service.issue({'userId': alice_id})}"}


@pytest.fixture
def bob_headers(jwt_service, bob_id):
    return {"Authorization": f"Bearer {jwt_service.issue({'userId': bob_id})}"}


def create_post(client, headers, **data):
    response = client.post("/api/post/create", json={"data": data}, headers=headers)
    assert response.status_code == 200
    return response.json()["data"]


class TestCollections:
    def test_list_collections(self, client):
        response = client.get("/api/collections")
        assert response.status_code == 200
        collections = {c["name"]: c for c in response.json()["collections"]}
        assert set(collections) == {"User", "Post", "Comment", "SiteSettings"}
        assert collections["SiteSettings"] == {
            "name": "SiteSettings",
            "key": "siteSettings",
            "singleton": True,
        }


class TestReads:
    def test_anonymous_sees_published_only(self, client, alice_headers):
        create_post(client, alice_headers, title="Public", status="published")
        create_post(client, alice_headers, title="Hidden")

        response = client.post("/api/Post/findMany", json={"orderBy": {"title": "asc"}})
        assert response.status_code == 200
        body = response.json()
        assert body["error"] is None
        assert [p["title"] for p in body["data"]] == ["Public"]
        assert "internalNotes" not in body["data"][0]

    def test_signed_in_sees_both(self, client, alice_headers, bob_headers):
        create_post(client, alice_headers, title="Public", status="published")
        create_post(client, alice_headers, title="Hidden")
        response = client.post("/api/post/count", headers=bob_headers)
        assert response.json() == {"data": 2, "error": None}

    def test_find_unique_missing_is_null(self, client):
        response = client.post("/api/post/findUnique", json={"id": "nope"})
        assert response.status_code == 200
        assert response.json() == {"data": None, "error": None}

    def test_invalid_token_is_anonymous(self, client, alice_headers):
        create_post(client, alice_headers, title="Hidden")
        response = client.post("/api/post/count", headers={"Authorization": "Bearer junk"})
        assert response.json()["data"] == 0


class TestWrites:
    def test_create_returns_masked_row(self, client, alice_headers, alice_id):
        post = create_post(client, alice_headers, title="Mine", author={"connect": {"id": alice_id}})
        assert post["title"] == "Mine"
        assert post["authorId"] == alice_id

    def test_denied_update_is_empty_success(self, client, alice_headers, bob_headers):
        post = create_post(client, alice_headers, title="Mine")
        response = client.post(
            "/api/post/update", json={"id": post["id"], "data": {"title": "Bob's now"}}, headers=bob_headers
        )
        assert response.status_code == 200
        assert response.json() == {"data": None, "error": None}

    def test_validation_error_is_422(self, client, alice_headers):
        response = client.post("/api/post/create", json={"data": {}}, headers=alice_headers)
        assert response.status_code == 422
        assert response.json() == {
            "data": None,
            "error": {
                "kind": "validation",
                "messages": ["Title is required"],
                "fieldErrors": {"title": "Title is required"},
            },
        }

    def test_password_serialized_without_hash(self, client):
        response = client.post(
            "/api/user/create", json={"data": {"name": "Carol", "password": "long enough"}}
        )
        assert response.json()["data"]["password"] == {"isSet": True}


class TestSingletonRoutes:
    def test_get_auto_creates(self, client):
        response = client.get("/api/siteSettings")
        assert response.status_code == 200
        assert response.json()["data"]["siteName"] == "My Site"

    def test_structural_error_is_409(self, client):
        client.get("/api/siteSettings")
        response = client.post("/api/siteSettings/findMany")
        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "structural"


class TestErrors:
    def test_unknown_collection_is_404(self, client):
        response = client.post("/api/nope/findMany")
        assert response.status_code == 404
        assert "Unknown collection" in response.json()["detail"]

    def test_unknown_operation_is_400(self, client):
        response = client.post("/api/post/upsert")
        assert response.status_code == 400

    def test_bad_filter_is_400(self, client, bob_headers):
        response = client.post(
            "/api/post/findMany", json={"where": {"nope": 1}}, headers=bob_headers
        )
        assert response.status_code == 400

    def test_unique_violation_is_409(self, client, alice_id):
        response = client.post(
            "/api/user/create",
            json={"data": {"name": "Copy", "email": "alice@example.com"}},
        )
        assert response.status_code == 409
        assert "Unique constraint failed on User" in response.json()["detail"]

    def test_missing_id_is_400(self, client):
        response = client.post("/api/post/delete", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "delete requires id"

    def test_without_jwt_service_everyone_is_anonymous(self, engine, jwt_service, alice_id):
        client = TestClient(create_app(engine))
        headers = {"Authorization": f"Bearer {jwt_service.issue({'userId': alice_id})}"}
        response = client.post("/api/post/create", json={"data": {"title": "x"}}, headers=headers)
        assert response.json() == {"data": None, "error": None}
