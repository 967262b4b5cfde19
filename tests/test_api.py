"""Integration tests for the HTTP routes."""

import json
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import PASSWORD, FakeClock, login_headers
from memo_website.backend.config import Config
from memo_website.backend.errors import for_status
from memo_website.backend.main import create_app


def create(client: TestClient, headers: dict[str, str], title: str = "A", content: str = "B") -> dict:
    response = client.post("/api/memos", json={"title": title, "content": content}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestSystemRoutes:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root_without_website(self, client: TestClient) -> None:
        assert client.get("/").json()["message"] == "Memo API is running"


class TestAuthRoutes:
    def test_register(self, client: TestClient) -> None:
        response = client.post(
            "/auth/register",
            json={"email": "new@example.com", "password": PASSWORD, "name": "New", "nickname": "newbie"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["nickname"] == "newbie"
        assert "password" not in str(data["user"])
        assert data["passwordStrength"]["level"] == "strong"

    def test_register_duplicate(self, client: TestClient) -> None:
        client.post("/auth/register", json={"email": "dup@example.com", "password": PASSWORD})
        response = client.post("/auth/register", json={"email": "dup@example.com", "password": PASSWORD})

        assert response.status_code == 409
        assert response.json() == {"error": "Email already exists", "code": "CONFLICT"}

    def test_register_invalid_email(self, client: TestClient) -> None:
        response = client.post("/auth/register", json={"email": "not-an-email", "password": PASSWORD})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_register_short_password(self, client: TestClient) -> None:
        response = client.post("/auth/register", json={"email": "s@example.com", "password": "short"})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_login_failure(self, client: TestClient) -> None:
        client.post("/auth/register", json={"email": "x@example.com", "password": PASSWORD})
        response = client.post("/auth/login", json={"email": "x@example.com", "password": "wrong-password"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password", "code": "UNAUTHORIZED"}

    def test_login_sets_session_cookie(self, client: TestClient) -> None:
        client.post("/auth/register", json={"email": "c@example.com", "password": PASSWORD})
        response = client.post("/auth/login", json={"email": "c@example.com", "password": PASSWORD})

        assert response.status_code == 200
        assert response.cookies.get("memo_session") == response.json()["token"]
        # No Authorization header: the cookie alone authenticates
        assert client.get("/api/memos").status_code == 200

    def test_me(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        response = client.get("/auth/me", headers=alice_headers)
        assert response.status_code == 200
        assert response.json()["email"] == "alice@example.com"

    def test_logout(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        assert client.post("/auth/logout", headers=alice_headers).status_code == 200
        assert client.get("/api/memos", headers=alice_headers).status_code == 401
        assert client.post("/auth/logout", headers=alice_headers).status_code == 401

    def test_password_strength(self, client: TestClient) -> None:
        response = client.post("/auth/password-strength", json={"password": "abcdefgh"})
        assert response.status_code == 200
        assert response.json()["score"] == 2
        assert response.json()["level"] == "medium"


class TestSessionGuard:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/api/memos"),
            ("POST", "/api/memos"),
            ("GET", "/api/memos/memo_1"),
            ("PUT", "/api/memos/memo_1"),
            ("DELETE", "/api/memos/memo_1"),
            ("GET", "/auth/me"),
        ],
    )
    def test_requires_session(self, client: TestClient, method: str, path: str) -> None:
        response = client.request(method, path, json={"title": "A", "content": "B"})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_rejects_unknown_token(self, client: TestClient) -> None:
        response = client.get("/api/memos", headers={"Authorization": "Bearer sess_forged"})
        assert response.status_code == 401

    def test_body_user_id_is_ignored(self, client: TestClient, alice_headers: dict[str, str],
                                      bob_headers: dict[str, str]) -> None:
        alice_id = client.get("/auth/me", headers=alice_headers).json()["id"]
        response = client.post(
            "/api/memos",
            json={"title": "A", "content": "B", "userId": alice_id, "user_id": alice_id},
            headers=bob_headers,
        )

        assert response.status_code == 201
        assert response.json()["userId"] != alice_id
        assert client.get("/api/memos", headers=alice_headers).json() == []


class TestMemoRoutes:
    def test_roundtrip(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        memo = create(client, alice_headers)

        fetched = client.get(f"/api/memos/{memo['id']}", headers=alice_headers).json()
        assert fetched["title"] == "A"
        assert fetched["content"] == "B"
        assert fetched["createdAt"] == fetched["updatedAt"]

        response = client.put(f"/api/memos/{memo['id']}", json={"title": "C"}, headers=alice_headers)
        assert response.status_code == 200
        updated = response.json()
        assert updated["title"] == "C"
        assert updated["content"] == "B"
        assert updated["updatedAt"] > updated["createdAt"]

    @pytest.mark.parametrize(
        "payload",
        [{"title": "", "content": "B"}, {"title": "A", "content": ""}, {"title": "A"}, {}],
    )
    def test_create_validation(self, client: TestClient, alice_headers: dict[str, str], payload: dict) -> None:
        response = client.post("/api/memos", json=payload, headers=alice_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Title and content are required", "code": "VALIDATION_ERROR"}
        assert client.get("/api/memos", headers=alice_headers).json() == []

    def test_update_validation(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        memo = create(client, alice_headers)
        response = client.put(f"/api/memos/{memo['id']}", json={"content": "  "}, headers=alice_headers)
        assert response.status_code == 400

    def test_list_most_recently_updated_first(self, tmp_path) -> None:
        app = create_app(str(tmp_path / "ordered.db"), clock=FakeClock())
        with TestClient(app) as client:
            headers = login_headers(client, "order@example.com")
            old = create(client, headers, "old")
            new = create(client, headers, "new")
            client.put(f"/api/memos/{old['id']}", json={"content": "edited"}, headers=headers)

            memos = client.get("/api/memos", headers=headers).json()

        assert [m["id"] for m in memos] == [old["id"], new["id"]]

    def test_delete(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        memo = create(client, alice_headers)

        response = client.delete(f"/api/memos/{memo['id']}", headers=alice_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Memo deleted successfully"}
        assert client.get(f"/api/memos/{memo['id']}", headers=alice_headers).status_code == 404
        assert client.delete(f"/api/memos/{memo['id']}", headers=alice_headers).status_code == 404

    def test_missing_memo(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        for method in ("GET", "PUT", "DELETE"):
            response = client.request(method, "/api/memos/memo_missing", json={"title": "x"},
                                      headers=alice_headers)
            assert response.status_code == 404
            assert response.json() == {"error": "Memo not found", "code": "NOT_FOUND"}


class TestOwnershipIsolation:
    def test_other_user_sees_not_found(self, client: TestClient, alice_headers: dict[str, str],
                                       bob_headers: dict[str, str]) -> None:
        memo = create(client, alice_headers, "secret", "alice only")
        path = f"/api/memos/{memo['id']}"

        assert client.get("/api/memos", headers=bob_headers).json() == []
        assert client.get(path, headers=bob_headers).status_code == 404
        assert client.put(path, json={"title": "x", "content": "y"}, headers=bob_headers).status_code == 404
        assert client.delete(path, headers=bob_headers).status_code == 404

        still_there = client.get(path, headers=alice_headers).json()
        assert still_there["title"] == "secret"
        assert still_there["content"] == "alice only"


class TestInternalErrors:
    def test_unexpected_failure_is_generic_500(self, app: FastAPI) -> None:
        with TestClient(app, raise_server_exceptions=False) as client:
            headers = login_headers(client, "boom@example.com")
            with patch.object(app.state.memos, "list_memos", side_effect=RuntimeError("disk on fire")):
                response = client.get("/api/memos", headers=headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}
        assert "disk on fire" not in response.text


class TestMalformedInput:
    def test_lone_surrogate_in_memo_is_rejected(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        response = client.post("/api/memos", content='{"title": "\\ud800", "content": "x"}',
                               headers={**alice_headers, "Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert client.get("/api/memos", headers=alice_headers).json() == []

    def test_lone_surrogate_in_password_is_rejected(self, client: TestClient) -> None:
        body = '{"email": "odd@example.com", "password": "Secret-pass1!\\ud800"}'
        for path in ("/auth/register", "/auth/login", "/auth/password-strength"):
            response = client.post(path, content=body, headers={"Content-Type": "application/json"})
            assert response.status_code == 400, path
            assert response.json()["code"] == "VALIDATION_ERROR"


class TestErrorCodes:
    def test_unsupported_method(self, client: TestClient, alice_headers: dict[str, str]) -> None:
        response = client.patch("/api/memos", json={"title": "x"}, headers=alice_headers)

        assert response.status_code == 405
        assert response.json()["code"] == "METHOD_NOT_ALLOWED"

    def test_unmapped_client_status_is_bad_request(self) -> None:
        response = for_status(418, "I'm a teapot")

        assert response.status_code == 418
        assert json.loads(response.body) == {"error": "I'm a teapot", "code": "BAD_REQUEST"}


class TestCors:
    def test_listed_origin_gets_credentials(self, client: TestClient) -> None:
        response = client.get("/health", headers={"Origin": "http://localhost:8000"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:8000"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_unlisted_origin_is_not_echoed(self, client: TestClient) -> None:
        response = client.get("/health", headers={"Origin": "https://evil.example.com"})
        assert "access-control-allow-origin" not in response.headers

    def test_wildcard_never_allows_credentials(self, tmp_path) -> None:
        with patch.object(Config, "CORS_ORIGINS", ["*"]):
            app = create_app(str(tmp_path / "cors.db"))
        with TestClient(app) as client:
            response = client.get("/health", headers={"Origin": "https://anywhere.example.com"})

        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers
