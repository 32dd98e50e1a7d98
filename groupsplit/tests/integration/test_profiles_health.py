"""
tests/integration/test_profiles_health.py — Profiles and the health check.

Endpoints covered:
  GET   /profiles        → 200 (every profile, ordered by full name)
  GET   /profiles/:id    → 200
  PATCH /profiles/me     → 200
  GET   /health          → 200 (no auth)
"""

from __future__ import annotations

from .conftest import auth_headers, register


def _uid(user: dict) -> int:
    return user["user"]["id"]


class TestProfiles:

    def test_list_profiles_sorted_by_full_name(self, client):
        register(client, "zoe", full_name="Zoe Adams")
        alice = register(client, "alice", full_name="Alice Brown")
        register(client, "mark", full_name="Mark Chen")

        resp = client.get("/api/v1/profiles", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        assert [p["full_name"] for p in resp.get_json()["data"]] == ["Alice Brown", "Mark Chen", "Zoe Adams"]

    def test_get_profile(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob", full_name="Bob Jones")
        resp = client.get(f"/api/v1/profiles/{_uid(bob)}", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data == {
            "id": _uid(bob),
            "full_name": "Bob Jones",
            "username": "bob",
            "phone": None,
            "avatar_url": None,
        }

    def test_get_unknown_profile_is_404(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/v1/profiles/999999", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "USER_NOT_FOUND"

    def test_profiles_require_auth(self, app):
        assert app.test_client().get("/api/v1/profiles").status_code == 401

    def test_update_own_profile(self, client):
        alice = register(client, "alice")
        resp = client.patch(
            "/api/v1/profiles/me",
            json={"full_name": "Alice B. Smith", "phone": "555-0100", "avatar_url": "https://example.com/a.png"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["full_name"] == "Alice B. Smith"
        assert data["phone"] == "555-0100"
        assert data["avatar_url"] == "https://example.com/a.png"

        me = client.get("/api/v1/auth/me", headers=auth_headers(alice["access_token"])).get_json()["data"]
        assert me["full_name"] == "Alice B. Smith"

    def test_change_username(self, client):
        alice = register(client, "alice")
        resp = client.patch(
            "/api/v1/profiles/me",
            json={"username": "alice_new"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        assert client.post(
            "/api/v1/auth/login",
            json={"username": "alice_new", "password": "Password1"},
        ).status_code == 200

    def test_username_taken_is_409(self, client):
        alice = register(client, "alice")
        register(client, "bob")
        resp = client.patch(
            "/api/v1/profiles/me",
            json={"username": "bob"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_USERNAME"

    def test_empty_update_is_400(self, client):
        alice = register(client, "alice")
        resp = client.patch("/api/v1/profiles/me", json={}, headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 400


def test_health_check(app):
    resp = app.test_client().get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"status": "ok", "database": "ok"}
