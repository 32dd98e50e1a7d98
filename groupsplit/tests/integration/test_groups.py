"""
tests/integration/test_groups.py — Integration tests for group endpoints.

Endpoints covered:
  POST  /groups       → 201 (caller becomes ADMIN, member_ids invited)
  GET   /groups       → 200 (caller's groups only)
  GET   /groups/:id   → 200 (members with display names)
  PATCH /groups/:id   → 200 (rename / deactivate, ADMIN)

Non-members receive 403 for an existing group and 404 only when the group
does not exist at all.
"""

from __future__ import annotations

import pytest

from .conftest import (
    auth_headers,
    group_with_members,
    make_group,
    register,
    set_role,
)


def _uid(user: dict) -> int:
    return user["user"]["id"]


def _patch(client, token: str, group_id: int, payload: dict):
    return client.patch(f"/api/v1/groups/{group_id}", json=payload, headers=auth_headers(token))


class TestCreateGroup:

    def test_creator_becomes_accepted_admin(self, client):
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"], name="  Ski trip  ")

        assert group["name"] == "Ski trip"
        assert group["owner_id"] == _uid(alice)
        assert group["base_currency"] == "USD"
        assert group["active"] is True
        assert group["my_role"] == "ADMIN"
        [owner] = group["members"]
        assert owner["user_id"] == _uid(alice)
        assert owner["role"] == "ADMIN"
        assert owner["status"] == "ACCEPTED"

    def test_member_ids_are_invited_once_and_owner_skipped(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        group = make_group(
            client, alice["access_token"],
            member_ids=[_uid(bob), _uid(bob), _uid(alice)],
        )
        members = {m["user_id"]: m for m in group["members"]}
        assert set(members) == {_uid(alice), _uid(bob)}
        assert members[_uid(bob)]["status"] == "INVITED"
        assert members[_uid(bob)]["role"] == "MEMBER"

    def test_custom_base_currency(self, client):
        alice = register(client, "alice")
        resp = client.post(
            "/api/v1/groups",
            json={"name": "Paris", "base_currency": "EUR"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["base_currency"] == "EUR"

    def test_base_currency_defaults_to_configured_currency(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "DEFAULT_CURRENCY", "GBP")
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"])
        assert group["base_currency"] == "GBP"

    @pytest.mark.parametrize("payload", [{}, {"name": ""}, {"name": "   "}])
    def test_bad_name_is_400(self, client, payload):
        alice = register(client, "alice")
        resp = client.post("/api/v1/groups", json=payload, headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "name"

    def test_unknown_invitee_rolls_back_group(self, client):
        alice = register(client, "alice")
        resp = client.post(
            "/api/v1/groups",
            json={"name": "Trip", "member_ids": [999999]},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "USER_NOT_FOUND"

        listed = client.get("/api/v1/groups", headers=auth_headers(alice["access_token"])).get_json()["data"]
        assert listed == []


class TestListAndGetGroups:

    def test_list_only_callers_groups(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        mine = make_group(client, alice["access_token"], name="Mine")
        make_group(client, bob["access_token"], name="Theirs")

        resp = client.get("/api/v1/groups", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert [g["id"] for g in data] == [mine["id"]]
        assert data[0]["my_role"] == "ADMIN"
        assert data[0]["my_status"] == "ACCEPTED"
        assert "members" not in data[0]

    def test_get_group_lists_members_with_names(self, client):
        alice, (bob, carol), group = group_with_members(client)
        resp = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(bob["access_token"]))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["my_role"] == "MEMBER"
        names = {m["full_name"] for m in data["members"]}
        assert names == {"Alice", "Bob", "Carol"}

    def test_non_member_gets_403(self, client):
        _, _, group = group_with_members(client)
        zed = register(client, "zed")
        resp = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(zed["access_token"]))
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "FORBIDDEN"

    def test_unknown_group_is_404(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/v1/groups/999999", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "GROUP_NOT_FOUND"


class TestUpdateGroup:

    def test_admin_renames(self, client):
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"])
        resp = _patch(client, alice["access_token"], group["id"], {"name": "Renamed"})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["name"] == "Renamed"

    def test_admin_deactivates(self, client):
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"])
        resp = _patch(client, alice["access_token"], group["id"], {"active": False})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["active"] is False

        listed = client.get("/api/v1/groups", headers=auth_headers(alice["access_token"])).get_json()["data"]
        assert listed[0]["active"] is False

    @pytest.mark.parametrize("role", ["MODERATOR", "MEMBER"])
    def test_non_admin_cannot_update(self, client, role):
        alice, (bob, _), group = group_with_members(client)
        if role == "MODERATOR":
            set_role(client, alice["access_token"], group["id"], _uid(bob), role)
        resp = _patch(client, bob["access_token"], group["id"], {"name": "Hijacked"})
        assert resp.status_code == 403

    def test_empty_body_is_400(self, client):
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"])
        assert _patch(client, alice["access_token"], group["id"], {}).status_code == 400
