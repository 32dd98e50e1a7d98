"""
tests/integration/test_friends.py — Friend requests and friendships.

Endpoints covered:
  POST   /friends/requests       → 201 (PENDING)
  GET    /friends/requests       → 200 (incoming, pending only)
  PATCH  /friends/requests/:id   → 200 (ACCEPT / REJECT, recipient only)
  GET    /friends                → 200 (ordered by full name)
  DELETE /friends/:uid           → 200 (both sides)
"""

from __future__ import annotations

import pytest

from .conftest import auth_headers, make_group, register


def _uid(user: dict) -> int:
    return user["user"]["id"]


def _send(client, sender: dict, target_id: int):
    return client.post(
        "/api/v1/friends/requests",
        json={"user_id": target_id},
        headers=auth_headers(sender["access_token"]),
    )


def _respond(client, user: dict, request_id: int, action: str):
    return client.patch(
        f"/api/v1/friends/requests/{request_id}",
        json={"action": action},
        headers=auth_headers(user["access_token"]),
    )


def _friends(client, user: dict) -> list[dict]:
    resp = client.get("/api/v1/friends", headers=auth_headers(user["access_token"]))
    assert resp.status_code == 200
    return resp.get_json()["data"]


def _befriend(client, a: dict, b: dict) -> None:
    request_id = _send(client, a, _uid(b)).get_json()["data"]["id"]
    assert _respond(client, b, request_id, "ACCEPT").status_code == 200


class TestFriendRequests:

    def test_send_creates_pending_request(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        resp = _send(client, alice, _uid(bob))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["status"] == "PENDING"
        assert data["from_user_id"] == _uid(alice)
        assert data["to_user_id"] == _uid(bob)

    def test_recipient_sees_incoming_request_with_sender(self, client):
        alice = register(client, "alice", full_name="Alice Smith")
        bob = register(client, "bob")
        _send(client, alice, _uid(bob))

        resp = client.get("/api/v1/friends/requests", headers=auth_headers(bob["access_token"]))
        assert resp.status_code == 200
        [incoming] = resp.get_json()["data"]
        assert incoming["from_user"] == {"id": _uid(alice), "username": "alice", "full_name": "Alice Smith"}

        sender_view = client.get("/api/v1/friends/requests", headers=auth_headers(alice["access_token"]))
        assert sender_view.get_json()["data"] == []

    def test_self_request_is_400(self, client):
        alice = register(client, "alice")
        resp = _send(client, alice, _uid(alice))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "CANNOT_FRIEND_SELF"

    def test_unknown_user_is_404(self, client):
        alice = register(client, "alice")
        resp = _send(client, alice, 999999)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "USER_NOT_FOUND"

    def test_duplicate_pending_request_is_409_in_both_directions(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        assert _send(client, alice, _uid(bob)).status_code == 201

        again = _send(client, alice, _uid(bob))
        assert again.status_code == 409
        assert again.get_json()["code"] == "FRIEND_REQUEST_EXISTS"

        reverse = _send(client, bob, _uid(alice))
        assert reverse.status_code == 409
        assert reverse.get_json()["code"] == "FRIEND_REQUEST_EXISTS"

    def test_request_to_existing_friend_is_409(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        _befriend(client, alice, bob)

        resp = _send(client, bob, _uid(alice))
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "ALREADY_FRIENDS"

    @pytest.mark.parametrize("payload", [{}, {"user_id": "2"}, {"user_id": 0}])
    def test_bad_body_is_400(self, client, payload):
        alice = register(client, "alice")
        resp = client.post(
            "/api/v1/friends/requests",
            json=payload,
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400

    def test_requires_auth(self, app):
        assert app.test_client().get("/api/v1/friends/requests").status_code == 401


class TestRespondToRequest:

    def test_accept_makes_friendship_mutual(self, client):
        alice = register(client, "alice", full_name="Alice")
        bob = register(client, "bob", full_name="Bob")
        request_id = _send(client, alice, _uid(bob)).get_json()["data"]["id"]

        resp = _respond(client, bob, request_id, "ACCEPT")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "ACCEPTED"
        assert resp.get_json()["data"]["responded_at"] is not None

        assert [f["id"] for f in _friends(client, alice)] == [_uid(bob)]
        assert [f["id"] for f in _friends(client, bob)] == [_uid(alice)]

    def test_reject_creates_no_friendship(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        request_id = _send(client, alice, _uid(bob)).get_json()["data"]["id"]

        resp = _respond(client, bob, request_id, "REJECT")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "REJECTED"
        assert _friends(client, alice) == []
        assert _friends(client, bob) == []

    def test_rejected_pair_can_request_again(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        request_id = _send(client, alice, _uid(bob)).get_json()["data"]["id"]
        _respond(client, bob, request_id, "REJECT")

        assert _send(client, alice, _uid(bob)).status_code == 201

    def test_sender_cannot_answer_own_request(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        request_id = _send(client, alice, _uid(bob)).get_json()["data"]["id"]

        resp = _respond(client, alice, request_id, "ACCEPT")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "FRIEND_REQUEST_NOT_FOUND"
        assert _friends(client, alice) == []

    def test_answering_twice_is_409(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        request_id = _send(client, alice, _uid(bob)).get_json()["data"]["id"]
        _respond(client, bob, request_id, "ACCEPT")

        resp = _respond(client, bob, request_id, "REJECT")
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "FRIEND_REQUEST_RESOLVED"
        assert [f["id"] for f in _friends(client, bob)] == [_uid(alice)]

    def test_accepted_request_leaves_incoming_list(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        request_id = _send(client, alice, _uid(bob)).get_json()["data"]["id"]
        _respond(client, bob, request_id, "ACCEPT")

        resp = client.get("/api/v1/friends/requests", headers=auth_headers(bob["access_token"]))
        assert resp.get_json()["data"] == []

    def test_unknown_action_is_400(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        request_id = _send(client, alice, _uid(bob)).get_json()["data"]["id"]

        resp = _respond(client, bob, request_id, "MAYBE")
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "action"


class TestFriendsList:

    def test_friends_sorted_by_full_name(self, client):
        alice = register(client, "alice")
        zoe = register(client, "zoe", full_name="Zoe Adams")
        mark = register(client, "mark", full_name="Mark Chen")
        _befriend(client, alice, zoe)
        _befriend(client, mark, alice)

        friends = _friends(client, alice)
        assert [f["full_name"] for f in friends] == ["Mark Chen", "Zoe Adams"]
        assert set(friends[0]) == {"id", "username", "full_name", "avatar_url", "since"}

    def test_friend_ids_can_seed_a_group(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        _befriend(client, alice, bob)

        member_ids = [f["id"] for f in _friends(client, alice)]
        group = make_group(client, alice["access_token"], member_ids=member_ids)
        assert {m["user_id"] for m in group["members"]} == {_uid(alice), _uid(bob)}

    def test_remove_friend_ends_both_sides(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        _befriend(client, alice, bob)

        resp = client.delete(f"/api/v1/friends/{_uid(alice)}", headers=auth_headers(bob["access_token"]))
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"removed": True, "user_id": _uid(alice)}
        assert _friends(client, alice) == []
        assert _friends(client, bob) == []

    def test_remove_non_friend_is_404(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        resp = client.delete(f"/api/v1/friends/{_uid(bob)}", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "FRIEND_NOT_FOUND"
