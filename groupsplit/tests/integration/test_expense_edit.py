"""
tests/integration/test_expense_edit.py — Integration tests for PUT /expenses/:id.

A replace rewrites title, amount and the whole split. Every previous
assignment is discarded and the new ones start unfulfilled, so the expense's
fulfilled flag is recomputed from scratch.

Authorization: ADMIN or MODERATOR of the expense's group. A plain MEMBER,
even the payer, receives 403.
"""

from __future__ import annotations

from .conftest import (
    auth_headers,
    group_with_members,
    make_expense,
    register,
    set_role,
)


def _uid(user: dict) -> int:
    return user["user"]["id"]


def _replace(client, token: str, expense_id: int, **payload):
    return client.put(
        f"/api/v1/expenses/{expense_id}",
        json=payload,
        headers=auth_headers(token),
    )


def _toggle(client, token: str, assignment_id: int, fulfilled: bool = True):
    return client.patch(
        f"/api/v1/assignments/{assignment_id}",
        json={"fulfilled": fulfilled},
        headers=auth_headers(token),
    )


def _setup(client):
    alice, (bob, carol), group = group_with_members(client)
    expense = make_expense(
        client, alice["access_token"], group["id"],
        amount="30.00",
        title="Dinner",
        assigned=[
            {"user_id": _uid(bob), "amount": "15.00"},
            {"user_id": _uid(carol), "amount": "15.00"},
        ],
    ).get_json()["data"]
    return alice, bob, carol, group, expense


class TestReplaceExpense:

    def test_admin_replaces_title_amount_and_split(self, client):
        alice, bob, carol, group, expense = _setup(client)
        resp = _replace(
            client, alice["access_token"], expense["id"],
            title="Late dinner",
            amount="40.00",
            assigned=[
                {"user_id": _uid(bob), "amount": "10.00"},
                {"user_id": _uid(carol), "amount": "30.00"},
            ],
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["title"] == "Late dinner"
        assert data["amount"] == "40.00"
        assert data["updated_at"] is not None
        shares = {s["user_id"]: s["amount"] for s in data["assigned"]}
        assert shares == {_uid(bob): "10.00", _uid(carol): "30.00"}

    def test_moderator_may_replace(self, client):
        alice, bob, carol, group, expense = _setup(client)
        assert set_role(client, alice["access_token"], group["id"], _uid(bob), "MODERATOR").status_code == 200

        resp = _replace(
            client, bob["access_token"], expense["id"],
            title="Dinner",
            amount="30.00",
            assigned=[{"user_id": _uid(carol), "amount": "30.00"}],
        )
        assert resp.status_code == 200
        assert len(resp.get_json()["data"]["assigned"]) == 1

    def test_member_may_not_replace(self, client):
        alice, bob, carol, group, expense = _setup(client)
        resp = _replace(
            client, bob["access_token"], expense["id"],
            title="Mine now",
            amount="30.00",
            assigned=[{"user_id": _uid(bob), "amount": "30.00"}],
        )
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "FORBIDDEN"

    def test_payer_who_is_plain_member_may_not_replace(self, client):
        alice, bob, carol, group, _ = _setup(client)
        expense = make_expense(
            client, bob["access_token"], group["id"],
            amount="10.00",
            assigned=[{"user_id": _uid(carol), "amount": "10.00"}],
        ).get_json()["data"]

        resp = _replace(
            client, bob["access_token"], expense["id"],
            title="x", amount="10.00",
            assigned=[{"user_id": _uid(carol), "amount": "10.00"}],
        )
        assert resp.status_code == 403

    def test_non_member_gets_403(self, client):
        _, _, carol, _, expense = _setup(client)
        outsider = register(client, "zed")
        resp = _replace(
            client, outsider["access_token"], expense["id"],
            title="x", amount="30.00",
            assigned=[{"user_id": _uid(carol), "amount": "30.00"}],
        )
        assert resp.status_code == 403

    def test_unknown_expense_is_404(self, client):
        alice = register(client, "alice")
        resp = _replace(
            client, alice["access_token"], 999999,
            title="x", amount="1.00",
            assigned=[{"user_id": _uid(alice), "amount": "1.00"}],
        )
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "EXPENSE_NOT_FOUND"

    def test_invalid_split_leaves_expense_unchanged(self, client):
        alice, bob, carol, group, expense = _setup(client)
        resp = _replace(
            client, alice["access_token"], expense["id"],
            title="Changed",
            amount="50.00",
            assigned=[{"user_id": _uid(bob), "amount": "10.00"}],
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "SPLIT_SUM_MISMATCH"

        current = client.get(
            f"/api/v1/expenses/{expense['id']}",
            headers=auth_headers(alice["access_token"]),
        ).get_json()["data"]
        assert current["title"] == "Dinner"
        assert current["amount"] == "30.00"
        assert len(current["assigned"]) == 2

    def test_blank_title_rejected(self, client):
        alice, bob, _, _, expense = _setup(client)
        resp = _replace(
            client, alice["access_token"], expense["id"],
            title=" ", amount="30.00",
            assigned=[{"user_id": _uid(bob), "amount": "30.00"}],
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "TITLE_REQUIRED"

    def test_replace_resets_fulfilled_shares(self, client):
        alice, bob, carol, group, expense = _setup(client)
        for share in expense["assigned"]:
            assert _toggle(client, alice["access_token"], share["id"]).status_code == 200

        fulfilled = client.get(
            f"/api/v1/expenses/{expense['id']}",
            headers=auth_headers(alice["access_token"]),
        ).get_json()["data"]
        assert fulfilled["fulfilled"] is True

        resp = _replace(
            client, alice["access_token"], expense["id"],
            title="Dinner",
            amount="30.00",
            assigned=[
                {"user_id": _uid(bob), "amount": "15.00"},
                {"user_id": _uid(carol), "amount": "15.00"},
            ],
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["fulfilled"] is False
        assert all(s["fulfilled"] is False for s in data["assigned"])

    def test_replace_switches_to_equal_mode(self, client):
        alice, bob, carol, group, expense = _setup(client)
        resp = _replace(
            client, alice["access_token"], expense["id"],
            title="Dinner",
            amount="30.00",
            split_mode="equal",
            member_ids=[_uid(alice), _uid(bob), _uid(carol)],
        )
        assert resp.status_code == 200
        amounts = sorted(s["amount"] for s in resp.get_json()["data"]["assigned"])
        assert amounts == ["10.00", "10.00", "10.00"]

    def test_replace_can_change_payer(self, client):
        alice, bob, carol, group, expense = _setup(client)
        resp = _replace(
            client, alice["access_token"], expense["id"],
            title="Dinner",
            amount="30.00",
            payer_id=_uid(carol),
            assigned=[{"user_id": _uid(bob), "amount": "30.00"}],
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["payer_id"] == _uid(carol)
