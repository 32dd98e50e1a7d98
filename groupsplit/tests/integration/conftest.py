"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
    TestingConfig points at TEST_DATABASE_URL, which defaults to an in-memory
    SQLite database; set it to a PostgreSQL URL to run against Postgres.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)        → dict with user + access_token
  - auth_headers(token)          → {"Authorization": "Bearer <token>"}
  - make_group(client, ...)      → group dict
  - invite(client, ...)          → HTTP response
  - accept(client, ...)          → HTTP response
  - set_role(client, ...)        → HTTP response
  - make_expense(client, ...)    → HTTP response
  - group_with_members(client)   → (admin, [users...], group) with everyone accepted

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from groupsplit.app import create_app
from groupsplit.app.extensions import db as _db

# Child tables first.
_TABLES = (
    "user_friends",
    "friend_requests",
    "assigned_expenses",
    "expenses",
    "group_members",
    "groups",
    "profiles",
    "users",
)


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the whole session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test in FK-safe order."""
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        with _db.engine.connect() as conn:
            for table in _TABLES:
                conn.execute(text(f"DELETE FROM {table}"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    username: str = "alice",
    email: str | None = None,
    password: str = "Password1",
    full_name: str | None = None,
) -> dict:
    """
    Registers a new user and returns the full response data dict.
    Returns: {"user": {...}, "access_token": "..."}
    """
    if email is None:
        email = f"{username}@test.com"
    if full_name is None:
        full_name = username.capitalize()
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email,
            "password": password,
            "full_name": full_name,
        },
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_group(
    client,
    token: str,
    name: str = "Test Group",
    member_ids: list[int] | None = None,
) -> dict:
    """
    Creates a group and returns the group data dict.
    The caller (token owner) becomes ADMIN; member_ids are invited.
    """
    payload: dict = {"name": name}
    if member_ids is not None:
        payload["member_ids"] = member_ids
    resp = client.post(
        "/api/v1/groups",
        json=payload,
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def invite(client, token: str, group_id: int, user_ids: list[int]):
    """Invites users into a group (ADMIN token required). Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"member_ids": user_ids},
        headers=auth_headers(token),
    )


def accept(client, token: str, group_id: int):
    """Accepts the token owner's invitation. Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/accept",
        headers=auth_headers(token),
    )


def set_role(client, token: str, group_id: int, user_id: int, role: str):
    return client.patch(
        f"/api/v1/groups/{group_id}/members/{user_id}",
        json={"role": role},
        headers=auth_headers(token),
    )


def make_expense(
    client,
    token: str,
    group_id: int,
    amount: str,
    assigned: list[dict] | None = None,
    title: str = "Test Expense",
    payer_id: int | None = None,
    **extra,
):
    """
    Creates an expense and returns the HTTP response.
    `assigned` is a list of {user_id, amount} dicts (custom mode). Pass
    split_mode="equal" and member_ids=[...] through **extra for equal mode.
    """
    payload: dict = {"title": title, "amount": amount, **extra}
    if assigned is not None:
        payload["assigned"] = assigned
    if payer_id is not None:
        payload["payer_id"] = payer_id

    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json=payload,
        headers=auth_headers(token),
    )


def group_with_members(client, usernames: tuple[str, ...] = ("bob", "carol")):
    """
    Registers an admin ("alice") plus `usernames`, creates a group with all of
    them invited, and has every invitee accept.

    Returns: (admin_data, [member_data, ...], group_dict)
    """
    admin = register(client, "alice")
    members = [register(client, name) for name in usernames]
    group = make_group(
        client,
        admin["access_token"],
        member_ids=[m["user"]["id"] for m in members],
    )
    for m in members:
        resp = accept(client, m["access_token"], group["id"])
        assert resp.status_code == 200, f"accept failed: {resp.get_json()}"
    return admin, members, group
