"""
routes/health.py — Liveness check with a database round trip.

  GET /health → 200 {"data": {"status": "ok", "database": "ok"}}

A failing database surfaces as DEPENDENCY_FAILURE (500) through the normal
error handler.
"""

from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy import text

from groupsplit.app.errors import dependency_guard
from groupsplit.app.extensions import db

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    with dependency_guard("health_check"):
        db.session.execute(text("SELECT 1"))
    return jsonify({"data": {"status": "ok", "database": "ok"}, "warnings": []}), 200
