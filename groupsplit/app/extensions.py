"""
extensions.py — Flask extension singletons.

Creates SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

    from groupsplit.app.extensions import db, ma

`db.session` is the request-scoped persistence handle. Routes pass it into
service functions explicitly as `session=db.session`; services never import
`db` themselves.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance. Validation schemas in app/schemas/ inherit from
# marshmallow.Schema directly, NOT ma.Schema: ma.Schema needs an active
# Flask application context and the unit tests run without one.
ma = Marshmallow()
