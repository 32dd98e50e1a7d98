"""
Unit tests for config helpers and the production start-up guard.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from groupsplit import config
from groupsplit.app import create_app


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgres://u:p@db:5432/app", "postgresql://u:p@db:5432/app"),
        ("postgresql://u:p@db:5432/app", "postgresql://u:p@db:5432/app"),
        ("sqlite://", "sqlite://"),
    ],
)
def test_normalise_database_url(url, expected):
    assert config.normalise_database_url(url) == expected


def test_empty_env_value_counts_as_unset(monkeypatch):
    monkeypatch.setenv("GROUPSPLIT_TEST_VALUE", "")
    assert config._env("GROUPSPLIT_TEST_VALUE", "fallback") == "fallback"


def test_unparseable_int_falls_back(monkeypatch):
    monkeypatch.setenv("GROUPSPLIT_TEST_INT", "twelve")
    assert config._parse_int_env("GROUPSPLIT_TEST_INT", 7) == 7


@pytest.mark.parametrize(("raw", "expected"), [("true", True), ("On", True), ("0", False), ("", True)])
def test_parse_bool_env(monkeypatch, raw, expected):
    monkeypatch.setenv("GROUPSPLIT_TEST_BOOL", raw)
    assert config._parse_bool_env("GROUPSPLIT_TEST_BOOL", True) is expected


def _app(**values):
    base = {
        "SQLALCHEMY_DATABASE_URI": "postgresql://db/app",
        "SECRET_KEY": "s3cret",
        "JWT_SECRET_KEY": "s3cret",
    }
    base.update(values)
    return SimpleNamespace(config=base)


def test_production_guard_accepts_complete_config():
    config.validate_production_config(_app())


@pytest.mark.parametrize(
    ("values", "message"),
    [
        ({"SQLALCHEMY_DATABASE_URI": ""}, "DATABASE_URL"),
        ({"SECRET_KEY": "change-me-in-production"}, "SECRET_KEY"),
        ({"JWT_SECRET_KEY": "change-me-in-production"}, "JWT_SECRET_KEY"),
    ],
)
def test_production_guard_rejects_missing_values(values, message):
    with pytest.raises(ValueError, match=message):
        config.validate_production_config(_app(**values))


def test_testing_config_is_loaded_by_name():
    app = create_app("testing")
    assert app.config["TESTING"] is True
    assert app.config["BCRYPT_LOG_ROUNDS"] == 4
    assert app.config["DEFAULT_CURRENCY"] == config.BaseConfig.DEFAULT_CURRENCY
