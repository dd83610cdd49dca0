"""
tests/test_config.py -- Settings resolution.

Settings are built directly (not through get_settings) so each test controls
its own values; monkeypatch clears the backend variables a developer shell
might export.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

_BACKEND_VARS = ("KETO_READ_URL", "KETO_WRITE_URL", "DB_API_URL", "KRATOS_ADMIN_URL", "KRATOS_PUBLIC_URL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _BACKEND_VARS:
        monkeypatch.delenv(name, raising=False)


def test_production_requires_backend_urls():
    with pytest.raises(ValidationError, match="KETO_READ_URL"):
        Settings(debug=False)


def test_debug_fills_local_defaults():
    settings = Settings(debug=True)
    assert settings.keto_read_url == "http://localhost:4466"
    assert settings.keto_write_url == "http://localhost:4467"
    assert settings.db_api_url == "http://localhost:54321"
    assert settings.kratos_admin_url == ""


def test_trailing_slashes_stripped():
    settings = Settings(
        debug=False,
        keto_read_url="http://keto:4466/",
        keto_write_url="http://keto:4467/",
        db_api_url="http://db/",
    )
    assert (settings.keto_read_url, settings.keto_write_url, settings.db_api_url) == (
        "http://keto:4466",
        "http://keto:4467",
        "http://db",
    )


def test_env_vars_are_read(monkeypatch):
    monkeypatch.setenv("KETO_READ_URL", "http://r")
    monkeypatch.setenv("KETO_WRITE_URL", "http://w")
    monkeypatch.setenv("DB_API_URL", "http://db")
    monkeypatch.setenv("KRATOS_ADMIN_URL", "http://kratos-admin")
    settings = Settings(debug=False)
    assert settings.keto_read_url == "http://r"
    assert settings.kratos_admin_url == "http://kratos-admin"
