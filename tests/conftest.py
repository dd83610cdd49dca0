"""
tests/conftest.py -- Shared test fixtures for TodoGate.

This module provides:
  - http_response: factory for real requests.Response objects with a JSON body
  - http_session:  factory for a MagicMock Session that replays responses in order
  - backends:      MagicMock tuple store / record store / identity / admin resolver
  - api_client:    TestClient wired to a real OwnershipOrchestrator over `backends`

The DEBUG env var must be set before any api/ or core/ import so
get_settings() fills local development URLs instead of raising ValueError.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any core/api import so get_settings() can
# default the backend URLs in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
import requests
from fastapi.testclient import TestClient

from api.main import app
from authz.identity import IdentityClient
from authz.tuples import TupleStoreClient
from ownership.orchestrator import OwnershipOrchestrator
from ownership.roles import AdminResolver
from records.store import RecordStore
from records.users import UserDirectory

ADMIN_USER = "admin-1"

# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _make_response(status: int, body: Any = None, text: Optional[str] = None) -> requests.Response:
    """Build a real Response so .json(), .text and .content behave exactly as in production."""
    resp = requests.Response()
    resp.status_code = status
    if body is not None:
        resp._content = json.dumps(body).encode()
        resp.headers["Content-Type"] = "application/json"
    elif text is not None:
        resp._content = text.encode()
    else:
        resp._content = b""
    resp.encoding = "utf-8"
    return resp


def _make_session(*responses: Any) -> MagicMock:
    """MagicMock Session whose .request() returns (or raises) each item in turn."""
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    return session


@pytest.fixture
def http_response() -> Callable[..., requests.Response]:
    return _make_response


@pytest.fixture
def http_session() -> Callable[..., MagicMock]:
    return _make_session


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backends() -> SimpleNamespace:
    """Fresh mocks per test. ADMIN_USER is the only admin."""
    admin = MagicMock(spec=AdminResolver)
    admin.is_admin.side_effect = lambda user_id: user_id == ADMIN_USER
    identity = MagicMock(spec=IdentityClient)
    return SimpleNamespace(
        tuples=MagicMock(spec=TupleStoreClient),
        records=MagicMock(spec=RecordStore),
        identity=identity,
        admin=admin,
    )


def _patch_lifespan(backends: SimpleNamespace):
    """Return a lifespan that wires the mocks into app.state instead of real clients."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.tuples = backends.tuples
        app.state.identity = backends.identity
        app.state.orchestrator = OwnershipOrchestrator(backends.tuples, backends.records)
        app.state.admin_resolver = backends.admin
        app.state.users = UserDirectory(backends.records)
        yield

    return test_lifespan


@pytest.fixture
def api_client(backends: SimpleNamespace) -> Generator[TestClient, None, None]:
    """TestClient over the real app and a real orchestrator; only the backends are mocked.

    raise_server_exceptions=False so 500 responses can be asserted on instead
    of surfacing as test errors.
    """
    app.router.lifespan_context = _patch_lifespan(backends)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
