"""
records/store.py -- Thin PostgREST (Supabase REST) row client.

Generic row CRUD against /rest/v1/{table}. This is the record store the
ownership orchestrator coordinates with; it knows nothing about tuples or
ownership. Every mutating call asks for Prefer: return=representation and
returns the affected rows, so callers can tell "updated" from "no such row".

Usage:
    store = RecordStore("http://localhost:54321", api_key="...")
    rows = store.select("todos", {"select": "id,title", "order": "created_at.desc"})
    created = store.insert("todos", {"title": "x"})[0]
    store.update("todos", created["id"], {"completed": True})
    store.delete("todos", created["id"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import requests

from core.errors import RecordStoreError

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("todogate.records")


class RecordStore:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            session.max_redirects = 3
        session.headers.update({"Content-Type": "application/json"})
        if api_key:
            session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})
        self._session = session

    @classmethod
    def from_settings(cls, settings: "Settings", session: Optional[requests.Session] = None) -> "RecordStore":
        return cls(settings.db_api_url, settings.db_api_key, session=session, timeout=settings.http_timeout)

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(
        self, method: str, table: str, ok: tuple[int, ...], **kwargs: Any
    ) -> Optional[list[dict[str, Any]]]:
        """Send one request. Returns the decoded rows, or None when the response has no body."""
        url = self._url(table)
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RecordStoreError(f"{method} {table} failed: {e}") from e

        if resp.status_code not in ok:
            raise RecordStoreError(f"{method} {table} returned {resp.status_code}", resp.status_code, resp.text[:500])
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            rows = resp.json()
        except ValueError as e:
            raise RecordStoreError(f"{method} {table} json: {e}", resp.status_code, resp.text[:500]) from e
        if isinstance(rows, dict):
            rows = [rows]
        if not isinstance(rows, list):
            raise RecordStoreError(f"{method} {table}: expected array, got {type(rows).__name__}", resp.status_code)
        return rows

    def select(self, table: str, params: Optional[dict[str, str]] = None) -> list[dict[str, Any]]:
        """GET rows. params are passed through as PostgREST query filters."""
        return self._request("GET", table, (200,), params=params or {}) or []

    def insert(self, table: str, body: dict[str, Any]) -> list[dict[str, Any]]:
        rows = self._request(
            "POST",
            table,
            (200, 201),
            json=body,
            headers={"Prefer": "return=representation"},
        )
        return rows or []

    def update(self, table: str, row_id: int, body: dict[str, Any]) -> list[dict[str, Any]]:
        """PATCH one row by id. An empty result means the row does not exist."""
        rows = self._request(
            "PATCH",
            table,
            (200,),
            params={"id": f"eq.{row_id}"},
            json=body,
            headers={"Prefer": "return=representation"},
        )
        return rows or []

    def delete(self, table: str, row_id: int) -> Optional[list[dict[str, Any]]]:
        """DELETE one row by id.

        Returns the deleted rows; an empty list means nothing matched. None means
        the store answered 204 without a representation, so the row count is unknown.
        """
        return self._request(
            "DELETE",
            table,
            (200, 204),
            params={"id": f"eq.{row_id}"},
            headers={"Prefer": "return=representation"},
        )
