"""
records/users.py -- User directory rows in the record store.

Plain rows with no ownership tuples: listing and creating users is not
gated by the tuple store. Newest users first (id descending).
"""

from __future__ import annotations

import logging

from core.errors import RecordStoreError
from core.models import User
from records.store import RecordStore

logger = logging.getLogger("todogate.records.users")

_COLUMNS = "id,name"


class UserDirectory:
    def __init__(self, records: RecordStore, *, table: str = "users") -> None:
        self.records = records
        self.table = table

    def list_users(self) -> list[User]:
        rows = self.records.select(self.table, {"select": _COLUMNS, "order": "id.desc"})
        return [User.from_row(row) for row in rows]

    def create(self, name: str) -> User:
        rows = self.records.insert(self.table, {"name": name})
        if not rows:
            raise RecordStoreError(f"insert into {self.table} returned no row")
        user = User.from_row(rows[0])
        logger.info("Created user %d", user.id)
        return user
