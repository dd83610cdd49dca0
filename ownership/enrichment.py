"""
ownership/enrichment.py -- Owner email lookup for admin listings.

Display-only. Each distinct owner is looked up once per call; a failed lookup
is logged and leaves owner_email as None.
"""

from __future__ import annotations

import logging
from typing import Optional

from authz.identity import IdentityClient
from core.errors import AuthzServiceError
from core.models import Todo

logger = logging.getLogger("todogate.ownership.enrichment")


def attach_owner_emails(todos: list[Todo], identity: Optional[IdentityClient]) -> list[Todo]:
    """Fill owner_email on every todo that has an owner_id. Mutates and returns todos."""
    if identity is None:
        return todos

    emails: dict[str, Optional[str]] = {}
    for todo in todos:
        if todo.owner_id is None:
            continue
        if todo.owner_id not in emails:
            try:
                emails[todo.owner_id] = identity.get_identity(todo.owner_id).email
            except AuthzServiceError as e:
                logger.error("Identity lookup for %s failed: %s", todo.owner_id, e)
                emails[todo.owner_id] = None
        todo.owner_email = emails[todo.owner_id]
    return todos
