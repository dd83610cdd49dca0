"""
ownership/roles.py -- Admin role resolution.

A user is an admin when either source says so, checked in this order:
  1. identity service: metadata_public.role == "admin"
  2. tuple store:      roles:admin#member@user:<id>

Lookup errors are logged and count as "not admin" so an identity or tuple
store outage can only ever deny admin access, never grant it.
"""

from __future__ import annotations

import logging
from typing import Optional

from authz.identity import IdentityClient
from authz.tuples import TupleStoreClient
from core.errors import AuthzServiceError
from core.models import CheckQuery, SubjectId, user_subject

logger = logging.getLogger("todogate.ownership.roles")

ADMIN_ROLE = "admin"
ADMIN_NAMESPACE = "roles"
ADMIN_OBJECT = "admin"
ADMIN_RELATION = "member"


class AdminResolver:
    def __init__(self, tuples: TupleStoreClient, identity: Optional[IdentityClient] = None) -> None:
        self.tuples = tuples
        self.identity = identity

    def is_admin(self, user_id: str) -> bool:
        if self.identity is not None:
            try:
                if self.identity.get_identity(user_id).role == ADMIN_ROLE:
                    return True
            except AuthzServiceError as e:
                logger.error("Identity lookup for admin check failed: %s", e)

        try:
            return self.tuples.check(
                CheckQuery(
                    namespace=ADMIN_NAMESPACE,
                    object=ADMIN_OBJECT,
                    relation=ADMIN_RELATION,
                    subject=SubjectId(user_subject(user_id)),
                )
            )
        except AuthzServiceError as e:
            logger.error("Tuple check for admin membership failed: %s", e)
            return False
