"""
authz/identity.py -- Identity service (Ory Kratos) client.

Resolves a user id to its identity document. The admin route is tried first,
then the public route, with the same sweep rule as the tuple store check:
404 moves on, any other non-200 status is fatal.

The document is decoded once into Identity. Callers read identity.role (for
the admin shortcut) and identity.email (display enrichment); raw keeps the
full document for anything else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote

import requests

from authz.endpoints import IDENTITY_VARIANTS, EndpointVariant, decode_json, new_session, sweep
from core.errors import AuthzServiceError, MalformedResponse

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("todogate.authz.identity")

_SERVICE = "kratos"


@dataclass
class Identity:
    id: str
    role: Optional[str] = None
    email: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, doc: dict[str, Any], fallback_id: str) -> "Identity":
        """Decode a Kratos identity.

        email comes from traits.email, else the first verifiable address that
        has a string value. role comes from metadata_public.role. Both default
        to None.
        """
        traits = doc.get("traits") if isinstance(doc.get("traits"), dict) else {}
        email = traits.get("email") if isinstance(traits.get("email"), str) else None
        addresses = doc.get("verifiable_addresses") if isinstance(doc.get("verifiable_addresses"), list) else []
        if email is None:
            for address in addresses:
                if isinstance(address, dict) and isinstance(address.get("value"), str):
                    email = address["value"]
                    break

        metadata = doc.get("metadata_public") if isinstance(doc.get("metadata_public"), dict) else {}
        role = metadata.get("role") if isinstance(metadata.get("role"), str) else None

        return cls(id=str(doc.get("id") or fallback_id), role=role, email=email, raw=doc)


class IdentityClient:
    def __init__(
        self,
        admin_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        variants: tuple[EndpointVariant, ...] = IDENTITY_VARIANTS,
    ) -> None:
        self.admin_url = admin_url.rstrip("/")
        self.timeout = timeout
        self.variants = variants
        self._session = session or new_session()

    @classmethod
    def from_settings(
        cls, settings: "Settings", session: Optional[requests.Session] = None
    ) -> Optional["IdentityClient"]:
        """Return a client, or None when no identity URL is configured."""
        if not settings.kratos_admin_url:
            return None
        return cls(settings.kratos_admin_url, session=session, timeout=settings.http_timeout)

    def get_identity(self, identity_id: str) -> Identity:
        found = sweep(
            self._session,
            self.variants,
            self.admin_url,
            service=_SERVICE,
            timeout=self.timeout,
            path_params={"id": quote(identity_id, safe="")},
        )
        if found is None:
            raise AuthzServiceError(_SERVICE, f"no identity endpoint found for {identity_id}", 404)
        variant, resp = found
        doc = decode_json(resp, _SERVICE, f"identity ({variant.name})")
        if not isinstance(doc, dict):
            raise MalformedResponse(_SERVICE, "identity json is not an object", resp.status_code, resp.text[:500])
        return Identity.from_json(doc, identity_id)
