"""
authz/tuples.py -- Relation-tuple store (Ory Keto) client.

Talks to the Read API (check, list, expand) and the Write API (create,
delete). The two may live on different hosts, so the client takes both base
URLs explicitly.

Return contract, independent of which endpoint shape the server speaks:
  check()         -> bool
  list_tuples()   -> ListPage
  expand()        -> ExpandTree
  create_tuple()  -> None  (200/201/409 all mean "the tuple exists now")
  delete_tuple()  -> None  (200/204 both mean "the tuple is gone now")

Every other status raises AuthzServiceError. The only error this module
swallows is the 404 that drives the check endpoint sweep.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import requests

from authz.endpoints import CHECK_VARIANTS, EndpointVariant, decode_json, fatal, new_session, send, sweep
from core.errors import AuthzServiceError, MalformedResponse
from core.models import CheckQuery, ExpandTree, ListPage, ListQuery

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("todogate.authz.tuples")

_SERVICE = "keto"


def decode_allowed(doc: object) -> bool:
    """Read {"allowed": bool}. A missing or non-boolean field means False."""
    if isinstance(doc, dict) and isinstance(doc.get("allowed"), bool):
        return doc["allowed"]
    return False


class TupleStoreClient:
    def __init__(
        self,
        read_url: str,
        write_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        check_variants: tuple[EndpointVariant, ...] = CHECK_VARIANTS,
    ) -> None:
        self.read_url = read_url.rstrip("/")
        self.write_url = write_url.rstrip("/")
        self.timeout = timeout
        self.check_variants = check_variants
        self._session = session or new_session()

    @classmethod
    def from_settings(cls, settings: "Settings", session: Optional[requests.Session] = None) -> "TupleStoreClient":
        return cls(
            settings.keto_read_url,
            settings.keto_write_url,
            session=session,
            timeout=settings.http_timeout,
        )

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def check(self, query: CheckQuery) -> bool:
        """Return whether query.subject holds query.relation on query.object.

        Sweeps self.check_variants. When no variant is served (all 404), falls
        back to an exact-match list with page_size=1. The fallback does not
        expand subject sets, so indirect (group) grants that a real check
        would resolve are reported as False.
        """
        found = sweep(
            self._session,
            self.check_variants,
            self.read_url,
            service=_SERVICE,
            timeout=self.timeout,
            payload=query.to_json(),
        )
        if found is not None:
            variant, resp = found
            return decode_allowed(decode_json(resp, _SERVICE, f"check ({variant.name})"))

        logger.warning(
            "No check endpoint served at %s; using exact-match list fallback for %s:%s#%s",
            self.read_url,
            query.namespace,
            query.object,
            query.relation,
        )
        try:
            page = self.list_tuples(ListQuery.exact(query, page_size=1))
        except AuthzServiceError as e:
            raise AuthzServiceError(
                _SERVICE, f"no check endpoint found and list fallback failed: {e}", e.status, e.body
            ) from e
        return len(page.tuples) > 0

    def list_tuples(self, query: ListQuery) -> ListPage:
        """List relation tuples matching the filters. An empty page is not an error."""
        resp = send(
            self._session,
            "GET",
            f"{self.read_url}/relation-tuples",
            service=_SERVICE,
            timeout=self.timeout,
            params=query.to_params(),
        )
        if resp.status_code != 200:
            raise fatal(_SERVICE, resp, "list")
        doc = decode_json(resp, _SERVICE, "list")
        try:
            return ListPage.from_json(doc)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(_SERVICE, f"list json: {e}", resp.status_code, resp.text[:500]) from e

    def expand(self, namespace: str, object: str, relation: str, max_depth: Optional[int] = None) -> ExpandTree:
        """Expand a relation into the tree of subjects that hold it."""
        params: dict[str, Any] = {"namespace": namespace, "object": object, "relation": relation}
        if max_depth is not None:
            params["max_depth"] = max_depth
        resp = send(
            self._session,
            "GET",
            f"{self.read_url}/relation-tuples/expand",
            service=_SERVICE,
            timeout=self.timeout,
            params=params,
        )
        if resp.status_code != 200:
            raise fatal(_SERVICE, resp, "expand")
        doc = decode_json(resp, _SERVICE, "expand")
        try:
            return ExpandTree.from_json(doc)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(_SERVICE, f"expand json: {e}", resp.status_code, resp.text[:500]) from e

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def create_tuple(self, namespace: str, object: str, relation: str, subject_id: str) -> None:
        """Create a tuple. An already-existing tuple (409) is success."""
        resp = send(
            self._session,
            "PUT",
            f"{self.write_url}/relation-tuples",
            service=_SERVICE,
            timeout=self.timeout,
            json={"namespace": namespace, "object": object, "relation": relation, "subject_id": subject_id},
        )
        if resp.status_code not in (200, 201, 409):
            raise fatal(_SERVICE, resp, "create tuple")
        logger.debug("Tuple %s:%s#%s@%s written (%d)", namespace, object, relation, subject_id, resp.status_code)

    def delete_tuple(self, namespace: str, object: str, relation: str, subject_id: str) -> None:
        """Delete tuples matching all four fields. Nothing to delete (204) is success."""
        resp = send(
            self._session,
            "DELETE",
            f"{self.write_url}/relation-tuples",
            service=_SERVICE,
            timeout=self.timeout,
            params={"namespace": namespace, "object": object, "relation": relation, "subject_id": subject_id},
        )
        if resp.status_code not in (200, 204):
            raise fatal(_SERVICE, resp, "delete tuple")
        logger.debug("Tuple %s:%s#%s@%s deleted (%d)", namespace, object, relation, subject_id, resp.status_code)
