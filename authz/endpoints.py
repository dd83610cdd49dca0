"""
authz/endpoints.py -- Endpoint variant descriptors and the candidate sweep.

The tuple store and identity service have shipped several incompatible HTTP
shapes for the same operation. Instead of hard-coding one, each operation
owns an ordered tuple of EndpointVariant descriptors. sweep() sends the
request to each in turn and classify() decides what a status code means:

  SUCCESS  -- use this response, stop
  TRY_NEXT -- 404: this deployment does not serve this shape, move on
  FATAL    -- anything else: a real error, stop the whole sweep

Adding a new variant means appending a descriptor; the call sites do not
change. The sweep is a fallback strategy for shape drift, not a retry loop:
a 5xx on the first candidate ends the operation immediately.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import requests

from core.errors import AuthzServiceError, MalformedResponse

logger = logging.getLogger("todogate.authz.endpoints")


class Outcome(str, Enum):
    SUCCESS = "success"
    TRY_NEXT = "try_next"
    FATAL = "fatal"


@dataclass(frozen=True)
class EndpointVariant:
    """One historical shape of an endpoint.

    path may contain str.format placeholders (e.g. "/identities/{id}").
    POST/PUT variants send the payload as a JSON body; GET/DELETE variants
    send it as query parameters.
    """

    name: str
    method: str
    path: str

    def url(self, base_url: str, **path_params: str) -> str:
        return base_url + self.path.format(**path_params)

    def send(
        self,
        session: requests.Session,
        base_url: str,
        *,
        service: str,
        timeout: float,
        payload: Optional[dict[str, Any]] = None,
        path_params: Optional[dict[str, str]] = None,
    ) -> requests.Response:
        url = self.url(base_url, **(path_params or {}))
        if self.method in ("POST", "PUT", "PATCH"):
            return send(session, self.method, url, service=service, timeout=timeout, json=payload)
        return send(session, self.method, url, service=service, timeout=timeout, params=payload)


# Ordered: the "openapi" check answers 200 {"allowed": false} on deny, the
# legacy check answers 403, so openapi goes first on every prefix.
CHECK_VARIANTS: tuple[EndpointVariant, ...] = (
    EndpointVariant("openapi", "POST", "/relation-tuples/check/openapi"),
    EndpointVariant("legacy", "POST", "/relation-tuples/check"),
    EndpointVariant("v1-openapi", "POST", "/v1/relation-tuples/check/openapi"),
    EndpointVariant("v1-legacy", "POST", "/v1/relation-tuples/check"),
)

IDENTITY_VARIANTS: tuple[EndpointVariant, ...] = (
    EndpointVariant("admin", "GET", "/admin/identities/{id}"),
    EndpointVariant("public", "GET", "/identities/{id}"),
)


def classify(
    status: int,
    success: tuple[int, ...] = (200,),
    try_next: tuple[int, ...] = (404,),
) -> Outcome:
    """Map an HTTP status to a sweep outcome."""
    if status in success:
        return Outcome.SUCCESS
    if status in try_next:
        return Outcome.TRY_NEXT
    return Outcome.FATAL


def new_session() -> requests.Session:
    """Build a Session for one backend.

    max_redirects=3 replaces the requests default of 30 -- these are known
    internal services, 3 hops is generous.
    """
    session = requests.Session()
    session.max_redirects = 3
    session.headers.update({"Content-Type": "application/json"})
    return session


def send(
    session: requests.Session,
    method: str,
    url: str,
    *,
    service: str,
    timeout: float,
    **kwargs: Any,
) -> requests.Response:
    """Issue one request. Transport failures become AuthzServiceError with status=None."""
    try:
        return session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        raise AuthzServiceError(service, f"{method} {url} failed: {e}") from e


def fatal(service: str, resp: requests.Response, what: str) -> AuthzServiceError:
    """Build the error for an unexpected status. The body is kept for logs only."""
    return AuthzServiceError(service, f"{what} returned {resp.status_code}", resp.status_code, resp.text[:500])


def decode_json(resp: requests.Response, service: str, what: str) -> Any:
    """Parse a success-status body, raising MalformedResponse when it is not JSON."""
    try:
        return resp.json()
    except ValueError as e:
        raise MalformedResponse(service, f"{what} json: {e}", resp.status_code, resp.text[:500]) from e


def sweep(
    session: requests.Session,
    variants: tuple[EndpointVariant, ...],
    base_url: str,
    *,
    service: str,
    timeout: float,
    payload: Optional[dict[str, Any]] = None,
    path_params: Optional[dict[str, str]] = None,
) -> Optional[tuple[EndpointVariant, requests.Response]]:
    """Try each variant in order.

    Returns (variant, response) for the first SUCCESS, None when every variant
    answered TRY_NEXT. Raises AuthzServiceError on the first FATAL status;
    later variants are not attempted.
    """
    for variant in variants:
        resp = variant.send(
            session,
            base_url,
            service=service,
            timeout=timeout,
            payload=payload,
            path_params=path_params,
        )
        outcome = classify(resp.status_code)
        if outcome is Outcome.SUCCESS:
            return variant, resp
        if outcome is Outcome.TRY_NEXT:
            logger.debug("%s variant %s not served here (404), trying next", service, variant.name)
            continue
        raise fatal(service, resp, f"{variant.name} {variant.method} {variant.path}")
    return None
