"""
core/errors.py -- Exception taxonomy shared by every layer.

Clients (authz/, records/) raise these; the ownership orchestrator raises
Forbidden / ResourceNotFound; api/main.py maps each class to one HTTP status.
Backend response bodies are kept on the exception for logging and are never
copied into an HTTP response.

Layer rule: core/ is the kernel. No imports from other packages.
"""

from __future__ import annotations

from typing import Any, Optional


class TodoGateError(Exception):
    """Base class for every error this project raises on purpose."""


class AuthzServiceError(TodoGateError):
    """Non-success response (or transport failure) from the tuple store or identity service.

    status is None when the request never produced a response (DNS failure,
    refused connection, timeout).
    """

    def __init__(self, service: str, message: str, status: Optional[int] = None, body: str = "") -> None:
        self.service = service
        self.status = status
        self.body = body
        suffix = f" ({status})" if status is not None else ""
        super().__init__(f"{service} error{suffix}: {message}")


class MalformedResponse(AuthzServiceError):
    """A success-status response whose body is not the JSON we expect."""


class OwnershipWriteFailed(AuthzServiceError):
    """The row was created but its ownership tuple could not be written.

    The created row is attached so callers can report it. It now exists
    without an owner tuple; nothing repairs that automatically.
    """

    def __init__(self, todo: Any, cause: AuthzServiceError) -> None:
        super().__init__(
            cause.service,
            f"ownership tuple not written for todo {todo.id}: {cause}",
            cause.status,
            cause.body,
        )
        self.todo = todo


class RecordStoreError(TodoGateError):
    """Non-success response or transport failure from the record store."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        self.status = status
        self.body = body
        suffix = f" ({status})" if status is not None else ""
        super().__init__(f"record store error{suffix}: {message}")


class Forbidden(TodoGateError):
    """The tuple store answered the ownership check with allowed=false."""


class ResourceNotFound(TodoGateError):
    """A row-level read, update or delete targeted a row that does not exist."""
