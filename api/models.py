"""
API request and response models for TodoGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.models import ExpandTree, Todo, User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TodoCreate(BaseModel):
    """Request body for POST /api/v1/todos. Surrounding whitespace is stripped; blank titles are rejected."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=500)


class TodoUpdate(BaseModel):
    """Request body for PATCH /api/v1/todos/{id}. At least one field must be present."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    completed: Optional[bool] = None

    @model_validator(mode="after")
    def require_a_field(self) -> "TodoUpdate":
        if self.title is None and self.completed is None:
            raise ValueError("Provide title and/or completed.")
        return self

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller sent -- never overwrite a column with null."""
        return self.model_dump(exclude_none=True)


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users. Surrounding whitespace is stripped; blank names are rejected."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TodoResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    completed: bool
    created_at: str

    @classmethod
    def from_todo(cls, todo: Todo) -> "TodoResponse":
        return cls(id=todo.id, title=todo.title, completed=todo.completed, created_at=todo.created_at)


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, name=user.name)


class AdminTodoResponse(TodoResponse):
    """One row of GET /api/v1/admin/todos. owner_id is None when no owner tuple was found."""

    owner_id: Optional[str] = None
    owner_email: Optional[str] = None

    @classmethod
    def from_todo(cls, todo: Todo) -> "AdminTodoResponse":
        return cls(
            id=todo.id,
            title=todo.title,
            completed=todo.completed,
            created_at=todo.created_at,
            owner_id=todo.owner_id,
            owner_email=todo.owner_email,
        )


class DeleteResponse(BaseModel):
    """Response for DELETE routes. warnings lists tuple cleanup that did not complete."""

    model_config = ConfigDict(frozen=True)

    id: int
    deleted: bool = True
    warnings: list[str] = Field(default_factory=list)


class OwnersResponse(BaseModel):
    """Response for GET /api/v1/admin/todos/{id}/owners."""

    model_config = ConfigDict(frozen=True)

    id: int
    subjects: list[str]
    tree: dict[str, Any]

    @classmethod
    def from_tree(cls, todo_id: int, tree: ExpandTree) -> "OwnersResponse":
        return cls(id=todo_id, subjects=tree.subject_ids(), tree=tree.to_json())


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
