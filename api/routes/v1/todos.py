"""
api/routes/v1/todos.py -- Per-user todo routes for the TodoGate REST API.

Routes:
  GET    /todos        -- todos the acting user owns, newest first
  POST   /todos        -- create a todo owned by the acting user
  GET    /todos/{id}   -- read one todo (owner only)
  PATCH  /todos/{id}   -- update title and/or completed (owner only)
  DELETE /todos/{id}   -- delete (owner only)

Every route needs X-User-Id (401 otherwise). Ownership failures surface as
core.errors exceptions and are mapped to 403 / 404 / 500 by the handlers in
api/main.py, so the handlers here contain no status-code branching.

Rate limits are applied via slowapi. @router.* sits above @limiter.limit()
so FastAPI registers the rate-limited wrapper.
"""

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_orchestrator, get_user_id
from api.limiter import limiter
from api.models import DeleteResponse, TodoCreate, TodoResponse, TodoUpdate
from ownership.orchestrator import OwnershipOrchestrator

router = APIRouter()


@router.get("/todos", response_model=list[TodoResponse])
@limiter.limit("120/minute")
def list_todos(
    request: Request,
    user_id: str = Depends(get_user_id),
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> list[TodoResponse]:
    """Return the todos whose ownership tuple names the acting user."""
    return [TodoResponse.from_todo(t) for t in orchestrator.list_for_user(user_id)]


@router.post("/todos", response_model=TodoResponse, status_code=201)
@limiter.limit("30/minute")
def create_todo(
    request: Request,
    body: TodoCreate,
    user_id: str = Depends(get_user_id),
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> TodoResponse:
    """Create a todo and record the acting user as its owner.

    If the row is written but the ownership tuple is not, the request fails
    with 500 and the row remains without an owner (see OwnershipWriteFailed).
    """
    return TodoResponse.from_todo(orchestrator.create(user_id, body.title))


@router.get("/todos/{todo_id}", response_model=TodoResponse)
@limiter.limit("120/minute")
def get_todo(
    request: Request,
    todo_id: int,
    user_id: str = Depends(get_user_id),
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> TodoResponse:
    return TodoResponse.from_todo(orchestrator.get(user_id, todo_id))


@router.patch("/todos/{todo_id}", response_model=TodoResponse)
@limiter.limit("60/minute")
def update_todo(
    request: Request,
    todo_id: int,
    body: TodoUpdate,
    user_id: str = Depends(get_user_id),
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> TodoResponse:
    """Apply the sent fields. 403 when the acting user is not the owner; no row is touched."""
    return TodoResponse.from_todo(orchestrator.update(user_id, todo_id, body.changes()))


@router.delete("/todos/{todo_id}", response_model=DeleteResponse)
@limiter.limit("60/minute")
def delete_todo(
    request: Request,
    todo_id: int,
    user_id: str = Depends(get_user_id),
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> DeleteResponse:
    """Delete the row. A failed owner-tuple cleanup is reported in warnings, not as an error."""
    outcome = orchestrator.delete(user_id, todo_id)
    return DeleteResponse(id=outcome.todo_id, warnings=[w.message for w in outcome.warnings])
