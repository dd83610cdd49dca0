"""
api/routes/v1/admin.py -- Admin-only todo routes.

Routes:
  GET    /admin/todos               -- every todo with owner id and email
  DELETE /admin/todos/{id}          -- delete without ownership check
  GET    /admin/todos/{id}/owners   -- expand the owner relation (diagnostics)

Router-level dependency require_admin() enforces 401/403 for every route.
Admin status comes from the identity role or roles:admin#member.

Known limitation: the owner join reads a single page of owner tuples, so
very large datasets report some owners as null.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_orchestrator, require_admin
from api.limiter import limiter
from api.models import AdminTodoResponse, DeleteResponse, OwnersResponse
from ownership.enrichment import attach_owner_emails
from ownership.orchestrator import OwnershipOrchestrator

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/admin/todos", response_model=list[AdminTodoResponse])
@limiter.limit("30/minute")
def admin_list_todos(
    request: Request,
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> list[AdminTodoResponse]:
    todos = orchestrator.admin_list_all_with_owners()
    attach_owner_emails(todos, request.app.state.identity)
    return [AdminTodoResponse.from_todo(t) for t in todos]


@router.delete("/admin/todos/{todo_id}", response_model=DeleteResponse)
@limiter.limit("30/minute")
def admin_delete_todo(
    request: Request,
    todo_id: int,
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> DeleteResponse:
    """Delete any todo and clear every owner tuple on it, whoever holds it."""
    outcome = orchestrator.admin_delete(todo_id)
    return DeleteResponse(id=outcome.todo_id, warnings=[w.message for w in outcome.warnings])


@router.get("/admin/todos/{todo_id}/owners", response_model=OwnersResponse)
@limiter.limit("30/minute")
def admin_todo_owners(
    request: Request,
    todo_id: int,
    max_depth: Annotated[Optional[int], Query(ge=1, le=20)] = None,
    orchestrator: OwnershipOrchestrator = Depends(get_orchestrator),
) -> OwnersResponse:
    """Return the expanded subject tree for a todo's owner relation."""
    return OwnersResponse.from_tree(todo_id, orchestrator.owners(todo_id, max_depth))
