"""
ownership/orchestrator.py -- Ownership-gated todo operations.

Sequences tuple-store decisions and record-store mutations so every change to
a todo row is gated by, and attributable to, an ownership tuple:

    todos:<row id>#owner@user:<user id>

The two backends share no transaction. Each operation is a visible series of
calls, never wrapped in a pretend transaction:

  list_for_user  -- list owner tuples -> select rows by id (skipped when none)
  create         -- insert row -> create tuple
  get/update     -- check -> select/patch row
  delete         -- check -> delete row -> delete tuple (best effort)
  admin_*        -- no check; admin_delete cleans up every owner tuple

Known races and drift (accepted, not repaired):
  - TOCTOU: a grant revoked between check() and the row mutation is not
    re-validated.
  - create: row inserted, tuple write failed -> row without owner. The
    operation fails with OwnershipWriteFailed carrying the row.
  - delete: row deleted, tuple delete failed -> tuple without row. The
    operation succeeds; the failure is an InconsistencyWarning.

This is the only layer allowed to downgrade a client error to a warning,
and only on the tuple cleanup paths above.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

from authz.tuples import TupleStoreClient
from core.errors import AuthzServiceError, Forbidden, OwnershipWriteFailed, RecordStoreError, ResourceNotFound
from core.models import (
    OWNER_RELATION,
    TODO_NAMESPACE,
    USER_SUBJECT_PREFIX,
    CheckQuery,
    ExpandTree,
    ListPage,
    ListQuery,
    SubjectId,
    Todo,
    user_subject,
)
from records.store import RecordStore

logger = logging.getLogger("todogate.ownership")

_COLUMNS = "id,title,completed,created_at"
_USER_PAGE_SIZE = 500
# Single page, no continuation loop. Owners beyond this many tuples are
# reported as None by admin_list_all_with_owners().
_ADMIN_PAGE_SIZE = 1000

# Client-facing warning texts. Backend error text goes to InconsistencyWarning.detail.
OWNER_TUPLE_NOT_WRITTEN = "owner tuple was not written"
OWNER_TUPLE_NOT_DELETED = "owner tuple cleanup did not complete"
OWNER_TUPLES_NOT_LISTED = "owner tuples could not be listed for cleanup"
SUBJECT_SET_OWNER_KEPT = "subject-set owner tuple left in place"


@dataclass(frozen=True)
class InconsistencyWarning:
    """Tuple store and record store disagree after a step that already succeeded.

    message is fixed text safe to return to clients. detail carries the
    backend error and only reaches the warning sink.
    """

    operation: str
    todo_id: int
    message: str
    detail: str = ""


@dataclass
class DeleteOutcome:
    todo_id: int
    warnings: list[InconsistencyWarning] = field(default_factory=list)


WarningSink = Callable[[InconsistencyWarning], None]


def log_warning(warning: InconsistencyWarning) -> None:
    """Default sink: one WARNING log line per drift event."""
    logger.warning(
        "Ownership drift after %s of todo %d: %s (%s)",
        warning.operation,
        warning.todo_id,
        warning.message,
        warning.detail or "no detail",
    )


def object_ids(page: ListPage) -> list[int]:
    """Numeric object ids from a page of tuples, in page order, without duplicates."""
    ids: list[int] = []
    for t in page.tuples:
        if not t.object.isdigit():
            logger.debug("Skipping non-numeric object %r in namespace %s", t.object, t.namespace)
            continue
        value = int(t.object)
        if value not in ids:
            ids.append(value)
    return ids


class OwnershipOrchestrator:
    def __init__(
        self,
        tuples: TupleStoreClient,
        records: RecordStore,
        *,
        table: str = "todos",
        namespace: str = TODO_NAMESPACE,
        on_warning: WarningSink = log_warning,
    ) -> None:
        self.tuples = tuples
        self.records = records
        self.table = table
        self.namespace = namespace
        self.on_warning = on_warning

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def is_owner(self, user_id: str, todo_id: int) -> bool:
        return self.tuples.check(
            CheckQuery(
                namespace=self.namespace,
                object=str(todo_id),
                relation=OWNER_RELATION,
                subject=SubjectId(user_subject(user_id)),
            )
        )

    def _require_owner(self, user_id: str, todo_id: int) -> None:
        if not self.is_owner(user_id, todo_id):
            logger.info("Denied: user %s is not owner of todo %d", user_id, todo_id)
            raise Forbidden(f"user {user_id} does not own todo {todo_id}")

    def _warn(self, operation: str, todo_id: int, message: str, detail: str = "") -> InconsistencyWarning:
        warning = InconsistencyWarning(operation=operation, todo_id=todo_id, message=message, detail=detail)
        self.on_warning(warning)
        return warning

    def _delete_owner_tuple(self, operation: str, todo_id: int, subject_id: str) -> Optional[InconsistencyWarning]:
        """Best-effort tuple removal. Returns a warning instead of raising."""
        try:
            self.tuples.delete_tuple(self.namespace, str(todo_id), OWNER_RELATION, subject_id)
        except AuthzServiceError as e:
            return self._warn(operation, todo_id, OWNER_TUPLE_NOT_DELETED, f"{subject_id}: {e}")
        return None

    # ------------------------------------------------------------------
    # Per-user operations
    # ------------------------------------------------------------------

    def list_for_user(self, user_id: str) -> list[Todo]:
        """Todos owned by user_id, newest first. No record-store call when the user owns nothing."""
        page = self.tuples.list_tuples(
            ListQuery(
                namespace=self.namespace,
                relation=OWNER_RELATION,
                subject_id=user_subject(user_id),
                page_size=_USER_PAGE_SIZE,
            )
        )
        ids = object_ids(page)
        if not ids:
            return []
        rows = self.records.select(
            self.table,
            {
                "select": _COLUMNS,
                "id": f"in.({','.join(str(i) for i in ids)})",
                "order": "created_at.desc",
            },
        )
        return [Todo.from_row(row) for row in rows]

    def get(self, user_id: str, todo_id: int) -> Todo:
        self._require_owner(user_id, todo_id)
        rows = self.records.select(self.table, {"select": _COLUMNS, "id": f"eq.{todo_id}"})
        if not rows:
            raise ResourceNotFound(f"todo {todo_id} not found")
        return Todo.from_row(rows[0])

    def create(self, user_id: str, title: str) -> Todo:
        """Insert the row, then write its ownership tuple.

        Raises OwnershipWriteFailed (carrying the created Todo) when the tuple
        write fails. The row is not rolled back.
        """
        rows = self.records.insert(self.table, {"title": title})
        if not rows:
            raise RecordStoreError(f"insert into {self.table} returned no row")
        todo = Todo.from_row(rows[0])

        try:
            self.tuples.create_tuple(self.namespace, str(todo.id), OWNER_RELATION, user_subject(user_id))
        except AuthzServiceError as e:
            self._warn("create", todo.id, OWNER_TUPLE_NOT_WRITTEN, str(e))
            raise OwnershipWriteFailed(todo, e) from e

        logger.info("User %s created todo %d", user_id, todo.id)
        return todo

    def update(self, user_id: str, todo_id: int, fields: dict[str, Any]) -> Todo:
        self._require_owner(user_id, todo_id)
        rows = self.records.update(self.table, todo_id, fields)
        if not rows:
            raise ResourceNotFound(f"todo {todo_id} not found")
        return Todo.from_row(rows[0])

    def delete(self, user_id: str, todo_id: int) -> DeleteOutcome:
        """Delete a row the user owns, then drop its owner tuple.

        The row deletion decides success. A failed tuple delete is returned as
        a warning (and sent to the sink); it never fails the call.
        """
        self._require_owner(user_id, todo_id)
        deleted = self.records.delete(self.table, todo_id)
        if deleted == []:
            raise ResourceNotFound(f"todo {todo_id} not found")

        outcome = DeleteOutcome(todo_id=todo_id)
        warning = self._delete_owner_tuple("delete", todo_id, user_subject(user_id))
        if warning is not None:
            outcome.warnings.append(warning)
        logger.info("User %s deleted todo %d", user_id, todo_id)
        return outcome

    # ------------------------------------------------------------------
    # Admin operations (caller has already established admin rights)
    # ------------------------------------------------------------------

    def admin_list_all_with_owners(self) -> list[Todo]:
        """Every todo, newest first, with owner_id joined from one page of owner tuples.

        Rows whose tuple is missing (or beyond the first page) get owner_id=None.
        """
        rows = self.records.select(self.table, {"select": _COLUMNS, "order": "created_at.desc"})
        page = self.tuples.list_tuples(
            ListQuery(namespace=self.namespace, relation=OWNER_RELATION, page_size=_ADMIN_PAGE_SIZE)
        )
        if page.next_page_token:
            logger.warning(
                "Owner listing truncated at %d tuples; remaining owners reported as None", _ADMIN_PAGE_SIZE
            )

        owners: dict[int, str] = {}
        for t in page.tuples:
            if not t.object.isdigit() or not isinstance(t.subject, SubjectId):
                continue
            subject = t.subject.id
            if subject.startswith(USER_SUBJECT_PREFIX):
                subject = subject[len(USER_SUBJECT_PREFIX) :]
            owners[int(t.object)] = subject

        todos = []
        for row in rows:
            todo = Todo.from_row(row)
            todo.owner_id = owners.get(todo.id)
            todos.append(todo)
        return todos

    def admin_delete(self, todo_id: int) -> DeleteOutcome:
        """Delete the row without an ownership check, then remove every owner tuple for it.

        Tuple cleanup runs even when the row was already gone, so orphaned
        tuples are cleared; ResourceNotFound is raised afterwards in that case.
        """
        deleted = self.records.delete(self.table, todo_id)

        outcome = DeleteOutcome(todo_id=todo_id)
        try:
            page = self.tuples.list_tuples(
                ListQuery(namespace=self.namespace, object=str(todo_id), relation=OWNER_RELATION)
            )
        except AuthzServiceError as e:
            outcome.warnings.append(self._warn("admin_delete", todo_id, OWNER_TUPLES_NOT_LISTED, str(e)))
            page = ListPage()

        for t in page.tuples:
            if not isinstance(t.subject, SubjectId):
                outcome.warnings.append(
                    self._warn("admin_delete", todo_id, SUBJECT_SET_OWNER_KEPT, str(t.subject))
                )
                continue
            warning = self._delete_owner_tuple("admin_delete", todo_id, t.subject.id)
            if warning is not None:
                outcome.warnings.append(warning)

        if deleted == []:
            raise ResourceNotFound(f"todo {todo_id} not found")
        logger.info("Admin deleted todo %d (%d owner tuples)", todo_id, len(page.tuples))
        return outcome

    def owners(self, todo_id: int, max_depth: Optional[int] = None) -> ExpandTree:
        """Diagnostics: expand the owner relation of one todo."""
        return self.tuples.expand(self.namespace, str(todo_id), OWNER_RELATION, max_depth)
