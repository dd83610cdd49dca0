"""
core/models.py -- Domain dataclasses for relation tuples and todo rows.

Wire documents from the tuple store and record store are decoded into these
types once, at the client boundary (the from_json classmethods). Nothing
downstream re-reads raw JSON or re-derives a default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

TODO_NAMESPACE = "todos"
OWNER_RELATION = "owner"
# Subject ids for people are "user:<identity id>". The admin listing strips
# this prefix to recover the identity id.
USER_SUBJECT_PREFIX = "user:"


def user_subject(user_id: str) -> str:
    return f"{USER_SUBJECT_PREFIX}{user_id}"


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SubjectId:
    """A direct subject, e.g. "user:42"."""

    id: str

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class SubjectSet:
    """Holders of `relation` on `object` in `namespace` (group membership).

    Renders as "ns:obj#rel", or "ns:obj" when relation is empty -- the form
    the list endpoint accepts in its subject_set query parameter.
    """

    namespace: str
    object: str
    relation: str = ""

    def __str__(self) -> str:
        if not self.relation:
            return f"{self.namespace}:{self.object}"
        return f"{self.namespace}:{self.object}#{self.relation}"

    @classmethod
    def parse(cls, value: str) -> "SubjectSet":
        """Parse "ns:obj#rel" or "ns:obj". Raises ValueError without a namespace separator."""
        head, _, relation = value.partition("#")
        namespace, sep, obj = head.partition(":")
        if not sep or not namespace or not obj:
            raise ValueError(f"Invalid subject set: {value!r}")
        return cls(namespace=namespace, object=obj, relation=relation)

    def to_json(self) -> dict[str, str]:
        return {"namespace": self.namespace, "object": self.object, "relation": self.relation}


SubjectRef = Union[SubjectId, SubjectSet]


def decode_subject(doc: dict[str, Any]) -> Optional[SubjectRef]:
    """Read the subject_id / subject_set pair carried by tuple-shaped documents."""
    subject_id = doc.get("subject_id")
    if isinstance(subject_id, str):
        return SubjectId(subject_id)
    subject_set = doc.get("subject_set")
    if isinstance(subject_set, dict):
        return SubjectSet(
            namespace=str(subject_set["namespace"]),
            object=str(subject_set["object"]),
            relation=str(subject_set.get("relation") or ""),
        )
    return None


# ---------------------------------------------------------------------------
# Tuples and queries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RelationTuple:
    namespace: str
    object: str
    relation: str
    subject: SubjectRef

    @classmethod
    def from_json(cls, doc: dict[str, Any]) -> "RelationTuple":
        """Decode one entry of a relation_tuples array. Raises KeyError / ValueError on bad shape."""
        subject = decode_subject(doc)
        if subject is None:
            raise ValueError("relation tuple has neither subject_id nor subject_set")
        return cls(
            namespace=str(doc["namespace"]),
            object=str(doc["object"]),
            relation=str(doc["relation"]),
            subject=subject,
        )


@dataclass(frozen=True)
class CheckQuery:
    namespace: str
    object: str
    relation: str
    subject: SubjectRef
    max_depth: Optional[int] = None  # None = service default (5 for Keto)

    def to_json(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "namespace": self.namespace,
            "object": self.object,
            "relation": self.relation,
        }
        if isinstance(self.subject, SubjectSet):
            body["subject_set"] = self.subject.to_json()
        else:
            body["subject_id"] = self.subject.id
        if self.max_depth is not None:
            body["max_depth"] = self.max_depth
        return body


@dataclass(frozen=True)
class ListQuery:
    """Filters for the list endpoint. Only namespace is required."""

    namespace: str
    object: Optional[str] = None
    relation: Optional[str] = None
    subject_id: Optional[str] = None
    subject_set: Optional[str] = None  # "ns:obj#rel" form
    page_size: Optional[int] = None
    page_token: Optional[str] = None

    @classmethod
    def exact(cls, query: CheckQuery, page_size: int = 1) -> "ListQuery":
        """Exact-match listing equivalent to a check query. No subject-set expansion."""
        subject_id = query.subject.id if isinstance(query.subject, SubjectId) else None
        subject_set = str(query.subject) if isinstance(query.subject, SubjectSet) else None
        return cls(
            namespace=query.namespace,
            object=query.object,
            relation=query.relation,
            subject_id=subject_id,
            subject_set=subject_set,
            page_size=page_size,
        )

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"namespace": self.namespace}
        optional = {
            "object": self.object,
            "relation": self.relation,
            "subject_id": self.subject_id,
            "subject_set": self.subject_set,
            "page_size": self.page_size,
            "page_token": self.page_token,
        }
        params.update({k: v for k, v in optional.items() if v is not None})
        return params


@dataclass
class ListPage:
    tuples: list[RelationTuple] = field(default_factory=list)
    next_page_token: Optional[str] = None

    @classmethod
    def from_json(cls, doc: dict[str, Any]) -> "ListPage":
        """Decode a list response. Missing or null relation_tuples is an empty page.

        Keto returns an empty string for next_page_token on the last page; that
        is normalized to None.
        """
        raw = doc.get("relation_tuples") or []
        if not isinstance(raw, list):
            raise ValueError("relation_tuples is not an array")
        return cls(
            tuples=[RelationTuple.from_json(item) for item in raw],
            next_page_token=doc.get("next_page_token") or None,
        )


@dataclass
class ExpandTree:
    """One node of an expand response.

    type is "union", "exclusion", "intersection", "leaf" (and on some versions
    "unspecified"). Leaves carry the resolved subject; inner nodes carry the
    subject set they expanded.
    """

    type: str
    subject: Optional[SubjectRef] = None
    children: list["ExpandTree"] = field(default_factory=list)

    @classmethod
    def from_json(cls, doc: dict[str, Any]) -> "ExpandTree":
        # Newer servers nest the subject under "tuple"; older ones put
        # subject_id / subject_set on the node itself.
        carrier = doc.get("tuple") if isinstance(doc.get("tuple"), dict) else doc
        return cls(
            type=str(doc.get("type", "unspecified")),
            subject=decode_subject(carrier),
            children=[cls.from_json(child) for child in doc.get("children") or []],
        )

    def subject_ids(self) -> list[str]:
        """Flatten the tree to the direct subject ids at its leaves, in order, without duplicates."""
        seen: list[str] = []
        if isinstance(self.subject, SubjectId) and not self.children:
            seen.append(self.subject.id)
        for child in self.children:
            for sid in child.subject_ids():
                if sid not in seen:
                    seen.append(sid)
        return seen

    def to_json(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"type": self.type}
        if isinstance(self.subject, SubjectSet):
            doc["subject_set"] = self.subject.to_json()
        elif isinstance(self.subject, SubjectId):
            doc["subject_id"] = self.subject.id
        if self.children:
            doc["children"] = [child.to_json() for child in self.children]
        return doc


# ---------------------------------------------------------------------------
# Todo rows
# ---------------------------------------------------------------------------


@dataclass
class Todo:
    id: int
    title: str
    completed: bool = False
    created_at: str = ""
    owner_id: Optional[str] = None  # admin listing only
    owner_email: Optional[str] = None  # admin listing only

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Todo":
        return cls(
            id=int(row["id"]),
            title=str(row.get("title") or ""),
            completed=bool(row.get("completed", False)),
            created_at=str(row.get("created_at") or ""),
        )


@dataclass
class User:
    id: int
    name: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "User":
        return cls(id=int(row["id"]), name=str(row.get("name") or ""))
