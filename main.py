#!/usr/bin/env python3
"""
TodoGate tuple tool -- inspect and edit relation tuples from a terminal.

Usage:
  python main.py check todos 12 owner user:42
  python main.py check todos 12 owner groups:eng#member --max-depth 3
  python main.py list todos --relation owner --subject-id user:42
  python main.py expand todos 12 owner
  python main.py grant todos 12 owner user:42
  python main.py revoke todos 12 owner user:42
  python main.py --json list todos

Environment variables (or .env):
  KETO_READ_URL    Read API base, e.g. http://localhost:4466
  KETO_WRITE_URL   Write API base, e.g. http://localhost:4467
  DEBUG=true       Fall back to the local docker ports when the URLs are unset
"""

import argparse
import json
import sys
from dataclasses import asdict
from typing import Optional

from authz.tuples import TupleStoreClient
from core.config import get_settings
from core.errors import AuthzServiceError
from core.models import CheckQuery, ListQuery, RelationTuple, SubjectId, SubjectRef, SubjectSet


def parse_subject(value: str) -> SubjectRef:
    """Values containing "#" (e.g. groups:eng#member) are subject sets; anything else is a subject id."""
    if "#" in value:
        return SubjectSet.parse(value)
    return SubjectId(value)


def _format_tuple(t: RelationTuple) -> str:
    return f"{t.namespace}:{t.object}#{t.relation}@{t.subject}"


def _print_tree(node, indent: int = 0) -> None:
    label = str(node.subject) if node.subject is not None else "-"
    print(f"{'  ' * indent}{node.type}: {label}")
    for child in node.children:
        _print_tree(child, indent + 1)


def run(args: argparse.Namespace, client: TupleStoreClient) -> int:
    """Execute one subcommand. Returns the process exit code."""
    if args.command == "check":
        allowed = client.check(
            CheckQuery(
                namespace=args.namespace,
                object=args.object,
                relation=args.relation,
                subject=parse_subject(args.subject),
                max_depth=args.max_depth,
            )
        )
        if args.json:
            print(json.dumps({"allowed": allowed}))
        else:
            print("allowed" if allowed else "denied")
        return 0 if allowed else 1

    if args.command == "list":
        page = client.list_tuples(
            ListQuery(
                namespace=args.namespace,
                object=args.object,
                relation=args.relation,
                subject_id=args.subject_id,
                subject_set=args.subject_set,
                page_size=args.page_size,
                page_token=args.page_token,
            )
        )
        if args.json:
            print(json.dumps(asdict(page), indent=2))
            return 0
        for t in page.tuples:
            print(_format_tuple(t))
        if not page.tuples:
            print("  (no tuples)")
        if page.next_page_token:
            print(f"\n  More results: --page-token {page.next_page_token}")
        return 0

    if args.command == "expand":
        tree = client.expand(args.namespace, args.object, args.relation, args.max_depth)
        if args.json:
            print(json.dumps(tree.to_json(), indent=2))
        else:
            _print_tree(tree)
        return 0

    if args.command == "grant":
        client.create_tuple(args.namespace, args.object, args.relation, args.subject_id)
        print(f"granted {args.namespace}:{args.object}#{args.relation}@{args.subject_id}")
        return 0

    if args.command == "revoke":
        client.delete_tuple(args.namespace, args.object, args.relation, args.subject_id)
        print(f"revoked {args.namespace}:{args.object}#{args.relation}@{args.subject_id}")
        return 0

    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todogate-tuples",
        description="Inspect and edit relation tuples in the Keto tuple store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Output structured JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Ask whether SUBJECT holds RELATION on OBJECT")
    check.add_argument("namespace")
    check.add_argument("object")
    check.add_argument("relation")
    check.add_argument("subject", help='Subject id ("user:42") or subject set ("groups:eng#member")')
    check.add_argument("--max-depth", type=int, default=None, metavar="N")

    lst = sub.add_parser("list", help="List tuples in a namespace")
    lst.add_argument("namespace")
    lst.add_argument("--object", default=None)
    lst.add_argument("--relation", default=None)
    lst.add_argument("--subject-id", default=None)
    lst.add_argument("--subject-set", default=None, help='"ns:obj#rel" form')
    lst.add_argument("--page-size", type=int, default=None)
    lst.add_argument("--page-token", default=None)

    expand = sub.add_parser("expand", help="Expand RELATION on OBJECT into its subject tree")
    expand.add_argument("namespace")
    expand.add_argument("object")
    expand.add_argument("relation")
    expand.add_argument("--max-depth", type=int, default=None, metavar="N")

    for name, text in (("grant", "Create a tuple (idempotent)"), ("revoke", "Delete matching tuples")):
        p = sub.add_parser(name, help=text)
        p.add_argument("namespace")
        p.add_argument("object")
        p.add_argument("relation")
        p.add_argument("subject_id")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = TupleStoreClient.from_settings(get_settings())
        return run(args, client)
    except AuthzServiceError as e:
        print(f"  [!] {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"  [!] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
