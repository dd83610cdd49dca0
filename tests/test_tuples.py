"""
tests/test_tuples.py -- TupleStoreClient against a mocked requests Session.

Covers:
  - check(): a 404 on one shape followed by an answer on the next is not an error
  - check(): fallback to exact-match list when no shape is served, and its
    agreement with what a real check would answer for direct grants
  - check(): missing "allowed" is a deny, non-JSON success body is malformed
  - create_tuple / delete_tuple idempotency (409, 204)
  - list_tuples / expand decoding and error paths
"""

from __future__ import annotations

import pytest

from authz.endpoints import CHECK_VARIANTS
from authz.tuples import TupleStoreClient, decode_allowed
from core.errors import AuthzServiceError, MalformedResponse
from core.models import CheckQuery, ListQuery, SubjectId, SubjectSet

READ = "http://keto-read"
WRITE = "http://keto-write"


def _client(session) -> TupleStoreClient:
    return TupleStoreClient(READ, WRITE, session=session, timeout=1.0)


def _query(subject="user:a") -> CheckQuery:
    return CheckQuery("todos", "7", "owner", SubjectId(subject))


def _all_404(http_response):
    return [http_response(404) for _ in CHECK_VARIANTS]


class TestCheck:
    def test_allowed_on_first_shape(self, http_session, http_response):
        session = http_session(http_response(200, {"allowed": True}))
        assert _client(session).check(_query()) is True
        assert session.request.call_args.kwargs["json"]["subject_id"] == "user:a"

    def test_denied_is_false_not_error(self, http_session, http_response):
        session = http_session(http_response(200, {"allowed": False}))
        assert _client(session).check(_query()) is False

    def test_404_then_answer_is_not_an_error(self, http_session, http_response):
        session = http_session(http_response(404), http_response(200, {"allowed": True}))
        assert _client(session).check(_query()) is True
        assert session.request.call_count == 2

    def test_server_error_is_raised_without_trying_other_shapes(self, http_session, http_response):
        session = http_session(http_response(503, text="unavailable"))
        with pytest.raises(AuthzServiceError) as exc_info:
            _client(session).check(_query())
        assert exc_info.value.status == 503
        assert session.request.call_count == 1

    def test_missing_allowed_field_is_false(self, http_session, http_response):
        session = http_session(http_response(200, {"something": "else"}))
        assert _client(session).check(_query()) is False

    def test_non_json_success_body_is_malformed(self, http_session, http_response):
        session = http_session(http_response(200, text="<html>ok</html>"))
        with pytest.raises(MalformedResponse):
            _client(session).check(_query())

    def test_fallback_finds_direct_grant(self, http_session, http_response):
        page = {
            "relation_tuples": [
                {"namespace": "todos", "object": "7", "relation": "owner", "subject_id": "user:a"},
            ]
        }
        session = http_session(*_all_404(http_response), http_response(200, page))
        assert _client(session).check(_query()) is True

        last = session.request.call_args
        assert last.args == ("GET", f"{READ}/relation-tuples")
        assert last.kwargs["params"] == {
            "namespace": "todos",
            "object": "7",
            "relation": "owner",
            "subject_id": "user:a",
            "page_size": 1,
        }

    def test_fallback_empty_page_is_false(self, http_session, http_response):
        session = http_session(*_all_404(http_response), http_response(200, {"relation_tuples": []}))
        assert _client(session).check(_query("user:b")) is False

    def test_fallback_sends_subject_set_filter(self, http_session, http_response):
        session = http_session(*_all_404(http_response), http_response(200, {"relation_tuples": []}))
        q = CheckQuery("todos", "7", "owner", SubjectSet("groups", "eng", "member"))
        _client(session).check(q)
        assert session.request.call_args.kwargs["params"]["subject_set"] == "groups:eng#member"

    def test_fallback_failure_is_reported(self, http_session, http_response):
        session = http_session(*_all_404(http_response), http_response(500, text="down"))
        with pytest.raises(AuthzServiceError, match="list fallback failed") as exc_info:
            _client(session).check(_query())
        assert exc_info.value.status == 500

    @pytest.mark.parametrize("allowed", [True, False])
    def test_fallback_agrees_with_check_for_direct_grants(self, http_session, http_response, allowed):
        """The same direct grant state yields the same answer on either path."""
        tuples = (
            [{"namespace": "todos", "object": "7", "relation": "owner", "subject_id": "user:a"}] if allowed else []
        )
        via_check = _client(http_session(http_response(200, {"allowed": allowed}))).check(_query())
        via_list = _client(
            http_session(*_all_404(http_response), http_response(200, {"relation_tuples": tuples}))
        ).check(_query())
        assert via_check == via_list == allowed


def test_decode_allowed_rejects_non_bool():
    assert decode_allowed({"allowed": "true"}) is False
    assert decode_allowed(None) is False
    assert decode_allowed({"allowed": True}) is True


class TestWrites:
    def test_create_then_create_again_both_succeed(self, http_session, http_response):
        session = http_session(http_response(201, {}), http_response(409, {"error": "exists"}))
        client = _client(session)
        client.create_tuple("todos", "7", "owner", "user:a")
        client.create_tuple("todos", "7", "owner", "user:a")
        call = session.request.call_args
        assert call.args == ("PUT", f"{WRITE}/relation-tuples")
        assert call.kwargs["json"] == {"namespace": "todos", "object": "7", "relation": "owner", "subject_id": "user:a"}

    def test_create_failure_raises(self, http_session, http_response):
        session = http_session(http_response(400, text="bad namespace"))
        with pytest.raises(AuthzServiceError) as exc_info:
            _client(session).create_tuple("nope", "7", "owner", "user:a")
        assert exc_info.value.status == 400

    @pytest.mark.parametrize("status", [200, 204])
    def test_delete_success_statuses(self, http_session, http_response, status):
        session = http_session(http_response(status))
        _client(session).delete_tuple("todos", "7", "owner", "user:a")
        call = session.request.call_args
        assert call.args == ("DELETE", f"{WRITE}/relation-tuples")
        assert call.kwargs["params"]["subject_id"] == "user:a"

    def test_delete_failure_raises(self, http_session, http_response):
        session = http_session(http_response(500))
        with pytest.raises(AuthzServiceError):
            _client(session).delete_tuple("todos", "7", "owner", "user:a")


class TestListAndExpand:
    def test_list_decodes_page(self, http_session, http_response):
        body = {
            "relation_tuples": [{"namespace": "todos", "object": "1", "relation": "owner", "subject_id": "user:a"}],
            "next_page_token": "tok",
        }
        session = http_session(http_response(200, body))
        page = _client(session).list_tuples(ListQuery("todos", relation="owner", page_size=10))
        assert [t.object for t in page.tuples] == ["1"]
        assert page.next_page_token == "tok"

    def test_list_non_200_raises(self, http_session, http_response):
        session = http_session(http_response(404))
        with pytest.raises(AuthzServiceError) as exc_info:
            _client(session).list_tuples(ListQuery("todos"))
        assert exc_info.value.status == 404

    def test_list_wrong_shape_is_malformed(self, http_session, http_response):
        session = http_session(http_response(200, {"relation_tuples": [{"namespace": "todos"}]}))
        with pytest.raises(MalformedResponse):
            _client(session).list_tuples(ListQuery("todos"))

    def test_expand_sends_depth_and_decodes(self, http_session, http_response):
        body = {"type": "union", "children": [{"type": "leaf", "tuple": {"subject_id": "user:a"}}]}
        session = http_session(http_response(200, body))
        tree = _client(session).expand("todos", "7", "owner", max_depth=2)
        assert tree.subject_ids() == ["user:a"]
        call = session.request.call_args
        assert call.args == ("GET", f"{READ}/relation-tuples/expand")
        assert call.kwargs["params"]["max_depth"] == 2


def test_urls_are_normalized():
    client = TupleStoreClient("http://r/", "http://w/")
    assert (client.read_url, client.write_url) == ("http://r", "http://w")
