"""
tests/test_endpoints.py -- Unit tests for the endpoint variant sweep.

Covers:
  - classify(): 200 -> SUCCESS, 404 -> TRY_NEXT, everything else -> FATAL
  - sweep(): first SUCCESS wins, 404s are skipped, first FATAL stops the sweep
  - transport failures become AuthzServiceError with status None
"""

from __future__ import annotations

import pytest
import requests

from authz.endpoints import CHECK_VARIANTS, IDENTITY_VARIANTS, EndpointVariant, Outcome, classify, sweep
from core.errors import AuthzServiceError


class TestClassify:
    @pytest.mark.parametrize("status", [200])
    def test_success(self, status):
        assert classify(status) is Outcome.SUCCESS

    def test_404_tries_next(self):
        assert classify(404) is Outcome.TRY_NEXT

    @pytest.mark.parametrize("status", [400, 401, 403, 409, 500, 502, 503])
    def test_other_statuses_are_fatal(self, status):
        assert classify(status) is Outcome.FATAL

    def test_custom_success_set(self):
        assert classify(201, success=(200, 201)) is Outcome.SUCCESS


class TestSweep:
    def test_first_success_wins(self, http_session, http_response):
        session = http_session(http_response(200, {"allowed": True}))
        variant, resp = sweep(session, CHECK_VARIANTS, "http://keto", service="keto", timeout=1.0, payload={})
        assert variant.name == "openapi"
        assert session.request.call_count == 1

    def test_404_moves_to_next_variant(self, http_session, http_response):
        session = http_session(http_response(404), http_response(404), http_response(200, {"allowed": False}))
        variant, _ = sweep(session, CHECK_VARIANTS, "http://keto", service="keto", timeout=1.0, payload={})
        assert variant.name == "v1-openapi"
        urls = [c.args[1] for c in session.request.call_args_list]
        assert urls == [
            "http://keto/relation-tuples/check/openapi",
            "http://keto/relation-tuples/check",
            "http://keto/v1/relation-tuples/check/openapi",
        ]

    def test_all_404_returns_none(self, http_session, http_response):
        session = http_session(*[http_response(404) for _ in CHECK_VARIANTS])
        assert sweep(session, CHECK_VARIANTS, "http://keto", service="keto", timeout=1.0) is None
        assert session.request.call_count == len(CHECK_VARIANTS)

    def test_fatal_status_stops_sweep(self, http_session, http_response):
        session = http_session(http_response(500, text="boom"), http_response(200, {"allowed": True}))
        with pytest.raises(AuthzServiceError) as exc_info:
            sweep(session, CHECK_VARIANTS, "http://keto", service="keto", timeout=1.0)
        assert exc_info.value.status == 500
        assert exc_info.value.body == "boom"
        assert session.request.call_count == 1

    def test_post_variants_send_json_body(self, http_session, http_response):
        session = http_session(http_response(200, {}))
        sweep(session, CHECK_VARIANTS, "http://keto", service="keto", timeout=2.5, payload={"a": 1})
        call = session.request.call_args
        assert call.args[0] == "POST"
        assert call.kwargs["json"] == {"a": 1}
        assert call.kwargs["timeout"] == 2.5

    def test_get_variants_fill_path_params(self, http_session, http_response):
        session = http_session(http_response(404), http_response(200, {"id": "u1"}))
        variant, _ = sweep(
            session, IDENTITY_VARIANTS, "http://kratos", service="kratos", timeout=1.0, path_params={"id": "u1"}
        )
        assert variant.name == "public"
        urls = [c.args[1] for c in session.request.call_args_list]
        assert urls == ["http://kratos/admin/identities/u1", "http://kratos/identities/u1"]

    def test_transport_error_has_no_status(self, http_session):
        session = http_session(requests.ConnectionError("refused"))
        with pytest.raises(AuthzServiceError) as exc_info:
            sweep(session, CHECK_VARIANTS, "http://keto", service="keto", timeout=1.0)
        assert exc_info.value.status is None
        assert "refused" in str(exc_info.value)

    def test_new_variant_is_a_descriptor(self, http_session, http_response):
        variants = CHECK_VARIANTS + (EndpointVariant("v2", "POST", "/v2/check"),)
        session = http_session(*[http_response(404) for _ in CHECK_VARIANTS], http_response(200, {}))
        variant, _ = sweep(session, variants, "http://keto", service="keto", timeout=1.0)
        assert variant.name == "v2"
