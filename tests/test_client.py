import json

import pytest
import requests
import responses
from responses import matchers

from cfddns.client import (
    AuthenticationError,
    AuthorizationError,
    CloudflareClient,
    CloudflareError,
)

BASE = "https://api.example.com/client/v4"


def _ok(result, **extra):
    return {"success": True, "errors": [], "messages": [], "result": result, **extra}


def _client():
    return CloudflareClient("token", BASE)


def test_empty_token_rejected():
    with pytest.raises(ValueError):
        CloudflareClient("", BASE)


def test_request_returns_result_and_sends_token():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/zones/zone1", json=_ok({"id": "zone1"}))
        assert _client().request("GET", "/zones/zone1") == {"id": "zone1"}
        assert rsps.calls[0].request.headers["Authorization"] == "Bearer token"


def test_request_sends_params_and_body():
    body = {"content": "::2"}
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.PATCH,
            f"{BASE}/zones/zone1/dns_records/record1",
            json=_ok({"id": "record1"}),
            match=[matchers.query_param_matcher({"name": "sub.test.org"})],
        )
        result = _client().request(
            "PATCH", "/zones/zone1/dns_records/record1", {"name": "sub.test.org"}, body
        )
        assert result == {"id": "record1"}
        assert json.loads(rsps.calls[0].request.body) == body


def test_unauthorized_raises_authentication_error():
    payload = {
        "success": False,
        "errors": [{"code": 9109, "message": "Invalid access token"}],
        "messages": [],
        "result": None,
    }
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/zones", json=payload, status=401)
        with pytest.raises(AuthenticationError) as info:
            _client().request("GET", "/zones")
    assert info.value.status == 401
    assert "Invalid access token" in str(info.value)


def test_forbidden_raises_authorization_error():
    payload = {"success": False, "errors": [{"code": 10000, "message": "Authentication error"}]}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/accounts/a/rules/lists", json=payload, status=403)
        with pytest.raises(AuthorizationError) as info:
            _client().request("GET", "/accounts/a/rules/lists")
    assert info.value.status == 403


def test_unsuccessful_envelope_raises():
    payload = {"success": False, "errors": [{"code": 1, "message": "bad"}], "result": None}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/zones", json=payload, status=200)
        with pytest.raises(CloudflareError) as info:
            _client().request("GET", "/zones")
    assert not isinstance(info.value, (AuthenticationError, AuthorizationError))
    assert info.value.errors == ({"code": 1, "message": "bad"},)


def test_non_json_error_raises():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/zones", body="oops", status=500)
        with pytest.raises(CloudflareError) as info:
            _client().request("GET", "/zones")
    assert info.value.status == 500


def test_connection_failure_raises_cloudflare_error():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/zones", body=requests.ConnectionError("down"))
        with pytest.raises(CloudflareError):
            _client().request("GET", "/zones")


def test_get_all_pages_by_number():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/zones/z/dns_records",
            json=_ok([{"id": "r1"}], result_info={"page": 1, "total_pages": 2}),
            match=[matchers.query_param_matcher({"type": "AAAA", "page": "1", "per_page": "100"})],
        )
        rsps.add(
            responses.GET,
            f"{BASE}/zones/z/dns_records",
            json=_ok([{"id": "r2"}], result_info={"page": 2, "total_pages": 2}),
            match=[matchers.query_param_matcher({"type": "AAAA", "page": "2", "per_page": "100"})],
        )
        result = _client().get_all("/zones/z/dns_records", {"type": "AAAA"}, 100)
    assert result == [{"id": "r1"}, {"id": "r2"}]


def test_get_all_single_page_without_info():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/zones", json=_ok([{"id": "z"}]))
        assert _client().get_all("/zones", {"name": "test.org"}, 50) == [{"id": "z"}]
        assert len(rsps.calls) == 1


def test_get_all_follows_cursor():
    path = "/accounts/a/rules/lists/l/items"
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}{path}",
            json=_ok([{"id": "i1"}], result_info={"cursors": {"after": "next"}}),
            match=[matchers.query_param_matcher({})],
        )
        rsps.add(
            responses.GET,
            f"{BASE}{path}",
            json=_ok([{"id": "i2"}], result_info={"cursors": {}}),
            match=[matchers.query_param_matcher({"cursor": "next"})],
        )
        assert _client().get_all(path) == [{"id": "i1"}, {"id": "i2"}]


def test_context_manager_returns_client():
    with _client() as client:
        with responses.RequestsMock() as rsps:
            rsps.add(responses.DELETE, f"{BASE}/zones/z/dns_records/r", json=_ok({"id": "r"}))
            assert client.request("DELETE", "/zones/z/dns_records/r") == {"id": "r"}