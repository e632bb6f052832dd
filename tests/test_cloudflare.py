import logging
from datetime import timedelta

import pytest
import responses

from cfddns.base import WAFListMeta
from cfddns.client import DEFAULT_BASE_URL
from cfddns.cloudflare import CloudflareAuth, CloudflareHandle

BASE = "https://api.example.com/client/v4"
ACCOUNT = "account456"


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


def test_new_uses_base_url():
    handle = CloudflareAuth(token="token", base_url=BASE).new(60)
    assert isinstance(handle, CloudflareHandle)
    assert handle.client.base_url == BASE


def test_new_default_base_url():
    handle = CloudflareAuth(token="token").new(timedelta(minutes=1))
    assert handle.client.base_url == DEFAULT_BASE_URL


def test_new_rejects_empty_token(caplog):
    caplog.set_level(logging.DEBUG)
    with pytest.raises(ValueError):
        CloudflareAuth(token="").new(60)
    assert "Failed to prepare the Cloudflare authentication" in caplog.text


def test_auth_repr_hides_token():
    assert "token=" not in repr(CloudflareAuth(token="token", base_url=BASE))


def test_flush_cache_forces_zone_refetch(rsps):
    rsps.add(
        responses.GET,
        BASE + "/zones",
        json={"success": True, "errors": [], "result": [{"id": "zone-0", "status": "active"}], "result_info": {"total_pages": 1}},
    )
    handle = CloudflareAuth(token="token", base_url=BASE).new(3600)
    assert handle.list_zones("test.org") == ["zone-0"]
    assert handle.list_zones("test.org") == ["zone-0"]
    assert len(rsps.calls) == 1
    handle.flush_cache()
    assert handle.list_zones("test.org") == ["zone-0"]
    assert len(rsps.calls) == 2


def test_flush_cache_forces_waf_refetch(rsps):
    rsps.add(
        responses.GET,
        BASE + f"/accounts/{ACCOUNT}/rules/lists",
        json={"success": True, "errors": [], "result": [{"id": "list-0", "name": "list", "description": "d", "kind": "ip"}]},
    )
    expected = [WAFListMeta("list-0", "list", "d")]
    with CloudflareAuth(token="token", base_url=BASE).new(3600) as handle:
        assert handle.list_waf_lists(ACCOUNT) == expected
        assert handle.list_waf_lists(ACCOUNT) == expected
        assert len(rsps.calls) == 1
        handle.flush_cache()
        assert handle.list_waf_lists(ACCOUNT) == expected
        assert len(rsps.calls) == 2


def test_request_carries_bearer_token(rsps):
    rsps.add(
        responses.GET,
        BASE + f"/accounts/{ACCOUNT}/rules/lists",
        json={"success": True, "errors": [], "result": []},
    )
    handle = CloudflareAuth(token="token", base_url=BASE).new(3600)
    assert handle.list_waf_lists(ACCOUNT) == []
    assert rsps.calls[0].request.headers["Authorization"] == "Bearer token"