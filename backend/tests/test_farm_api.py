import asyncio
import json

import httpx
import pytest

from farmsync.services.farm_api import FarmAPIClient


def _client(handler, **kwargs):
    return FarmAPIClient(base_url="http://farm.test", transport=httpx.MockTransport(handler), **kwargs)


def test_post_json_sends_body_and_content_type():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"id": "ignored"})

    response = asyncio.run(_client(handler).post_json("/api/farm/sales", {"quantity": 2}))
    assert response.status_code == 201
    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == "http://farm.test/api/farm/sales"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {"quantity": 2}


def test_session_cookie_is_forwarded():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    asyncio.run(_client(handler, session_cookie="abc123").post_json("/api/x", {}))
    assert "sb-access-token=abc123" in seen[0].headers["cookie"]


def test_non_2xx_is_returned_not_raised():
    response = asyncio.run(_client(lambda request: httpx.Response(422)).post_json("/api/x", {}))
    assert response.is_success is False


def test_transport_errors_propagate():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(httpx.HTTPError):
        asyncio.run(_client(handler).post_json("/api/x", {}))


@pytest.mark.parametrize("endpoint", ["http://other.host/x", "//other.host/x", "api/x"])
def test_endpoint_outside_base_url_is_refused(endpoint):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    with pytest.raises(ValueError):
        asyncio.run(_client(handler, session_cookie="abc123").post_json(endpoint, {}))
    assert seen == []


def test_non_finite_payload_is_refused():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    with pytest.raises(ValueError):
        asyncio.run(_client(handler).post_json("/api/x", {"quantity": float("inf")}))
    assert seen == []
