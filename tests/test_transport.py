from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from mapping_connector.errors import TargetApiError, TransportError
from mapping_connector.transport import HttpxTransport

pytestmark = pytest.mark.asyncio


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_successful_json_call_sends_headers_params_and_body():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 1})

    client = _client(handler)
    transport = HttpxTransport(client)
    result = await transport.call(
        "POST", "https://t/api", {"X-A": "1"}, {"page": 2}, {"name": "n"}
    )
    assert result == {"id": 1}
    req = seen[0]
    assert req.method == "POST"
    assert req.url.params["page"] == "2"
    assert req.headers["X-A"] == "1"
    assert json.loads(req.content) == {"name": "n"}
    await client.aclose()


async def test_non_json_and_empty_bodies():
    responses = iter([httpx.Response(200, text="plain"), httpx.Response(204)])

    client = _client(lambda request: next(responses))
    transport = HttpxTransport(client)
    assert await transport.call("GET", "https://t", {}, {}, None) == "plain"
    assert await transport.call("DELETE", "https://t", {}, {}, None) is None
    await client.aclose()


async def test_error_status_raises_target_api_error_with_body():
    client = _client(lambda request: httpx.Response(422, json={"error": {"code": "E1"}}))
    transport = HttpxTransport(client)
    with pytest.raises(TargetApiError) as info:
        await transport.call("POST", "https://t", {}, {}, {})
    assert info.value.status == 422
    assert info.value.status_code == 422
    assert info.value.body == {"error": {"code": "E1"}}
    await client.aclose()


async def test_connection_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = _client(handler)
    with pytest.raises(TransportError):
        await HttpxTransport(client).call("GET", "https://t", {}, {}, None)
    await client.aclose()


async def test_aclose_leaves_injected_client_open():
    client = _client(lambda request: httpx.Response(200, json={}))
    transport = HttpxTransport(client)
    await transport.aclose()
    assert not client.is_closed
    await client.aclose()
