import json

import httpx
import pytest

from datecoach.services.analysis_transport import AnalysisTransportError, HttpxAnalysisTransport


def _transport(handler) -> HttpxAnalysisTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxAnalysisTransport(base_url="https://api.example.com/", client=client)


@pytest.mark.asyncio
async def test_post_analysis_sends_bearer_and_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "analysis_id": "a-1"})

    transport = _transport(handler)
    body = await transport.post_analysis({"request_type": "photo_analysis"}, "token-abc")

    assert body == {"success": True, "analysis_id": "a-1"}
    assert seen["url"] == "https://api.example.com/api/analysis"
    assert seen["auth"] == "Bearer token-abc"
    assert seen["body"] == {"request_type": "photo_analysis"}


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status():
    transport = _transport(lambda request: httpx.Response(503))

    with pytest.raises(AnalysisTransportError) as exc_info:
        await transport.post_analysis({}, "token-abc")

    assert exc_info.value.status_code == 503
    assert str(exc_info.value) == "API request failed: 503 Service Unavailable"


@pytest.mark.asyncio
async def test_network_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AnalysisTransportError, match="API request failed"):
        await _transport(handler).post_analysis({}, "token-abc")


@pytest.mark.asyncio
async def test_get_health():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/health"
        return httpx.Response(200, json={"status": "healthy", "services": {}})

    assert (await _transport(handler).get_health())["status"] == "healthy"
