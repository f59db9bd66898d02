"""Unit tests for the ThingsBoardClient HTTP adapter."""

import json

import httpx
import pytest

from tbmirror.domain.entities import AttributeScope, EntityKind, Session
from tbmirror.domain.exceptions import AuthenticationError, PlatformError
from tbmirror.infrastructure.platform import ThingsBoardClient

BASE_URL = "https://tb.example.com/api"


# ── Helpers ──


def _client(handler) -> ThingsBoardClient:
    return ThingsBoardClient(
        BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _session(token: str = "jwt-1") -> Session:
    return Session(token=token, tenant_id="tenant-1")


def _device(name: str, idx: int) -> dict:
    return {"id": {"entityType": "DEVICE", "id": f"dev-{idx}"}, "name": name}


# ── Tests ──


@pytest.mark.asyncio
async def test_session_token_is_sent_per_request():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["X-Authorization"])
        return httpx.Response(200, json={"data": [], "totalElements": 0, "hasNext": False})

    client = _client(handler)
    await client.list_page(_session("jwt-a"), EntityKind.DEVICE)
    await client.list_page(_session("jwt-b"), EntityKind.DEVICE)

    assert seen == ["Bearer jwt-a", "Bearer jwt-b"]


@pytest.mark.asyncio
async def test_list_all_follows_pages():
    """list_all keeps requesting pages until hasNext is false."""
    requested_pages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tenant/devices"
        page = int(request.url.params["page"])
        requested_pages.append(request.url.params["page"])
        return httpx.Response(
            200,
            json={
                "data": [_device(f"D{page}", page)],
                "totalElements": 3,
                "hasNext": page < 2,
            },
        )

    client = _client(handler)
    devices = await client.list_all(_session(), EntityKind.DEVICE, page_size=1)

    assert [d.name for d in devices] == ["D0", "D1", "D2"]
    assert requested_pages == ["0", "1", "2"]


@pytest.mark.asyncio
async def test_list_page_passes_text_search():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["textSearch"] == "sensor-7"
        assert request.url.params["pageSize"] == "1"
        return httpx.Response(
            200, json={"data": [_device("Sensor-7", 7)], "totalElements": 1, "hasNext": False}
        )

    client = _client(handler)
    page = await client.list_page(
        _session(), EntityKind.DEVICE, page_size=1, text_search="sensor-7"
    )

    assert page.data[0].id == "dev-7"
    assert page.total_elements == 1


@pytest.mark.asyncio
async def test_widget_bundles_listing_is_a_bare_list():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/widgetsBundles"
        return httpx.Response(200, json=[{"alias": "charts", "title": "Charts"}])

    page = await _client(handler).list_page(_session(), EntityKind.WIDGETS_BUNDLE)

    assert [b.name for b in page.data] == ["Charts"]
    assert page.has_next is False


@pytest.mark.asyncio
async def test_create_device_sends_access_token_param():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/device"
        assert request.url.params["accessToken"] == "secret"
        body = json.loads(request.content)
        return httpx.Response(200, json={**body, "id": {"entityType": "DEVICE", "id": "dev-9"}})

    created = await _client(handler).create(
        _session(), EntityKind.DEVICE, {"name": "D9", "type": "default"}, access_token="secret"
    )

    assert created.id == "dev-9"
    assert created.name == "D9"


@pytest.mark.asyncio
async def test_duplicate_error_code_is_surfaced():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"status": 400, "message": "Device with such name already exists!", "errorCode": 31},
        )

    with pytest.raises(PlatformError) as exc_info:
        await _client(handler).create(_session(), EntityKind.DEVICE, {"name": "D1"})

    assert exc_info.value.status_code == 400
    assert exc_info.value.error_code == 31
    assert "already exists" in exc_info.value.message


@pytest.mark.asyncio
async def test_unauthorized_raises_authentication_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"status": 401, "message": "Token has expired", "errorCode": 11})

    with pytest.raises(AuthenticationError) as exc_info:
        await _client(handler).current_user("expired")

    assert exc_info.value.message == "Token has expired"


@pytest.mark.asyncio
async def test_non_json_error_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(PlatformError) as exc_info:
        await _client(handler).get(_session(), EntityKind.DASHBOARD, "dash-1")

    assert exc_info.value.status_code == 502
    assert exc_info.value.error_code is None
    assert exc_info.value.message == "Bad Gateway"


@pytest.mark.asyncio
async def test_device_attribute_endpoints():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(200, json=[{"key": "fw", "value": "1.2", "lastUpdateTs": 5}])
        return httpx.Response(200)

    client = _client(handler)
    attributes = await client.get_device_attributes(_session(), "dev-1", AttributeScope.SHARED)
    await client.set_device_attributes(_session(), "dev-1", AttributeScope.SERVER, {"fw": "1.3"})

    assert attributes == [{"key": "fw", "value": "1.2", "lastUpdateTs": 5}]
    assert requests[0].url.path == "/api/plugins/telemetry/DEVICE/dev-1/values/attributes/SHARED_SCOPE"
    assert requests[1].url.path == "/api/plugins/telemetry/dev-1/SERVER_SCOPE"
    assert json.loads(requests[1].content) == {"fw": "1.3"}


@pytest.mark.asyncio
async def test_rule_chain_body_comes_from_metadata_endpoint():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/ruleChain/rc-1/metadata"
        return httpx.Response(200, json={"ruleChainId": {"id": "rc-1"}, "nodes": []})

    body = await _client(handler).get(_session(), EntityKind.RULE_CHAIN, "rc-1")

    assert body.payload["nodes"] == []


@pytest.mark.asyncio
async def test_issue_token():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/user/user-5/token"
        return httpx.Response(200, json={"token": "tenant-jwt", "refreshToken": "r"})

    token = await _client(handler).issue_token(_session(), "user-5")

    assert token == "tenant-jwt"


@pytest.mark.asyncio
async def test_unreachable_platform_raises_platform_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PlatformError) as exc_info:
        await _client(handler).get(_session(), EntityKind.DEVICE, "dev-1")

    assert exc_info.value.status_code == 503
    assert "Cannot reach the platform" in exc_info.value.message
