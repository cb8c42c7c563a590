from __future__ import annotations

import base64
import json

import httpx
import pytest

from alert_monitor.fetch import ApiRequest, HttpDataSource, probe_fetch, probe_map
from alert_monitor.registry import EndpointConfig
from fakes import ENDPOINT, FakeDataSource, ok


def _source(handler) -> HttpDataSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpDataSource(client, timeout_seconds=1.0)


@pytest.mark.asyncio
async def test_get_with_bearer_and_query_sends_no_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [{"id": 1}]})

    source = _source(handler)
    result = await source.fetch(
        ApiRequest(
            url="https://api.test/items",
            headers={"X-Trace": 5},
            query={"status": "pending", "skip": None},
            body={"ignored": True},
            auth_type="bearer",
            auth_token="tok",
        )
    )

    assert result.ok is True
    assert result.status == 200
    assert result.data == {"data": [{"id": 1}]}
    (req,) = seen
    assert req.method == "GET"
    assert req.headers["Authorization"] == "Bearer tok"
    assert req.headers["X-Trace"] == "5"
    assert req.url.params["status"] == "pending"
    assert "skip" not in req.url.params
    assert req.content == b""


@pytest.mark.asyncio
async def test_post_with_basic_auth_sends_json_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[])

    source = _source(handler)
    result = await source.fetch(
        ApiRequest(
            url="https://api.test/search",
            method="POST",
            body={"since": "today"},
            auth_type="basic",
            auth_username="user",
            auth_password="pass",
        )
    )

    assert result.ok is True
    (req,) = seen
    assert req.method == "POST"
    assert json.loads(req.content) == {"since": "today"}
    expected = base64.b64encode(b"user:pass").decode("ascii")
    assert req.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.asyncio
async def test_non_2xx_is_failure_with_status() -> None:
    source = _source(lambda request: httpx.Response(503, text="down"))
    result = await source.fetch(ApiRequest(url="https://api.test/items"))
    assert result.ok is False
    assert result.status == 503
    assert result.error == "HTTP 503"


@pytest.mark.asyncio
async def test_timeout_is_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    result = await _source(handler).fetch(ApiRequest(url="https://api.test/items"))
    assert result.ok is False
    assert result.status is None
    assert result.error.startswith("Timeout after 1s")


@pytest.mark.asyncio
async def test_connection_error_is_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    result = await _source(handler).fetch(ApiRequest(url="https://api.test/items"))
    assert result.ok is False
    assert "ConnectError" in result.error


@pytest.mark.asyncio
async def test_missing_url_is_failure() -> None:
    result = await HttpDataSource().fetch(ApiRequest(url=""))
    assert result.ok is False


@pytest.mark.asyncio
async def test_non_json_body_is_returned_as_text() -> None:
    result = await _source(lambda request: httpx.Response(200, text="hello")).fetch(
        ApiRequest(url="https://api.test/items")
    )
    assert result.ok is True
    assert result.data == "hello"


@pytest.mark.asyncio
async def test_probe_map_reports_mapped_items() -> None:
    cfg = EndpointConfig(tag="payments", **ENDPOINT)
    source = FakeDataSource(ok({"data": [{"id": 1, "createdAt": "t1"}, {"id": 2}]}))

    fetched = await probe_fetch(source, cfg)
    mapped = await probe_map(source, cfg)

    assert fetched["ok"] is True
    assert fetched["raw"] == {"data": [{"id": 1, "createdAt": "t1"}, {"id": 2}]}
    assert mapped["count"] == 2
    assert mapped["items"][0]["id"] == 1
    assert mapped["items"][0]["timestamp"] == "t1"
    assert mapped["mapping_paths"]["items_path"] == "data"
