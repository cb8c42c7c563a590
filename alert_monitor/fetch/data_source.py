"""HTTP data source for upstream API polling."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog

from ..errors import FetchError
from ..mapping import map_items
from ..registry.models import AuthType, EndpointConfig, HttpMethod

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class ApiRequest:
    url: str
    method: str = "GET"
    headers: dict[str, Any] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    auth_type: str = AuthType.NONE.value
    auth_token: str = ""
    auth_username: str = ""
    auth_password: str = ""

    @classmethod
    def from_endpoint(cls, config: EndpointConfig) -> "ApiRequest":
        return cls(
            url=config.api_endpoint,
            method=config.method.value,
            headers=dict(config.headers),
            query=dict(config.query),
            body=dict(config.body),
            auth_type=config.auth_type.value,
            auth_token=config.auth_token,
            auth_username=config.auth_username,
            auth_password=config.auth_password,
        )

    def build_headers(self) -> dict[str, str]:
        headers = {str(k): str(v) for k, v in (self.headers or {}).items()}
        auth_type = (self.auth_type or "").lower()
        if auth_type == AuthType.BEARER.value and self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        elif auth_type == AuthType.BASIC.value and self.auth_username:
            raw = f"{self.auth_username}:{self.auth_password or ''}".encode("utf-8")
            headers["Authorization"] = f"Basic {base64.b64encode(raw).decode('ascii')}"
        return headers


@dataclass(frozen=True)
class FetchResult:
    ok: bool
    status: int | None = None
    data: Any = None
    error: str | None = None


class DataSource(Protocol):
    async def fetch(self, request: ApiRequest) -> FetchResult:
        ...


def _decode_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


class HttpDataSource:
    """Fetches JSON over HTTP; transport problems come back as ``FetchResult(ok=False)``."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self._client = client
        self._owns_client = client is None
        self.timeout_seconds = float(timeout_seconds)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _send(self, request: ApiRequest) -> httpx.Response:
        method = (request.method or HttpMethod.GET.value).upper()
        kwargs: dict[str, Any] = {
            "headers": request.build_headers(),
            "params": {k: v for k, v in (request.query or {}).items() if v is not None},
            "timeout": self.timeout_seconds,
            "follow_redirects": True,
        }
        if method != HttpMethod.GET.value and request.body not in (None, {}, ""):
            kwargs["json"] = request.body
        try:
            return await self._get_client().request(method, request.url, **kwargs)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout after {self.timeout_seconds:g}s: {type(e).__name__}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"{type(e).__name__}: {e}") from e

    async def fetch(self, request: ApiRequest) -> FetchResult:
        if not request.url:
            return FetchResult(ok=False, error="No API endpoint configured")
        try:
            resp = await self._send(request)
        except FetchError as e:
            logger.warning("Upstream API request failed", url=request.url, error=str(e))
            return FetchResult(ok=False, status=e.status, error=str(e))

        data = _decode_body(resp)
        if not resp.is_success:
            logger.warning("Upstream API returned error status", url=request.url, status=resp.status_code)
            return FetchResult(ok=False, status=resp.status_code, data=data, error=f"HTTP {resp.status_code}")

        logger.debug("Fetched upstream API", url=request.url, status=resp.status_code)
        return FetchResult(ok=True, status=resp.status_code, data=data)


async def probe_fetch(data_source: DataSource, config: EndpointConfig) -> dict[str, Any]:
    """Ad-hoc fetch used when setting up an endpoint."""
    result = await data_source.fetch(ApiRequest.from_endpoint(config))
    return {"ok": result.ok, "status": result.status, "error": result.error, "raw": result.data}


async def probe_map(data_source: DataSource, config: EndpointConfig) -> dict[str, Any]:
    """Ad-hoc fetch + map so mapping paths can be checked against live data."""
    result = await data_source.fetch(ApiRequest.from_endpoint(config))
    if not result.ok:
        return {"ok": False, "status": result.status, "error": result.error or "Fetch failed"}
    items = map_items(result.data, config.mapping_paths)
    return {
        "ok": True,
        "count": len(items),
        "items": [item.to_dict() for item in items],
        "mapping_paths": {
            "items_path": config.items_path,
            "id_path": config.id_path,
            "timestamp_path": config.timestamp_path,
            "title_path": config.title_path,
            "details_path": config.details_path,
        },
    }
