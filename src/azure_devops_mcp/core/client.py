from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import httpx

API_VERSION = "7.1"

JsonPayload = Union[Dict[str, Any], List[Any]]


class AzureDevOpsClientError(Exception):
    """Transport-level failure (network, timeout, unparsable body)."""


class AzureDevOpsHTTPError(AzureDevOpsClientError):
    def __init__(
        self,
        *,
        status_code: int,
        method: str,
        url: str,
        message: str,
        response_json: Optional[Any] = None,
        response_text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(f"{status_code} {method} {url}: {message}")
        self.status_code = status_code
        self.method = method
        self.url = url
        self.upstream_message = message
        self.response_json = response_json
        self.response_text = response_text
        self.headers = headers or {}


class AzureDevOpsParseError(AzureDevOpsClientError):
    pass


class Capability(Enum):
    """Sub-APIs a connection can hand out, as (display name, resource area)."""

    CORE = ("Core", "core")
    GIT = ("Git", "git")
    WORK_ITEM_TRACKING = ("Work Item Tracking", "wit")
    BUILD = ("Build", "build")
    TEST = ("Test", "test")
    RELEASE = ("Release", "release")
    TASK_AGENT = ("Task Agent", "distributedtask")
    TASK = ("Task", "task")
    PROFILE = ("Profile", "profile")
    PIPELINES = ("Pipelines", "pipelines")
    WIKI = ("Wiki", "wiki")

    @property
    def display_name(self) -> str:
        return self.value[0]

    @property
    def area(self) -> str:
        return self.value[1]


def unquote_etag(etag: Optional[str]) -> Optional[str]:
    if not etag:
        return None
    return etag.replace('"', "")


class AzureDevOpsConnection:
    """
    Authenticated handle bound to one organization URL.
    - Pins api-version as a default query parameter on every request
    - Raises AzureDevOpsHTTPError on non-2xx, AzureDevOpsClientError on
      network failures; classification is left to callers
    - No retries
    """

    def __init__(
        self,
        *,
        organization_url: str,
        auth: Optional[httpx.Auth] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout_seconds: float = 30.0,
        logger: Optional[logging.Logger] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        organization_url = (organization_url or "").rstrip("/")
        if not organization_url:
            raise ValueError("organization_url must be provided.")

        self.organization_url = organization_url
        self.timeout_seconds = timeout_seconds
        self.log = logger or logging.getLogger("azure_devops_mcp.client")
        self._resource_areas: Dict[str, str] = {}

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=organization_url + "/",
            auth=auth,
            params={"api-version": API_VERSION},
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                **(headers or {}),
            },
            timeout=timeout_seconds,
        )

    @property
    def server_url(self) -> str:
        return f"{self.organization_url}?api-version={API_VERSION}"

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "AzureDevOpsConnection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        tool: Optional[str] = None,
    ) -> httpx.Response:
        """
        Issue one request and return the raw response.
        - url may be relative to the organization URL or absolute
        - Raises AzureDevOpsHTTPError on non-2xx responses
        - Raises AzureDevOpsClientError on network/timeout errors
        """
        method = method.upper()
        start = time.perf_counter()

        try:
            resp = await self.http.request(
                method, url.lstrip("/"), params=params, json=json, headers=headers
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise AzureDevOpsClientError(
                f"Network/timeout error calling {method} {url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AzureDevOpsClientError(
                f"HTTPX error calling {method} {url}: {exc}"
            ) from exc

        duration_ms = int((time.perf_counter() - start) * 1000)
        self.log.debug(
            "op.request",
            extra={
                "tool": tool,
                "method": method,
                "url": str(resp.request.url),
                "status": resp.status_code,
                "duration_ms": duration_ms,
            },
        )

        if resp.status_code < 200 or resp.status_code >= 300:
            raise self._to_http_error(resp, method=method)
        return resp

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        tool: Optional[str] = None,
    ) -> JsonPayload:
        resp = await self.send(
            method, url, params=params, json=json, headers=headers, tool=tool
        )
        return self._safe_json(resp)

    def _safe_json(self, resp: httpx.Response) -> JsonPayload:
        if not resp.content:
            return {}

        try:
            data = resp.json()
        except Exception as exc:
            snippet = (resp.text or "")[:500]
            raise AzureDevOpsParseError(
                f"Expected JSON from {resp.request.method} "
                f"{resp.request.url}, got non-JSON body snippet: "
                f"{snippet!r}"
            ) from exc

        if not isinstance(data, (dict, list)):
            raise AzureDevOpsParseError(
                f"Expected a JSON object or array from "
                f"{resp.request.method} {resp.request.url}, "
                f"got {type(data).__name__}"
            )
        return data

    def _to_http_error(
        self, resp: httpx.Response, *, method: str
    ) -> AzureDevOpsHTTPError:
        url = str(resp.request.url)
        response_json: Optional[Any] = None
        response_text: Optional[str] = None
        message = resp.reason_phrase or "request failed"

        try:
            parsed = resp.json()
            response_json = parsed
            if isinstance(parsed, dict):
                # Azure DevOps wraps errors as {"$id", "message", "typeKey", ...}
                message = parsed.get("message") or message
        except Exception:
            response_text = (resp.text or "")[:500] or None

        return AzureDevOpsHTTPError(
            status_code=resp.status_code,
            method=method,
            url=url,
            message=message,
            response_json=response_json,
            response_text=response_text,
            headers=dict(resp.headers),
        )

    async def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> JsonPayload:
        return await self.request("GET", url, params=params, tool=tool)

    async def post(
        self,
        url: str,
        *,
        json: Any,
        params: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> JsonPayload:
        return await self.request("POST", url, json=json, params=params, tool=tool)

    async def put(
        self,
        url: str,
        *,
        json: Any,
        params: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> JsonPayload:
        return await self.request("PUT", url, json=json, params=params, tool=tool)

    async def patch(
        self,
        url: str,
        *,
        json: Any,
        params: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> JsonPayload:
        return await self.request("PATCH", url, json=json, params=params, tool=tool)

    async def delete(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> JsonPayload:
        return await self.request("DELETE", url, params=params, tool=tool)

    # --- Resource areas ---------------------------------------------------- #

    async def get_resource_areas(self) -> List[Dict[str, Any]]:
        """Fetch the organization's resource areas and remember their locations."""
        payload = await self.get("_apis/resourceAreas", tool="connect")
        areas = payload.get("value", []) if isinstance(payload, dict) else payload
        areas = [a for a in areas if isinstance(a, dict)]
        for area in areas:
            name = str(area.get("name") or "").casefold()
            location = area.get("locationUrl")
            if name and location:
                self._resource_areas[name] = str(location).rstrip("/")
        return areas

    def get_area(self, capability: Capability) -> "ApiArea":
        if not isinstance(capability, Capability):
            raise ValueError(f"Unknown capability: {capability!r}")
        base_url = self._resource_areas.get(
            capability.area.casefold(), self.organization_url
        )
        return ApiArea(connection=self, capability=capability, base_url=base_url)


@dataclass(frozen=True)
class ApiArea:
    """Sub-API handle: routes requests to the capability's resource area."""

    connection: AzureDevOpsConnection
    capability: Capability
    base_url: str

    def url(self, *segments: Any) -> str:
        """Build an absolute URL, e.g. url("proj", "_apis/pipelines", 7)."""
        path = "/".join(str(s).strip("/") for s in segments if s not in (None, ""))
        return f"{self.base_url}/{path}"

    async def send(self, method: str, *segments: Any, **kwargs: Any) -> httpx.Response:
        kwargs.setdefault("tool", self.capability.area)
        return await self.connection.send(method, self.url(*segments), **kwargs)

    async def request(self, method: str, *segments: Any, **kwargs: Any) -> JsonPayload:
        kwargs.setdefault("tool", self.capability.area)
        return await self.connection.request(method, self.url(*segments), **kwargs)


__all__ = [
    "API_VERSION",
    "AzureDevOpsClientError",
    "AzureDevOpsHTTPError",
    "AzureDevOpsParseError",
    "AzureDevOpsConnection",
    "ApiArea",
    "Capability",
    "unquote_etag",
]
