import base64
import logging

import httpx
import pytest
import respx
from httpx import Response
from azure_devops_mcp.core.client import (
    API_VERSION,
    AzureDevOpsClientError,
    AzureDevOpsConnection,
    AzureDevOpsHTTPError,
    AzureDevOpsParseError,
    Capability,
    unquote_etag,
)

ORG = "https://dev.azure.com/acme"


def _connection():
    return AzureDevOpsConnection(
        organization_url=ORG + "/", auth=httpx.BasicAuth("", "mock-pat")
    )


@pytest.mark.asyncio
async def test_get_pins_api_version():
    async with respx.mock:
        route = respx.get(f"{ORG}/_apis/projects").mock(
            return_value=Response(200, json={"count": 0, "value": []})
        )

        async with _connection() as conn:
            data = await conn.get("_apis/projects")

        assert data == {"count": 0, "value": []}
        assert route.calls[0].request.url.params["api-version"] == API_VERSION


@pytest.mark.asyncio
async def test_pat_uses_basic_auth_with_empty_user():
    async with respx.mock:
        route = respx.get(f"{ORG}/_apis/projects").mock(
            return_value=Response(200, json={"value": []})
        )

        async with _connection() as conn:
            await conn.get("/_apis/projects")

        sent = route.calls[0].request.headers
        expected = "Basic " + base64.b64encode(b":mock-pat").decode()
        assert sent.get("Authorization") == expected


@pytest.mark.asyncio
async def test_non_2xx_raises_http_error_with_upstream_message():
    async with respx.mock:
        respx.get(f"{ORG}/_apis/projects/nope").mock(
            return_value=Response(
                404, json={"message": "TF200016: The project does not exist."}
            )
        )

        async with _connection() as conn:
            with pytest.raises(AzureDevOpsHTTPError) as exc:
                await conn.get("_apis/projects/nope")

    assert exc.value.status_code == 404
    assert exc.value.upstream_message == "TF200016: The project does not exist."
    assert exc.value.response_json["message"].startswith("TF200016")


@pytest.mark.asyncio
async def test_non_json_error_body_kept_as_text():
    async with respx.mock:
        respx.get(f"{ORG}/_apis/projects").mock(
            return_value=Response(503, text="Service Unavailable")
        )

        async with _connection() as conn:
            with pytest.raises(AzureDevOpsHTTPError) as exc:
                await conn.get("_apis/projects")

    assert exc.value.status_code == 503
    assert exc.value.response_json is None
    assert exc.value.response_text == "Service Unavailable"


@pytest.mark.asyncio
async def test_network_error_is_client_error():
    async with respx.mock:
        respx.get(f"{ORG}/_apis/projects").mock(
            side_effect=httpx.ConnectTimeout("timed out")
        )

        async with _connection() as conn:
            with pytest.raises(AzureDevOpsClientError) as exc:
                await conn.get("_apis/projects")

    assert "Network/timeout error" in str(exc.value)
    assert not isinstance(exc.value, AzureDevOpsHTTPError)


@pytest.mark.asyncio
async def test_non_json_success_raises_parse_error():
    async with respx.mock:
        respx.get(f"{ORG}/_apis/projects").mock(
            return_value=Response(200, text="<html></html>")
        )

        async with _connection() as conn:
            with pytest.raises(AzureDevOpsParseError):
                await conn.get("_apis/projects")


@pytest.mark.asyncio
async def test_empty_body_is_empty_dict():
    async with respx.mock:
        respx.delete(f"{ORG}/Fabrikam/_apis/build/definitions/7").mock(
            return_value=Response(204)
        )

        async with _connection() as conn:
            assert await conn.delete("Fabrikam/_apis/build/definitions/7") == {}


@pytest.mark.asyncio
async def test_request_is_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="azure_devops_mcp.client")
    async with respx.mock:
        respx.get(f"{ORG}/_apis/projects").mock(
            return_value=Response(200, json={"value": []})
        )

        async with _connection() as conn:
            await conn.get("_apis/projects", tool="list_projects")

    record = next(r for r in caplog.records if r.getMessage() == "op.request")
    assert record.tool == "list_projects"
    assert record.method == "GET"
    assert record.status == 200
    assert record.duration_ms >= 0


@pytest.mark.asyncio
async def test_resource_areas_route_sub_apis():
    areas = [
        {"id": "1", "name": "Release", "locationUrl": "https://vsrm.dev.azure.com/acme/"},
        {"id": "2", "name": "git", "locationUrl": "https://dev.azure.com/acme/"},
    ]
    async with respx.mock:
        respx.get(f"{ORG}/_apis/resourceAreas").mock(
            return_value=Response(200, json={"count": 2, "value": areas})
        )
        route = respx.get(
            "https://vsrm.dev.azure.com/acme/Fabrikam/_apis/release/definitions"
        ).mock(return_value=Response(200, json={"value": []}))

        async with _connection() as conn:
            await conn.get_resource_areas()
            release = conn.get_area(Capability.RELEASE)
            wiki = conn.get_area(Capability.WIKI)

            assert release.base_url == "https://vsrm.dev.azure.com/acme"
            assert wiki.base_url == ORG

            await release.request("GET", "Fabrikam", "_apis/release/definitions")

        assert route.called
        assert route.calls[0].request.url.params["api-version"] == API_VERSION


def test_get_area_rejects_unknown_capability():
    conn = _connection()
    with pytest.raises(ValueError):
        conn.get_area("Release")


def test_area_url_skips_empty_segments():
    conn = _connection()
    area = conn.get_area(Capability.WIKI)
    assert area.url(None, "_apis/wiki/wikis") == f"{ORG}/_apis/wiki/wikis"
    assert (
        area.url("Fabrikam", "/_apis/wiki/wikis/", "w1", "pages")
        == f"{ORG}/Fabrikam/_apis/wiki/wikis/w1/pages"
    )


def test_connection_requires_organization_url():
    with pytest.raises(ValueError):
        AzureDevOpsConnection(organization_url="")


def test_server_url_carries_api_version():
    assert _connection().server_url == f"{ORG}?api-version={API_VERSION}"


@pytest.mark.parametrize(
    "raw, expected", [('"abc"', "abc"), ("abc", "abc"), (None, None), ("", None)]
)
def test_unquote_etag(raw, expected):
    assert unquote_etag(raw) == expected
