import json

import pytest
import respx
from httpx import Response
from azure_devops_mcp.core.errors import (
    AzureDevOpsResourceNotFoundError,
    AzureDevOpsValidationError,
)
from azure_devops_mcp.core.tools.environments import (
    create_environment,
    delete_environment,
    update_environment,
)

ENVIRONMENTS = "https://dev.azure.com/acme/Fabrikam/_apis/distributedtask/environments"


@pytest.mark.asyncio
@respx.mock
async def test_create_environment(client, mock_probe):
    mock_probe()
    route = respx.post(ENVIRONMENTS).mock(
        return_value=Response(200, json={"id": 3, "name": "staging"})
    )

    async with client:
        env = await create_environment(client, "staging", description="pre-prod")

    assert env["id"] == 3
    assert json.loads(route.calls[0].request.content) == {
        "name": "staging",
        "description": "pre-prod",
    }


@pytest.mark.asyncio
@respx.mock
async def test_create_duplicate_environment(client, mock_probe):
    mock_probe()
    respx.post(ENVIRONMENTS).mock(return_value=Response(412, json={}))

    async with client:
        with pytest.raises(AzureDevOpsValidationError) as exc:
            await create_environment(client, "staging")

    assert exc.value.message == "Environment already exists: staging"


@pytest.mark.asyncio
async def test_update_environment_requires_a_change(client):
    with pytest.raises(AzureDevOpsValidationError):
        await update_environment(client, 3)


@pytest.mark.asyncio
@respx.mock
async def test_update_environment_patches_given_fields(client, mock_probe):
    mock_probe()
    route = respx.patch(f"{ENVIRONMENTS}/3").mock(
        return_value=Response(200, json={"id": 3, "name": "prod"})
    )

    async with client:
        env = await update_environment(client, 3, name="prod")

    assert env["name"] == "prod"
    assert json.loads(route.calls[0].request.content) == {"name": "prod"}


@pytest.mark.asyncio
@respx.mock
async def test_delete_environment(client, mock_probe):
    mock_probe()
    respx.delete(f"{ENVIRONMENTS}/3").mock(return_value=Response(204))

    async with client:
        assert await delete_environment(client, 3) == {"success": True}


@pytest.mark.asyncio
@respx.mock
async def test_delete_missing_environment(client, mock_probe):
    mock_probe()
    respx.delete(f"{ENVIRONMENTS}/404").mock(return_value=Response(404, json={}))

    async with client:
        with pytest.raises(AzureDevOpsResourceNotFoundError) as exc:
            await delete_environment(client, 404)

    assert exc.value.message == "Environment not found: 404"
