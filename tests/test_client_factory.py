import asyncio
import logging

import httpx
import pytest
import respx
from azure.core.credentials import AccessToken
from azure.identity import CredentialUnavailableError
from httpx import Response
from azure_devops_mcp.core.auth import AZURE_DEVOPS_SCOPE, AuthConfig, AuthMethod
from azure_devops_mcp.core.client import Capability
from azure_devops_mcp.core.client_factory import AzureDevOpsClient
from azure_devops_mcp.core.errors import (
    AzureDevOpsAuthenticationError,
    AzureDevOpsValidationError,
)

ORG_URL = "https://dev.azure.com/acme"


class FakeCredential:
    def __init__(self, token="aad-token"):
        self.token = token
        self.scopes = []
        self.closed = False

    async def get_token(self, *scopes, **kwargs):
        self.scopes.extend(scopes)
        return AccessToken(self.token, 0)

    async def close(self):
        self.closed = True


class FailingCredential(FakeCredential):
    async def get_token(self, *scopes, **kwargs):
        raise CredentialUnavailableError(
            message="No credential in this chain provided a token"
        )


@pytest.mark.asyncio
@respx.mock
async def test_concurrent_callers_share_one_connection(client, mock_probe):
    route = mock_probe()

    async with client:
        first, second = await asyncio.gather(client.get_client(), client.get_client())
        third = await client.get_client()

    assert first is second is third
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_empty_pat_fails_without_network():
    client = AzureDevOpsClient(AuthConfig(ORG_URL, AuthMethod.PAT, ""))

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_client()

    assert exc.value.message == "Personal Access Token is required"
    assert not respx.calls


@pytest.mark.asyncio
@respx.mock
async def test_unsupported_method_is_rejected():
    client = AzureDevOpsClient(AuthConfig(ORG_URL, "kerberos"))

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_client()

    assert exc.value.message == "Unsupported authentication method: kerberos"
    assert not respx.calls


@pytest.mark.asyncio
async def test_missing_organization_url():
    client = AzureDevOpsClient(AuthConfig("", AuthMethod.PAT, "mock-pat"))

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_client()

    assert exc.value.message == "Organization URL is required"


@pytest.mark.asyncio
@respx.mock
async def test_identity_method_sends_bearer_token(mock_probe):
    route = mock_probe()
    credential = FakeCredential()
    client = AzureDevOpsClient(
        AuthConfig(ORG_URL, AuthMethod.AZURE_IDENTITY),
        credential_factory=lambda method: credential,
    )

    async with client:
        await client.get_client()

    assert route.calls[0].request.headers["Authorization"] == "Bearer aad-token"
    assert credential.scopes == [AZURE_DEVOPS_SCOPE]
    assert credential.closed


@pytest.mark.asyncio
@respx.mock
async def test_cli_method_passes_method_to_factory(mock_probe):
    mock_probe()
    seen = []

    def factory(method):
        seen.append(method)
        return FakeCredential("cli-token")

    client = AzureDevOpsClient(
        AuthConfig(ORG_URL, "Azure-CLI"), credential_factory=factory
    )
    async with client:
        await client.get_client()

    assert seen == [AuthMethod.AZURE_CLI]


@pytest.mark.asyncio
@respx.mock
async def test_empty_token_is_authentication_error():
    client = AzureDevOpsClient(
        AuthConfig(ORG_URL, AuthMethod.AZURE_IDENTITY),
        credential_factory=lambda method: FakeCredential(token=""),
    )

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_client()

    assert exc.value.message == "Failed to acquire token for Azure DevOps"
    assert not respx.calls


@pytest.mark.asyncio
@respx.mock
async def test_rejected_probe_is_authentication_error(client, mock_probe, caplog):
    caplog.set_level(logging.WARNING, logger="azure_devops_mcp.client_factory")
    route = mock_probe(status=401)

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_client()

    assert exc.value.message.startswith("Authentication failed:")
    record = next(
        r for r in caplog.records if r.getMessage() == "client.connect_failed"
    )
    assert record.error_kind == "authentication"
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_unreachable_organization_is_authentication_error(client):
    route = respx.get(f"{ORG_URL}/_apis/resourceAreas").mock(
        side_effect=httpx.ConnectError("Name or service not known")
    )

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_client()

    assert exc.value.message.startswith("Authentication failed:")
    assert "Name or service not known" in exc.value.message
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_unavailable_credential_is_authentication_error():
    credential = FailingCredential()
    client = AzureDevOpsClient(
        AuthConfig(ORG_URL, AuthMethod.AZURE_IDENTITY),
        credential_factory=lambda method: credential,
    )

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_client()

    assert exc.value.message.startswith("Authentication failed:")
    assert "No credential in this chain" in exc.value.message
    assert isinstance(exc.value.__cause__, CredentialUnavailableError)
    assert credential.closed
    assert not respx.calls


@pytest.mark.asyncio
@respx.mock
async def test_failed_attempt_is_shared_and_not_retried(client, mock_probe):
    route = mock_probe(status=401)

    with pytest.raises(AzureDevOpsAuthenticationError) as first:
        await client.get_client()
    with pytest.raises(AzureDevOpsAuthenticationError) as second:
        await client.get_client()

    assert first.value is second.value
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_is_authenticated(client, mock_probe):
    mock_probe()
    async with client:
        assert await client.is_authenticated() is True


@pytest.mark.asyncio
@respx.mock
async def test_is_authenticated_false_on_failure(client, mock_probe):
    mock_probe(status=401)
    assert await client.is_authenticated() is False


@pytest.mark.asyncio
@respx.mock
async def test_named_getters_route_to_resource_areas(client, mock_probe):
    mock_probe(
        [
            {
                "id": "efc2f575",
                "name": "Release",
                "locationUrl": "https://vsrm.dev.azure.com/acme/",
            }
        ]
    )

    async with client:
        release = await client.get_release_api()
        core = await client.get_core_api()
        wit = await client.get_sub_api("work item tracking")
        agent = await client.get_sub_api("TASK_AGENT")

    assert release.capability is Capability.RELEASE
    assert release.base_url == "https://vsrm.dev.azure.com/acme"
    assert core.base_url == ORG_URL
    assert wit.capability is Capability.WORK_ITEM_TRACKING
    assert agent.capability is Capability.TASK_AGENT


@pytest.mark.asyncio
@respx.mock
async def test_sub_api_failure_names_the_capability(client, mock_probe):
    mock_probe()

    async with client:
        with pytest.raises(AzureDevOpsAuthenticationError) as exc:
            await client.get_sub_api("Bogus")

    assert exc.value.message.startswith("Failed to get Bogus API:")


@pytest.mark.asyncio
@respx.mock
async def test_sub_api_propagates_connection_errors_unchanged():
    client = AzureDevOpsClient(AuthConfig(ORG_URL, AuthMethod.PAT, None))

    with pytest.raises(AzureDevOpsAuthenticationError) as exc:
        await client.get_git_api()

    assert exc.value.message == "Personal Access Token is required"


def test_resolve_project_prefers_argument(client):
    assert client.resolve_project("Other") == "Other"
    assert client.resolve_project(None) == "Fabrikam"


def test_resolve_project_without_default():
    client = AzureDevOpsClient(AuthConfig(ORG_URL, AuthMethod.PAT, "mock-pat"))
    with pytest.raises(AzureDevOpsValidationError):
        client.resolve_project("  ")


def test_auth_config_repr_masks_token():
    cfg = AuthConfig(ORG_URL, AuthMethod.PAT, "super-secret")
    assert "super-secret" not in repr(cfg)
