import pytest
import respx
from httpx import Response

from azure_devops_mcp.core.auth import AuthConfig, AuthMethod
from azure_devops_mcp.core.client_factory import AzureDevOpsClient

ORG_URL = "https://dev.azure.com/acme"
PROJECT = "Fabrikam"


@pytest.fixture
def client():
    return AzureDevOpsClient(
        AuthConfig(ORG_URL, AuthMethod.PAT, "mock-pat"), default_project=PROJECT
    )


@pytest.fixture
def mock_probe():
    """Register the resource-area probe on the active respx router."""

    def _mock(areas=None, status=200):
        areas = areas or []
        return respx.get(f"{ORG_URL}/_apis/resourceAreas").mock(
            return_value=Response(status, json={"count": len(areas), "value": areas})
        )

    return _mock
