import time

from azure_devops_mcp.core.classifier import OperationContext, Phase, classified
from azure_devops_mcp.core.client_factory import AzureDevOpsClient


async def system_ping(client: AzureDevOpsClient) -> dict:
    """
    Connectivity and latency check against the Azure DevOps organization.
    Returns status plus the authenticated user's display name and id.
    """
    start = time.perf_counter()

    connection = await client.get_client()
    with classified(OperationContext("check connection", phase=Phase.CONNECT)):
        data = await connection.get("_apis/connectionData", tool="system_ping")

    latency_ms = (time.perf_counter() - start) * 1000
    user = data.get("authenticatedUser") if isinstance(data, dict) else None
    user = user or {}

    return {
        "status": "ok",
        "latency_ms": round(latency_ms, 2),
        "user_name": user.get("providerDisplayName", "Unknown"),
        "user_id": user.get("id"),
        "organization_url": client.organization_url,
    }
