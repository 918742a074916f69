from __future__ import annotations

from typing import Any, Dict, Optional

from azure_devops_mcp.core.classifier import (
    OperationContext,
    WriteIntent,
    classified,
)
from azure_devops_mcp.core.client_factory import AzureDevOpsClient
from azure_devops_mcp.core.errors import AzureDevOpsValidationError


def _environment_context(
    operation: str, environment: Any, intent: Optional[WriteIntent] = None
) -> OperationContext:
    return OperationContext(
        operation, entity="Environment", identifier=environment, intent=intent
    )


async def create_environment(
    client: AzureDevOpsClient,
    name: str,
    project_id: Optional[str] = None,
    *,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a deployment environment in a project."""
    project = client.resolve_project(project_id)
    api = await client.get_task_agent_api()

    body: Dict[str, Any] = {"name": name}
    if description is not None:
        body["description"] = description

    context = _environment_context(
        "create environment", name, intent=WriteIntent.CREATE
    )
    with classified(context):
        return await api.request(
            "POST", project, "_apis/distributedtask/environments", json=body
        )


async def update_environment(
    client: AzureDevOpsClient,
    environment_id: int,
    project_id: Optional[str] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """Rename an environment and/or change its description."""
    if name is None and description is None:
        raise AzureDevOpsValidationError(
            "Provide at least one of name or description to update."
        )

    project = client.resolve_project(project_id)
    api = await client.get_task_agent_api()

    body: Dict[str, Any] = {}
    if name is not None:
        body["name"] = name
    if description is not None:
        body["description"] = description

    context = _environment_context(
        "update environment", environment_id, intent=WriteIntent.UPDATE
    )
    with classified(context):
        return await api.request(
            "PATCH",
            project,
            "_apis/distributedtask/environments",
            environment_id,
            json=body,
        )


async def delete_environment(
    client: AzureDevOpsClient,
    environment_id: int,
    project_id: Optional[str] = None,
) -> Dict[str, Any]:
    project = client.resolve_project(project_id)
    api = await client.get_task_agent_api()

    with classified(_environment_context("delete environment", environment_id)):
        await api.request(
            "DELETE", project, "_apis/distributedtask/environments", environment_id
        )
    return {"success": True}
