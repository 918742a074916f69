from __future__ import annotations

from typing import Any, Dict, List, Optional

from azure_devops_mcp.core.classifier import (
    OperationContext,
    WriteIntent,
    classified,
)
from azure_devops_mcp.core.client_factory import AzureDevOpsClient
from azure_devops_mcp.core.errors import AzureDevOpsResourceNotFoundError
from azure_devops_mcp.core.models import CreatePipelineInput, PipelineVariable
from azure_devops_mcp.core.tools._collections import value_elements

MAX_TOP = 1000


def _pipeline_context(operation: str, pipeline_id: Any = None) -> OperationContext:
    return OperationContext(operation, entity="Pipeline", identifier=pipeline_id)


async def list_pipelines(
    client: AzureDevOpsClient,
    project_id: Optional[str] = None,
    *,
    order_by: Optional[str] = None,
    top: Optional[int] = None,
    continuation_token: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """List pipelines in a project."""
    project = client.resolve_project(project_id)
    api = await client.get_pipelines_api()

    params: Dict[str, Any] = {}
    if order_by:
        params["orderBy"] = order_by
    if top is not None:
        params["$top"] = max(1, min(top, MAX_TOP))
    if continuation_token:
        params["continuationToken"] = continuation_token

    context = OperationContext(
        "list pipelines", entity="Project", identifier=project
    )
    with classified(context):
        payload = await api.request("GET", project, "_apis/pipelines", params=params)
        return value_elements(payload)


async def get_pipeline(
    client: AzureDevOpsClient,
    pipeline_id: int,
    project_id: Optional[str] = None,
    *,
    pipeline_version: Optional[int] = None,
) -> Dict[str, Any]:
    """Get a pipeline by id, optionally at a specific revision."""
    project = client.resolve_project(project_id)
    api = await client.get_pipelines_api()

    params = {"pipelineVersion": pipeline_version} if pipeline_version else None
    with classified(_pipeline_context("get pipeline", pipeline_id)):
        pipeline = await api.request(
            "GET", project, "_apis/pipelines", pipeline_id, params=params
        )

    if not pipeline:
        raise AzureDevOpsResourceNotFoundError(
            f"Pipeline not found with ID: {pipeline_id}"
        )
    return pipeline


async def create_pipeline(
    client: AzureDevOpsClient, data: CreatePipelineInput
) -> Dict[str, Any]:
    """
    Create a YAML pipeline backed by a repository file.
    data.configuration.repository.id is the repository id; type defaults to
    azureReposGit.
    """
    project = client.resolve_project(data.project_id)
    api = await client.get_pipelines_api()

    context = OperationContext(
        "create pipeline",
        entity="Pipeline",
        identifier=data.name,
        intent=WriteIntent.CREATE,
    )
    with classified(context):
        return await api.request(
            "POST", project, "_apis/pipelines", json=data.to_payload()
        )


async def trigger_pipeline(
    client: AzureDevOpsClient,
    pipeline_id: int,
    project_id: Optional[str] = None,
    *,
    branch: Optional[str] = None,
    variables: Optional[Dict[str, PipelineVariable]] = None,
    template_parameters: Optional[Dict[str, Any]] = None,
    stages_to_skip: Optional[List[str]] = None,
    preview_run: bool = False,
    yaml_override: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Queue a pipeline run.
    - branch: short name ("main") or full ref ("refs/heads/main")
    - variables: {"name": {"value": "...", "isSecret": false}}
    - preview_run: return the final YAML without running; yaml_override only
      applies to preview runs
    """
    project = client.resolve_project(project_id)
    api = await client.get_pipelines_api()

    body: Dict[str, Any] = {}
    if variables:
        body["variables"] = {
            name: PipelineVariable.model_validate(var).model_dump(by_alias=True)
            for name, var in variables.items()
        }
    if template_parameters:
        body["templateParameters"] = template_parameters
    if stages_to_skip:
        body["stagesToSkip"] = stages_to_skip
    if branch:
        ref = branch if branch.startswith("refs/") else f"refs/heads/{branch}"
        body["resources"] = {"repositories": {"self": {"refName": ref}}}
    if preview_run:
        body["previewRun"] = True
        if yaml_override:
            body["yamlOverride"] = yaml_override

    with classified(_pipeline_context("trigger pipeline", pipeline_id)):
        return await api.request(
            "POST", project, "_apis/pipelines", pipeline_id, "runs", json=body
        )


async def delete_pipeline(
    client: AzureDevOpsClient,
    pipeline_id: int,
    project_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Delete a pipeline (its underlying build definition)."""
    project = client.resolve_project(project_id)
    api = await client.get_build_api()

    with classified(_pipeline_context("delete pipeline", pipeline_id)):
        await api.request("DELETE", project, "_apis/build/definitions", pipeline_id)
    return {"deleted": True, "pipeline_id": pipeline_id}
