from __future__ import annotations

from typing import Any, Dict, List, Optional

from azure_devops_mcp.core.classifier import (
    OperationContext,
    WriteIntent,
    classified,
)
from azure_devops_mcp.core.client_factory import AzureDevOpsClient
from azure_devops_mcp.core.errors import AzureDevOpsValidationError
from azure_devops_mcp.core.models import PullRequestStatus
from azure_devops_mcp.core.tools._collections import value_elements


def _branch_ref(name: str) -> str:
    return name if name.startswith("refs/") else f"refs/heads/{name}"


async def list_pull_requests(
    client: AzureDevOpsClient,
    repository_id: str,
    project_id: Optional[str] = None,
    *,
    status: Optional[PullRequestStatus] = None,
    creator_id: Optional[str] = None,
    reviewer_id: Optional[str] = None,
    source_ref_name: Optional[str] = None,
    target_ref_name: Optional[str] = None,
    top: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    List pull requests in a repository.
    status: all | active | completed | abandoned (server default: active)
    """
    project = client.resolve_project(project_id)
    api = await client.get_git_api()

    params: Dict[str, Any] = {}
    if status:
        params["searchCriteria.status"] = PullRequestStatus(status).value
    if creator_id:
        params["searchCriteria.creatorId"] = creator_id
    if reviewer_id:
        params["searchCriteria.reviewerId"] = reviewer_id
    if source_ref_name:
        params["searchCriteria.sourceRefName"] = _branch_ref(source_ref_name)
    if target_ref_name:
        params["searchCriteria.targetRefName"] = _branch_ref(target_ref_name)
    if top is not None:
        params["$top"] = max(1, top)

    context = OperationContext(
        "list pull requests", entity="Repository", identifier=repository_id
    )
    with classified(context):
        payload = await api.request(
            "GET",
            project,
            "_apis/git/repositories",
            repository_id,
            "pullrequests",
            params=params,
        )
        return value_elements(payload)


async def create_pull_request(
    client: AzureDevOpsClient,
    repository_id: str,
    title: str,
    source_ref_name: str,
    target_ref_name: str,
    project_id: Optional[str] = None,
    *,
    description: Optional[str] = None,
    reviewers: Optional[List[str]] = None,
    is_draft: bool = False,
    work_item_refs: Optional[List[int]] = None,
) -> Dict[str, Any]:
    """Open a pull request from source_ref_name into target_ref_name."""
    if not title.strip():
        raise AzureDevOpsValidationError("Pull request title must not be empty")
    if _branch_ref(source_ref_name) == _branch_ref(target_ref_name):
        raise AzureDevOpsValidationError(
            "Source and target branches must be different"
        )

    project = client.resolve_project(project_id)
    api = await client.get_git_api()

    body: Dict[str, Any] = {
        "title": title,
        "sourceRefName": _branch_ref(source_ref_name),
        "targetRefName": _branch_ref(target_ref_name),
        "isDraft": is_draft,
    }
    if description:
        body["description"] = description
    if reviewers:
        body["reviewers"] = [{"id": r} for r in reviewers]
    if work_item_refs:
        body["workItemRefs"] = [{"id": str(w)} for w in work_item_refs]

    context = OperationContext(
        "create pull request",
        entity="Pull request",
        identifier=f"{source_ref_name} -> {target_ref_name}",
        scope=f"repository {repository_id}",
        intent=WriteIntent.CREATE,
    )
    with classified(context):
        return await api.request(
            "POST",
            project,
            "_apis/git/repositories",
            repository_id,
            "pullrequests",
            json=body,
        )
