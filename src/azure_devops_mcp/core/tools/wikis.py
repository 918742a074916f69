from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx

from azure_devops_mcp.core.classifier import (
    OperationContext,
    WriteIntent,
    classified,
)
from azure_devops_mcp.core.client import ApiArea, unquote_etag
from azure_devops_mcp.core.client_factory import AzureDevOpsClient
from azure_devops_mcp.core.errors import (
    AzureDevOpsResourceNotFoundError,
    AzureDevOpsValidationError,
)
from azure_devops_mcp.core.models import WikiRef, WikiType
from azure_devops_mcp.core.tools._collections import value_elements


def _normalize_path(page_path: str) -> str:
    return page_path if page_path.startswith("/") else f"/{page_path}"


def _page_context(
    operation: str,
    wiki_id: str,
    page_path: str,
    intent: Optional[WriteIntent] = None,
) -> OperationContext:
    return OperationContext(
        operation,
        entity="Wiki page",
        identifier=page_path,
        scope=f"wiki {wiki_id}",
        intent=intent,
    )


def _json_body(resp: httpx.Response) -> Dict[str, Any]:
    if not resp.content:
        return {}
    data = resp.json()
    return data if isinstance(data, dict) else {"value": data}


async def _fetch_page(
    api: ApiArea, project: str, wiki_id: str, page_path: str
) -> Tuple[str, Optional[str]]:
    """Return (content, unquoted etag) for a page. Failures are classified."""
    with classified(_page_context("get wiki page", wiki_id, page_path)):
        resp = await api.send(
            "GET",
            project,
            "_apis/wiki/wikis",
            wiki_id,
            "pages",
            params={"path": _normalize_path(page_path)},
            headers={"Accept": "text/plain"},
        )
    return resp.text, unquote_etag(resp.headers.get("etag"))


async def get_wikis(
    client: AzureDevOpsClient, project_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    List wikis in a project, or across the organization when project_id is
    omitted.
    """
    api = await client.get_wiki_api()
    context = OperationContext(
        "get wikis",
        entity="Project" if project_id else "Organization",
        identifier=project_id or None,
    )
    with classified(context):
        payload = await api.request("GET", project_id, "_apis/wiki/wikis")
        wikis = [WikiRef.model_validate(w) for w in value_elements(payload)]
    return [w.model_dump(by_alias=True) for w in wikis]


async def create_wiki(
    client: AzureDevOpsClient,
    name: str,
    project_id: Optional[str] = None,
    *,
    type: WikiType = WikiType.PROJECT_WIKI,
    repository_id: Optional[str] = None,
    mapped_path: str = "/",
    version: str = "main",
) -> Dict[str, Any]:
    """
    Create a project wiki, or a code wiki published from a repository folder.
    repository_id is required for code wikis.
    """
    wiki_type = WikiType(type)
    if wiki_type is WikiType.CODE_WIKI and not repository_id:
        raise AzureDevOpsValidationError("Repository ID is required for code wikis")

    project = client.resolve_project(project_id)
    core = await client.get_core_api()
    with classified(
        OperationContext("get project details", entity="Project", identifier=project)
    ):
        details = await core.request("GET", "_apis/projects", project)

    body: Dict[str, Any] = {
        "name": name,
        "type": wiki_type.value,
        "projectId": details.get("id") if isinstance(details, dict) else project,
    }
    if wiki_type is WikiType.CODE_WIKI:
        body.update(
            {
                "repositoryId": repository_id,
                "mappedPath": mapped_path or "/",
                "version": {"version": version, "versionType": "branch"},
            }
        )

    api = await client.get_wiki_api()
    context = OperationContext(
        "create wiki", entity="Wiki", identifier=name, intent=WriteIntent.CREATE
    )
    with classified(context):
        return await api.request("POST", project, "_apis/wiki/wikis", json=body)


async def get_wiki_page(
    client: AzureDevOpsClient,
    wiki_id: str,
    page_path: str,
    project_id: Optional[str] = None,
) -> str:
    """Return a wiki page's markdown content."""
    project = client.resolve_project(project_id)
    api = await client.get_wiki_api()
    content, _ = await _fetch_page(api, project, wiki_id, page_path)
    return content


async def create_wiki_page(
    client: AzureDevOpsClient,
    wiki_id: str,
    page_path: str,
    content: str,
    project_id: Optional[str] = None,
    *,
    comment: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a new page. Fails with a validation error if the page already exists
    and with not-found if the parent path does not exist.
    """
    project = client.resolve_project(project_id)
    api = await client.get_wiki_api()

    payload: Dict[str, Any] = {"content": content}
    if comment:
        payload["comment"] = comment

    context = _page_context(
        "create wiki page", wiki_id, page_path, intent=WriteIntent.CREATE
    )
    with classified(context):
        resp = await api.send(
            "PUT",
            project,
            "_apis/wiki/wikis",
            wiki_id,
            "pages",
            params={"path": _normalize_path(page_path)},
            json=payload,
        )
        page = _json_body(resp)

    return {**page, "version": unquote_etag(resp.headers.get("etag"))}


async def update_wiki_page(
    client: AzureDevOpsClient,
    wiki_id: str,
    page_path: str,
    content: str,
    project_id: Optional[str] = None,
    *,
    comment: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create or update a page.
    - Reads the current version first; an existing page is written with
      If-Match so concurrent edits fail with a version-conflict error
    - A missing page is created (no If-Match)
    """
    project = client.resolve_project(project_id)
    api = await client.get_wiki_api()

    try:
        _, current_etag = await _fetch_page(api, project, wiki_id, page_path)
    except AzureDevOpsResourceNotFoundError:
        current_etag = None

    headers: Dict[str, str] = {}
    if current_etag:
        headers["If-Match"] = f'"{current_etag}"'

    params: Dict[str, Any] = {"path": _normalize_path(page_path)}
    if comment:
        params["comment"] = comment

    context = _page_context(
        "update wiki page", wiki_id, page_path, intent=WriteIntent.UPDATE
    )
    with classified(context):
        resp = await api.send(
            "PUT",
            project,
            "_apis/wiki/wikis",
            wiki_id,
            "pages",
            params=params,
            json={"content": content},
            headers=headers or None,
        )
        page = _json_body(resp)

    return {
        **page,
        "version": unquote_etag(resp.headers.get("etag")),
        "message": (
            "Page created successfully"
            if resp.status_code == 201
            else "Page updated successfully"
        ),
    }
