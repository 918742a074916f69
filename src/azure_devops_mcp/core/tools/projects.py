from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from azure_devops_mcp.core.classifier import OperationContext, classified
from azure_devops_mcp.core.client import ApiArea
from azure_devops_mcp.core.client_factory import AzureDevOpsClient
from azure_devops_mcp.core.errors import AzureDevOpsResourceNotFoundError
from azure_devops_mcp.core.tools._collections import value_elements

log = logging.getLogger("azure_devops_mcp.tools.projects")

DEFAULT_STATES = [
    {"name": "New", "stateCategory": "Proposed"},
    {"name": "Active", "stateCategory": "InProgress"},
    {"name": "Resolved", "stateCategory": "InProgress"},
    {"name": "Closed", "stateCategory": "Completed"},
]

FALLBACK_FIELDS = [
    {
        "name": "Title",
        "referenceName": "System.Title",
        "type": "string",
        "required": True,
    },
    {
        "name": "Description",
        "referenceName": "System.Description",
        "type": "html",
        "required": False,
    },
]


def _types_named(types: List[Dict[str, Any]], *names: str) -> List[str]:
    wanted = {n.casefold() for n in names}
    return [t["name"] for t in types if t["name"].casefold() in wanted]


def _hierarchy(types: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "portfolioBacklogs": [
            {"name": "Epics", "workItemTypes": _types_named(types, "epic")},
            {"name": "Features", "workItemTypes": _types_named(types, "feature")},
        ],
        "requirementBacklog": {
            "name": "Stories",
            "workItemTypes": _types_named(types, "user story", "bug"),
        },
        "taskBacklog": {"name": "Tasks", "workItemTypes": _types_named(types, "task")},
    }


async def _type_fields(
    wit: ApiArea, project: str, type_name: str
) -> List[Dict[str, Any]]:
    """Fields of one work item type; falls back to Title/Description on failure."""
    try:
        payload = await wit.request(
            "GET",
            project,
            "_apis/wit/workitemtypes",
            type_name,
            "fields",
            params={"$expand": "all"},
        )
    except Exception as exc:
        log.warning(
            "Falling back to default fields for work item type %s: %s",
            type_name,
            exc,
        )
        return [dict(f) for f in FALLBACK_FIELDS]

    return [
        {
            "name": f.get("name") or "Unknown",
            "referenceName": f.get("referenceName") or "Unknown",
            "type": str(f.get("type") or "string").lower(),
            "required": bool(f.get("alwaysRequired")),
            "isIdentity": bool(f.get("isIdentity")),
            "isPicklist": bool(f.get("isPicklist")),
            "description": f.get("helpText"),
        }
        for f in value_elements(payload)
    ]


async def get_project_details(
    client: AzureDevOpsClient,
    project_id: Optional[str] = None,
    *,
    include_process: bool = False,
    include_work_item_types: bool = False,
    include_fields: bool = False,
    include_teams: bool = False,
    expand_team_identity: bool = False,
) -> Dict[str, Any]:
    """
    Describe a project: capabilities, and optionally its teams and process.

    Process details come from the project's process template capability.
    Work item types (and their fields, when include_fields is set) are only
    fetched when include_process and include_work_item_types are both set.
    """
    project = client.resolve_project(project_id)
    core = await client.get_core_api()
    context = OperationContext(
        "get project details", entity="Project", identifier=project
    )

    with classified(context):
        details = await core.request(
            "GET", "_apis/projects", project, params={"includeCapabilities": "true"}
        )
        if not details:
            raise AzureDevOpsResourceNotFoundError(f"Project '{project}' not found")

        result: Dict[str, Any] = dict(details)
        capabilities = result.get("capabilities") or {
            "versioncontrol": {"sourceControlType": "Git"},
            "processTemplate": {"templateName": "Unknown", "templateTypeId": "unknown"},
        }
        result["capabilities"] = capabilities

        if include_teams:
            teams = await core.request(
                "GET",
                "_apis/projects",
                project,
                "teams",
                params={"$expandIdentity": str(expand_team_identity).lower()},
            )
            result["teams"] = value_elements(teams)

        if include_process:
            template = capabilities.get("processTemplate") or {}
            process: Dict[str, Any] = {
                "id": template.get("templateTypeId") or "unknown",
                "name": template.get("templateName") or "Unknown",
                "description": "Process template for the project",
                "isDefault": True,
                "type": "system",
            }

            if include_work_item_types:
                wit = await client.get_work_item_tracking_api()
                payload = await wit.request("GET", project, "_apis/wit/workitemtypes")
                types = [
                    {
                        "name": t.get("name") or "Unknown",
                        "referenceName": t.get("referenceName") or "System.Unknown",
                        "description": t.get("description"),
                        "isDisabled": bool(t.get("isDisabled")),
                        "states": t.get("states") or [dict(s) for s in DEFAULT_STATES],
                    }
                    for t in value_elements(payload)
                ]
                if include_fields:
                    for t in types:
                        t["fields"] = await _type_fields(wit, project, t["name"])

                process["workItemTypes"] = types
                process["hierarchyInfo"] = _hierarchy(types)

            result["process"] = process

    return result
