from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List

from azure_devops_mcp.core.classifier import OperationContext, classified
from azure_devops_mcp.core.client import ApiArea
from azure_devops_mcp.core.client_factory import AzureDevOpsClient
from azure_devops_mcp.core.errors import AzureDevOpsResourceNotFoundError
from azure_devops_mcp.core.models import WorkItemTypeField
from azure_devops_mcp.core.tools._collections import value_elements

EXPAND_OPTIONS = ("none", "relations", "fields", "links", "all")


@dataclass
class _CacheEntry:
    ts: float
    data: List[WorkItemTypeField]


_FIELDS_CACHE: Dict[str, _CacheEntry] = {}
DEFAULT_TTL_SECONDS = 600  # 10 minutes


def _cache_key(api: ApiArea, project: str, work_item_type: str) -> str:
    """Cache key includes the organization URL to isolate multiple clients."""
    return f"{api.connection.organization_url}:{project}:{work_item_type}"


async def _type_fields(
    api: ApiArea,
    project: str,
    work_item_type: str,
    *,
    ttl_seconds: float = DEFAULT_TTL_SECONDS,
) -> List[WorkItemTypeField]:
    key = _cache_key(api, project, work_item_type)
    now = time.time()

    entry = _FIELDS_CACHE.get(key)
    if entry and (now - entry.ts) < ttl_seconds:
        return entry.data

    payload = await api.request(
        "GET",
        project,
        "_apis/wit/workitemtypes",
        work_item_type,
        "fields",
        params={"$expand": "all"},
    )
    fields = [WorkItemTypeField.model_validate(f) for f in value_elements(payload)]
    _FIELDS_CACHE[key] = _CacheEntry(ts=now, data=fields)
    return fields


async def get_work_item(
    client: AzureDevOpsClient, work_item_id: int, expand: str = "all"
) -> Dict[str, Any]:
    """
    Get a work item by id.

    Every field defined for the item's type is present in the result; fields
    without a value carry the type's default (usually null).
    """
    expand = expand.lower()
    if expand not in EXPAND_OPTIONS:
        expand = "all"

    api = await client.get_work_item_tracking_api()
    context = OperationContext(
        "get work item", entity="Work item", identifier=work_item_id
    )

    with classified(context):
        work_item = await api.request(
            "GET", "_apis/wit/workitems", work_item_id, params={"$expand": expand}
        )
        if not work_item:
            raise AzureDevOpsResourceNotFoundError(
                f"Work item '{work_item_id}' not found"
            )

    fields = dict(work_item.get("fields") or {})
    project = fields.get("System.TeamProject")
    work_item_type = fields.get("System.WorkItemType")
    if not project or not work_item_type:
        return work_item

    type_context = OperationContext(
        "get work item type fields",
        entity="Work item type",
        identifier=work_item_type,
        scope=f"project {project}",
    )
    with classified(type_context):
        type_fields = await _type_fields(api, str(project), str(work_item_type))

    for field in type_fields:
        if field.reference_name and field.reference_name not in fields:
            fields[field.reference_name] = field.default_value

    return {**work_item, "fields": fields}
