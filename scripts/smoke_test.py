from __future__ import annotations

import asyncio
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from azure_devops_mcp.core.config import create_client_from_env
from azure_devops_mcp.core.errors import AzureDevOpsError, format_error
from azure_devops_mcp.core.tools.pipelines import list_pipelines
from azure_devops_mcp.core.tools.projects import get_project_details
from azure_devops_mcp.core.tools.system import system_ping
from azure_devops_mcp.core.tools.wikis import (
    get_wiki_page,
    get_wikis,
    update_wiki_page,
)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    return val if val else default


def _print_step(title: str) -> None:
    print(f"\n== {title}")


def _fail(msg: str) -> int:
    print(f"FAILED: {msg}")
    return 1


async def run_smoke_test() -> int:
    # --- Config ---
    try:
        client = create_client_from_env()
    except ValueError as exc:
        return _fail(str(exc))

    project = _env("AZURE_DEVOPS_DEFAULT_PROJECT")
    wiki_page = _env("TEST_WIKI_PAGE")

    print("Config:")
    print(f"  organization_url: {client.organization_url}")
    print(f"  auth_method: {client.config.method}")
    print(f"  project: {project}")
    print(f"  wiki_page: {wiki_page}")

    if not project:
        return _fail("Missing AZURE_DEVOPS_DEFAULT_PROJECT.")

    async with client:
        # --- Connect ---
        _print_step("Connect")
        try:
            ping = await system_ping(client)
        except AzureDevOpsError as exc:
            return _fail(format_error(exc))
        print(f"Authenticated as {ping['user_name']} ({ping['latency_ms']} ms)")

        # --- Project ---
        _print_step("Project details")
        details = await get_project_details(client, include_process=True)
        print(f"Project: {details.get('name')} (process={details['process']['name']})")

        # --- Pipelines ---
        _print_step("List pipelines")
        pipelines = await list_pipelines(client, top=10)
        for pipeline in pipelines:
            print(f"  {pipeline.get('id')}: {pipeline.get('name')}")

        # --- Wiki (optional) ---
        _print_step("Wiki")
        wikis = await get_wikis(client, project)
        if not wikis:
            print("No wikis in project; skipping page round trip.")
        elif not wiki_page:
            print("TEST_WIKI_PAGE not set; skipping page round trip.")
        else:
            wiki_id = wikis[0]["id"]
            stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
            content = f"Smoke test {stamp}"
            try:
                result = await update_wiki_page(client, wiki_id, wiki_page, content)
                read_back = await get_wiki_page(client, wiki_id, wiki_page)
            except AzureDevOpsError as exc:
                return _fail(format_error(exc))
            if read_back.strip() != content:
                return _fail("Wiki page content did not round-trip.")
            print(f"{result['message']} (version={result['version']})")

    print("\nPASSED smoke test.")
    return 0


def main() -> None:
    exit_code = asyncio.run(run_smoke_test())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
