from __future__ import annotations

import asyncio

from mcp.server.fastmcp import FastMCP

from azure_devops_mcp.core.config import create_client_from_env, load_env_config
from azure_devops_mcp.core.logging import setup_logging
from azure_devops_mcp.core.registry import register_discovered_tools


async def main() -> None:
    cfg = load_env_config(use_dotenv=True)
    setup_logging(cfg.log_level)
    client = create_client_from_env(use_dotenv=False)

    app = FastMCP("azure-devops-mcp")
    register_discovered_tools(app, client)

    try:
        await app.run_stdio_async()
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
