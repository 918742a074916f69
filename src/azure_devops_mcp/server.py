from __future__ import annotations

import asyncio

from azure_devops_mcp.transports.stdio.main import main


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
