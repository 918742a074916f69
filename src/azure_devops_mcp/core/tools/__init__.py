"""Tool modules discovered by azure_devops_mcp.core.registry."""
