"""azure_devops_mcp package exports."""

from .core import (
    AuthConfig,
    AuthMethod,
    AzureDevOpsAuthenticationError,
    AzureDevOpsClient,
    AzureDevOpsConnection,
    AzureDevOpsError,
    AzureDevOpsPermissionError,
    AzureDevOpsRateLimitError,
    AzureDevOpsResourceNotFoundError,
    AzureDevOpsValidationError,
    Capability,
    ErrorKind,
    OperationContext,
    classify,
    format_error,
)
from .server import main as run_server

__all__ = [
    # Client
    "AuthConfig",
    "AuthMethod",
    "AzureDevOpsClient",
    "AzureDevOpsConnection",
    "Capability",
    # Exceptions
    "ErrorKind",
    "AzureDevOpsError",
    "AzureDevOpsAuthenticationError",
    "AzureDevOpsValidationError",
    "AzureDevOpsResourceNotFoundError",
    "AzureDevOpsPermissionError",
    "AzureDevOpsRateLimitError",
    # Classification
    "OperationContext",
    "classify",
    "format_error",
    # Server
    "run_server",
]
