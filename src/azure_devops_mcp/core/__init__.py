"""Core domain surface for azure-devops-mcp (transport-agnostic)."""

from .auth import AuthConfig, AuthMethod, parse_auth_method
from .classifier import OperationContext, Phase, WriteIntent, classified, classify
from .client import (
    API_VERSION,
    ApiArea,
    AzureDevOpsClientError,
    AzureDevOpsConnection,
    AzureDevOpsHTTPError,
    AzureDevOpsParseError,
    Capability,
)
from .client_factory import AzureDevOpsClient
from .config import ServerConfig, create_client_from_env, load_env_config
from .errors import (
    ERROR_CLASSES,
    AzureDevOpsAuthenticationError,
    AzureDevOpsError,
    AzureDevOpsPermissionError,
    AzureDevOpsRateLimitError,
    AzureDevOpsResourceNotFoundError,
    AzureDevOpsValidationError,
    ErrorKind,
    format_error,
    is_azure_devops_error,
)
from .registry import (
    discover_tool_modules,
    iter_tool_functions,
    register_discovered_tools,
)

__all__ = [
    # Auth / client
    "AuthConfig",
    "AuthMethod",
    "parse_auth_method",
    "AzureDevOpsClient",
    "AzureDevOpsConnection",
    "ApiArea",
    "Capability",
    "API_VERSION",
    # Transport exceptions
    "AzureDevOpsClientError",
    "AzureDevOpsHTTPError",
    "AzureDevOpsParseError",
    # Error taxonomy
    "ErrorKind",
    "ERROR_CLASSES",
    "AzureDevOpsError",
    "AzureDevOpsAuthenticationError",
    "AzureDevOpsValidationError",
    "AzureDevOpsResourceNotFoundError",
    "AzureDevOpsPermissionError",
    "AzureDevOpsRateLimitError",
    "is_azure_devops_error",
    "format_error",
    # Classification
    "OperationContext",
    "Phase",
    "WriteIntent",
    "classify",
    "classified",
    # Config helpers
    "ServerConfig",
    "create_client_from_env",
    "load_env_config",
    # Registry helpers
    "discover_tool_modules",
    "iter_tool_functions",
    "register_discovered_tools",
]
