from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import httpx
from azure.identity.aio import AzureCliCredential, DefaultAzureCredential

from .errors import AzureDevOpsAuthenticationError

# Azure DevOps application id; tokens must be requested for this audience.
AZURE_DEVOPS_RESOURCE_ID = "499b84ac-1321-427f-aa17-267ca6975798"
AZURE_DEVOPS_SCOPE = f"{AZURE_DEVOPS_RESOURCE_ID}/.default"


class AuthMethod(str, Enum):
    PAT = "pat"
    AZURE_IDENTITY = "azure-identity"
    AZURE_CLI = "azure-cli"


def parse_auth_method(value: Union[AuthMethod, str, None]) -> Union[AuthMethod, str]:
    """
    Normalize a configured method name. Unknown names are returned as-is so the
    client builder can reject them with an authentication error.
    """
    if isinstance(value, AuthMethod):
        return value
    raw = (value or "").strip()
    try:
        return AuthMethod(raw.lower())
    except ValueError:
        return raw


@dataclass(frozen=True)
class AuthConfig:
    organization_url: str
    method: Union[AuthMethod, str] = AuthMethod.AZURE_IDENTITY
    personal_access_token: Optional[str] = None

    def __repr__(self) -> str:
        secret = "***" if self.personal_access_token else None
        return (
            f"AuthConfig(organization_url={self.organization_url!r}, "
            f"method={self.method!r}, personal_access_token={secret!r})"
        )


CredentialFactory = Callable[[AuthMethod], Any]


def default_credential_factory(method: AuthMethod) -> Any:
    """Return an azure-identity async credential for the identity-based methods."""
    if method is AuthMethod.AZURE_CLI:
        return AzureCliCredential()
    return DefaultAzureCredential()


async def acquire_token(credential: Any, scope: str = AZURE_DEVOPS_SCOPE) -> str:
    """Get one bearer token from `credential` and release the credential."""
    try:
        token = await credential.get_token(scope)
    finally:
        close = getattr(credential, "close", None)
        if close is not None:
            await close()

    value = getattr(token, "token", None)
    if not value:
        raise AzureDevOpsAuthenticationError(
            "Failed to acquire token for Azure DevOps"
        )
    return value


@dataclass(frozen=True)
class Credentials:
    """httpx auth object and/or extra headers for one connection."""

    auth: Optional[httpx.Auth] = None
    headers: Optional[Dict[str, str]] = None


async def resolve_credentials(
    config: AuthConfig,
    credential_factory: Optional[CredentialFactory] = None,
) -> Credentials:
    """
    Build credentials for the configured method. Exactly one strategy is tried;
    there is no fallback between methods.
    """
    method = parse_auth_method(config.method)

    if method is AuthMethod.PAT:
        if not config.personal_access_token:
            raise AzureDevOpsAuthenticationError("Personal Access Token is required")
        # PATs go in the password slot with an empty user name.
        return Credentials(auth=httpx.BasicAuth("", config.personal_access_token))

    if method in (AuthMethod.AZURE_IDENTITY, AuthMethod.AZURE_CLI):
        factory = credential_factory or default_credential_factory
        token = await acquire_token(factory(method))
        return Credentials(headers={"Authorization": f"Bearer {token}"})

    raise AzureDevOpsAuthenticationError(
        f"Unsupported authentication method: {config.method}"
    )


__all__ = [
    "AZURE_DEVOPS_RESOURCE_ID",
    "AZURE_DEVOPS_SCOPE",
    "AuthMethod",
    "AuthConfig",
    "Credentials",
    "CredentialFactory",
    "parse_auth_method",
    "default_credential_factory",
    "acquire_token",
    "resolve_credentials",
]
