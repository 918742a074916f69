from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .auth import AuthConfig, AuthMethod, parse_auth_method
from .client_factory import AzureDevOpsClient

ORG_URL_ENV = "AZURE_DEVOPS_ORG_URL"
AUTH_METHOD_ENV = "AZURE_DEVOPS_AUTH_METHOD"
PAT_ENV = "AZURE_DEVOPS_PAT"
DEFAULT_PROJECT_ENV = "AZURE_DEVOPS_DEFAULT_PROJECT"
LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class ServerConfig:
    auth: AuthConfig
    default_project: Optional[str] = None
    log_level: str = "INFO"


def load_env_config(*, use_dotenv: bool = True) -> ServerConfig:
    """Load Azure DevOps settings from environment (optional .env)."""
    if use_dotenv:
        load_dotenv()
    organization_url = os.getenv(ORG_URL_ENV, "").strip().rstrip("/")
    method = parse_auth_method(
        os.getenv(AUTH_METHOD_ENV, "").strip() or AuthMethod.AZURE_IDENTITY
    )
    pat = os.getenv(PAT_ENV, "").strip() or None
    default_project = os.getenv(DEFAULT_PROJECT_ENV, "").strip() or None
    log_level = os.getenv(LOG_LEVEL_ENV, "").strip() or "INFO"
    return ServerConfig(
        auth=AuthConfig(
            organization_url=organization_url,
            method=method,
            personal_access_token=pat,
        ),
        default_project=default_project,
        log_level=log_level,
    )


def create_client_from_env(*, use_dotenv: bool = True, **kwargs) -> AzureDevOpsClient:
    """Create an AzureDevOpsClient from environment variables."""
    cfg = load_env_config(use_dotenv=use_dotenv)
    if not cfg.auth.organization_url:
        raise ValueError(f"Missing {ORG_URL_ENV} in environment.")
    kwargs.setdefault("default_project", cfg.default_project)
    return AzureDevOpsClient(cfg.auth, **kwargs)


__all__ = [
    "ServerConfig",
    "load_env_config",
    "create_client_from_env",
    "ORG_URL_ENV",
    "AUTH_METHOD_ENV",
    "PAT_ENV",
    "DEFAULT_PROJECT_ENV",
    "LOG_LEVEL_ENV",
]
