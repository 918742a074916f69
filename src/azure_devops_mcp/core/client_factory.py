from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from .auth import AuthConfig, CredentialFactory, parse_auth_method, resolve_credentials
from .client import ApiArea, AzureDevOpsConnection, Capability
from .errors import (
    AzureDevOpsAuthenticationError,
    AzureDevOpsError,
    AzureDevOpsValidationError,
)
from .observability import log_event


def _coerce_capability(capability: Union[Capability, str]) -> Capability:
    if isinstance(capability, Capability):
        return capability
    needle = str(capability).strip().casefold().replace("_", " ")
    for candidate in Capability:
        if needle in (
            candidate.name.casefold().replace("_", " "),
            candidate.display_name.casefold(),
        ):
            return candidate
    raise ValueError(f"Unknown capability: {capability!r}")


def _capability_label(capability: Union[Capability, str]) -> str:
    if isinstance(capability, Capability):
        return capability.display_name
    return str(capability)


class AzureDevOpsClient:
    """
    Lazily builds and hands out one authenticated Azure DevOps connection.
    - The first get_client() call starts construction; concurrent and later
      callers share that single attempt and its outcome (success or failure)
    - Construction tries only the configured auth method, then probes the
      organization once before the connection is handed out
    - A failed attempt is never retried; build a new client to try again
    """

    def __init__(
        self,
        config: AuthConfig,
        *,
        credential_factory: Optional[CredentialFactory] = None,
        timeout_seconds: float = 30.0,
        default_project: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.default_project = default_project or None
        self.timeout_seconds = timeout_seconds
        self.log = logger or logging.getLogger("azure_devops_mcp.client_factory")
        self._credential_factory = credential_factory
        self._connection_task: Optional[asyncio.Task] = None

    @property
    def organization_url(self) -> str:
        return (self.config.organization_url or "").rstrip("/")

    async def get_client(self) -> AzureDevOpsConnection:
        """
        Return the shared connection, building it on first use.

        Raises:
            AzureDevOpsAuthenticationError: credentials missing or rejected, or
                the connectivity probe failed.
        """
        if self._connection_task is None:
            self._connection_task = asyncio.ensure_future(self._connect())
        # shield: a cancelled caller must not cancel the shared attempt
        return await asyncio.shield(self._connection_task)

    async def get_web_api_client(self) -> AzureDevOpsConnection:
        return await self.get_client()

    async def is_authenticated(self) -> bool:
        try:
            await self.get_client()
        except Exception:
            return False
        return True

    async def _connect(self) -> AzureDevOpsConnection:
        connection: Optional[AzureDevOpsConnection] = None
        method = parse_auth_method(self.config.method)
        try:
            if not self.organization_url:
                raise AzureDevOpsAuthenticationError("Organization URL is required")

            credentials = await resolve_credentials(
                self.config, self._credential_factory
            )
            connection = AzureDevOpsConnection(
                organization_url=self.organization_url,
                auth=credentials.auth,
                headers=credentials.headers,
                timeout_seconds=self.timeout_seconds,
            )
            await connection.get_resource_areas()
        except Exception as exc:
            if connection is not None:
                await connection.aclose()
            error = (
                exc
                if isinstance(exc, AzureDevOpsError)
                else AzureDevOpsAuthenticationError(f"Authentication failed: {exc}")
            )
            log_event(
                "client.connect_failed",
                self.log,
                level=logging.WARNING,
                organization_url=self.organization_url,
                auth_method=str(getattr(method, "value", method)),
                error_kind=error.kind.value,
            )
            if error is exc:
                raise
            raise error from exc

        log_event(
            "client.connected",
            self.log,
            organization_url=self.organization_url,
            auth_method=str(getattr(method, "value", method)),
        )
        return connection

    async def aclose(self) -> None:
        task = self._connection_task
        if task is None or not task.done() or task.cancelled():
            return
        if task.exception() is None:
            await task.result().aclose()

    async def __aenter__(self) -> "AzureDevOpsClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --- Sub-APIs ---------------------------------------------------------- #

    async def get_sub_api(self, capability: Union[Capability, str]) -> ApiArea:
        """
        Resolve a capability's sub-API on the shared connection.

        Taxonomy errors from get_client() propagate unchanged; anything else is
        reported as "Failed to get <Capability> API: <cause>".
        """
        try:
            connection = await self.get_client()
            return connection.get_area(_coerce_capability(capability))
        except AzureDevOpsError:
            raise
        except Exception as exc:
            raise AzureDevOpsAuthenticationError(
                f"Failed to get {_capability_label(capability)} API: {exc}"
            ) from exc

    async def get_core_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.CORE)

    async def get_git_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.GIT)

    async def get_work_item_tracking_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.WORK_ITEM_TRACKING)

    async def get_build_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.BUILD)

    async def get_test_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.TEST)

    async def get_release_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.RELEASE)

    async def get_task_agent_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.TASK_AGENT)

    async def get_task_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.TASK)

    async def get_profile_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.PROFILE)

    async def get_pipelines_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.PIPELINES)

    async def get_wiki_api(self) -> ApiArea:
        return await self.get_sub_api(Capability.WIKI)

    # --- Helpers for tools ------------------------------------------------- #

    def resolve_project(self, project_id: Optional[str]) -> str:
        project = (project_id or "").strip() or self.default_project
        if not project:
            raise AzureDevOpsValidationError(
                "project_id is required (no default project configured)"
            )
        return project


__all__ = ["AzureDevOpsClient"]
