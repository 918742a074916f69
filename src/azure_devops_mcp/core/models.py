from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Lightweight Reference Models ---


class WikiRef(BaseModel):
    id: str
    name: str
    type: Optional[str] = None
    project_id: Optional[str] = Field(default=None, alias="projectId")
    repository_id: Optional[str] = Field(default=None, alias="repositoryId")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class WorkItemTypeField(BaseModel):
    name: Optional[str] = None
    reference_name: Optional[str] = Field(default=None, alias="referenceName")
    default_value: Any = Field(default=None, alias="defaultValue")
    always_required: bool = Field(default=False, alias="alwaysRequired")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# --- Input Models (Tool Payloads) ---


class WikiType(str, Enum):
    PROJECT_WIKI = "projectWiki"
    CODE_WIKI = "codeWiki"


class PullRequestStatus(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class PipelineRepository(BaseModel):
    id: str
    type: str = "azureReposGit"
    name: Optional[str] = None
    default_branch: Optional[str] = Field(default=None, alias="defaultBranch")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class PipelineConfiguration(BaseModel):
    type: str = "yaml"
    path: str
    repository: PipelineRepository

    model_config = ConfigDict(extra="forbid")


class CreatePipelineInput(BaseModel):
    name: str
    configuration: PipelineConfiguration
    project_id: Optional[str] = None
    folder: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "configuration": self.configuration.model_dump(
                by_alias=True, exclude_none=True
            ),
        }
        if self.folder:
            payload["folder"] = self.folder
        return payload


class PipelineVariable(BaseModel):
    value: str
    is_secret: bool = Field(default=False, alias="isSecret")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
