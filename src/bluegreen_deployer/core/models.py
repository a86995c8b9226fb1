"""Core data models for the blue/green deployer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentType(str, Enum):
    """Kind of body a push request carries."""

    JSON = "JSON"
    ZIP = "ZIP"


class DeploymentKind(str, Enum):
    PUSH = "push"
    STOP = "stop"
    START = "start"
    DELETE = "delete"


class Environment(BaseModel):
    """A named group of foundations that are deployed to together."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Environment name")
    domain: str = Field(..., description="Shared application domain")
    foundations: List[str] = Field(..., description="Foundation API URLs, in deploy order")
    authenticate: bool = Field(False, description="Require basic auth on every request")
    skip_ssl: bool = Field(False, description="Skip TLS validation when logging in")
    instances: int = Field(1, ge=0, le=65535, description="Default instance count")
    enable_rollback: bool = Field(False, alias="rollback_enabled")
    disable_first_deploy_rollback: bool = Field(False)
    custom_params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("foundations")
    @classmethod
    def strip_foundations(cls, v: List[str]) -> List[str]:
        return [url.strip() for url in v if url and url.strip()]


class ErrorMatcherDescriptor(BaseModel):
    """Regular expression used to explain a failed deployment."""

    pattern: str
    description: str = "This error does not have a description."
    solution: str = "No recommended solution available."


class PushRequestBody(BaseModel):
    """JSON body of a push request."""

    model_config = ConfigDict(extra="ignore")

    artifact_url: Optional[str] = None
    manifest: Optional[str] = Field(None, description="Base64 encoded manifest.yml")
    data: Dict[str, Any] = Field(default_factory=dict)
    environment_variables: Dict[str, str] = Field(default_factory=dict)
    health_check_endpoint: Optional[str] = None


class DeploymentInfo(BaseModel):
    """Everything the actions need to know about one deployment request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    org: str
    space: str
    app_name: str
    username: str = ""
    password: str = ""
    environment: str = ""
    uuid: str = ""
    artifact_url: str = ""
    manifest: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    content_type: ContentType = ContentType.JSON
    body: bytes = b""
    app_path: str = ""
    instances: int = 0
    domain: str = ""
    skip_ssl: bool = False
    environment_variables: Dict[str, str] = Field(default_factory=dict)
    health_check_endpoint: str = ""
    custom_params: Dict[str, Any] = Field(default_factory=dict)

    @property
    def temp_app_name(self) -> str:
        return f"{self.app_name}-{self.uuid}"


class DeployResponse(BaseModel):
    """Outcome of a deployment: status code plus the error that caused it."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status_code: int = 200
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
