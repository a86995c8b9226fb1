"""Typed lifecycle events published during a deployment."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

from bluegreen_deployer.core.models import DeploymentInfo, Environment

if TYPE_CHECKING:
    from bluegreen_deployer.courier.courier import Courier


@dataclass
class DeploymentEvent:
    deployment_info: DeploymentInfo
    environment: Environment
    response: io.StringIO

    @property
    def name(self) -> str:
        return type(self).__name__


# Request lifecycle

@dataclass
class DeployStartedEvent(DeploymentEvent):
    pass


@dataclass
class DeploySuccessEvent(DeploymentEvent):
    pass


@dataclass
class DeployFailureEvent(DeploymentEvent):
    error: Optional[Exception] = None


@dataclass
class DeployFinishedEvent(DeploymentEvent):
    error: Optional[Exception] = None


# Artifact retrieval

@dataclass
class ArtifactRetrievalStartEvent(DeploymentEvent):
    manifest: str = ""
    artifact_url: str = ""


@dataclass
class ArtifactRetrievalSuccessEvent(DeploymentEvent):
    manifest: str = ""
    artifact_url: str = ""
    app_path: str = ""
    environment_variables: Dict[str, str] = field(default_factory=dict)


@dataclass
class ArtifactRetrievalFailureEvent(DeploymentEvent):
    manifest: str = ""
    artifact_url: str = ""
    error: Optional[Exception] = None


# Per-foundation events carry the foundation's own courier and output buffer

@dataclass
class FoundationEvent(DeploymentEvent):
    foundation_url: str = ""
    courier: Optional["Courier"] = None


@dataclass
class PushStartedEvent(DeploymentEvent):
    pass


@dataclass
class PushFinishedEvent(FoundationEvent):
    temp_app_name: str = ""
    app_path: str = ""
    manifest: str = ""


@dataclass
class StopStartedEvent(DeploymentEvent):
    pass


@dataclass
class StopFinishedEvent(FoundationEvent):
    pass


@dataclass
class StopSuccessEvent(DeploymentEvent):
    pass


@dataclass
class StopFailureEvent(DeploymentEvent):
    error: Optional[Exception] = None


@dataclass
class StartStartedEvent(DeploymentEvent):
    pass


@dataclass
class StartFinishedEvent(FoundationEvent):
    pass


@dataclass
class StartSuccessEvent(DeploymentEvent):
    pass


@dataclass
class StartFailureEvent(DeploymentEvent):
    error: Optional[Exception] = None


@dataclass
class DeleteStartedEvent(DeploymentEvent):
    pass


@dataclass
class DeleteFinishedEvent(FoundationEvent):
    pass


@dataclass
class DeleteSuccessEvent(DeploymentEvent):
    pass


@dataclass
class DeleteFailureEvent(DeploymentEvent):
    error: Optional[Exception] = None
