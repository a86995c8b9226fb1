"""Deployment lifecycle events and their subscribers."""

from .manager import EventManager
from .types import (
    ArtifactRetrievalFailureEvent,
    ArtifactRetrievalStartEvent,
    ArtifactRetrievalSuccessEvent,
    DeleteFailureEvent,
    DeleteFinishedEvent,
    DeleteStartedEvent,
    DeleteSuccessEvent,
    DeployFailureEvent,
    DeployFinishedEvent,
    DeployStartedEvent,
    DeploySuccessEvent,
    DeploymentEvent,
    PushFinishedEvent,
    PushStartedEvent,
    StartFailureEvent,
    StartFinishedEvent,
    StartStartedEvent,
    StartSuccessEvent,
    StopFailureEvent,
    StopFinishedEvent,
    StopStartedEvent,
    StopSuccessEvent,
)

__all__ = [
    "EventManager",
    "DeploymentEvent",
    "DeployStartedEvent",
    "DeploySuccessEvent",
    "DeployFailureEvent",
    "DeployFinishedEvent",
    "ArtifactRetrievalStartEvent",
    "ArtifactRetrievalSuccessEvent",
    "ArtifactRetrievalFailureEvent",
    "PushStartedEvent",
    "PushFinishedEvent",
    "StopStartedEvent",
    "StopFinishedEvent",
    "StopSuccessEvent",
    "StopFailureEvent",
    "StartStartedEvent",
    "StartFinishedEvent",
    "StartSuccessEvent",
    "StartFailureEvent",
    "DeleteStartedEvent",
    "DeleteFinishedEvent",
    "DeleteSuccessEvent",
    "DeleteFailureEvent",
]
