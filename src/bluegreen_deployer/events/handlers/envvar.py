"""Injects request environment variables into the app manifest."""

from __future__ import annotations

import structlog

from bluegreen_deployer.deploy.manifest import (
    first_application,
    parse_manifest,
    read_manifest_file,
    write_manifest_file,
)
from bluegreen_deployer.events.types import ArtifactRetrievalSuccessEvent

logger = structlog.get_logger()


class EnvVarHandler:
    """Subscriber for :class:`ArtifactRetrievalSuccessEvent`."""

    def on_artifact_retrieved(self, event: ArtifactRetrievalSuccessEvent) -> None:
        if not event.environment_variables:
            logger.debug("No environment variables to add")
            return

        manifest = event.manifest or read_manifest_file(event.app_path)
        data = parse_manifest(manifest)
        application = first_application(data)
        if application is None:
            application = {"name": event.deployment_info.app_name}
            data["applications"] = [application]

        env = application.get("env") or {}
        env.update(event.environment_variables)
        application["env"] = env
        application.pop("path", None)

        path = write_manifest_file(event.app_path, data)
        logger.info("Added environment variables to manifest", count=len(event.environment_variables), manifest=str(path))
