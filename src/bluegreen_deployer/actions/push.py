"""Blue/green push: bring the new revision up beside the old one, then swap."""

from __future__ import annotations

import io
from typing import Optional

import structlog

from bluegreen_deployer.actions.base import FoundationAction, FoundationActionCreator
from bluegreen_deployer.core.exceptions import (
    CloudFoundryLogsError,
    CourierCommandError,
    DeleteApplicationError,
    FinishPushError,
    MapRouteError,
    MissingParameterError,
    PushError,
    PushFailedError,
    PushRollbackError,
    RenameError,
    UnmapRouteError,
)
from bluegreen_deployer.core.models import ContentType, DeploymentInfo, Environment
from bluegreen_deployer.courier.courier import CourierCreator
from bluegreen_deployer.deploy.artifetcher import Artifetcher, remove_app_path
from bluegreen_deployer.deploy.manifest import get_instances, read_manifest_file
from bluegreen_deployer.events.manager import EventManager
from bluegreen_deployer.events.types import (
    ArtifactRetrievalFailureEvent,
    ArtifactRetrievalStartEvent,
    ArtifactRetrievalSuccessEvent,
    PushFinishedEvent,
    PushStartedEvent,
)

logger = structlog.get_logger()


class Pusher(FoundationAction):
    """Pushes ``<app>-<uuid>`` and promotes it to ``<app>`` on success."""

    @property
    def temp_app_name(self) -> str:
        return self.deployment_info.temp_app_name

    async def execute(self) -> None:
        info = self.deployment_info
        temp = self.temp_app_name

        logger.info("Pushing app", foundation_url=self.foundation_url, app=temp, instances=info.instances)
        try:
            output = await self.courier.push(temp, info.app_path, info.instances)
        except CourierCommandError as exc:
            self.response.write(exc.output)
            await self._write_logs(temp, PushError())
            raise PushError() from exc
        self.response.write(output)

        if info.domain:
            try:
                output = await self.courier.map_route(temp, info.domain, self.app_name)
            except CourierCommandError as exc:
                self.response.write(exc.output)
                raise MapRouteError(f"{self.app_name}.{info.domain}", exc.output) from exc
            self.response.write(output)
            logger.info("Mapped route", app=temp, route=f"{self.app_name}.{info.domain}")

        await self.emit(
            PushFinishedEvent(
                deployment_info=info,
                environment=self.environment,
                response=self.response,
                foundation_url=self.foundation_url,
                courier=self.courier,
                temp_app_name=temp,
                app_path=info.app_path,
                manifest=info.manifest,
            )
        )

    async def _write_logs(self, app_name: str, task_err: Exception) -> None:
        try:
            logs = await self.courier.logs(app_name)
        except CourierCommandError as exc:
            raise CloudFoundryLogsError(task_err, exc) from exc
        self.response.write(logs)

    async def success(self) -> None:
        info = self.deployment_info
        app = self.app_name

        if await self.courier.exists(app):
            if info.domain:
                try:
                    self.response.write(await self.courier.unmap_route(app, info.domain, app))
                except CourierCommandError as exc:
                    raise UnmapRouteError(app, exc.output) from exc
            try:
                self.response.write(await self.courier.delete(app))
            except CourierCommandError as exc:
                raise DeleteApplicationError(app, exc.output) from exc
            logger.info("Deleted previous revision", foundation_url=self.foundation_url, app=app)

        await self._rename_temp()

    async def undo(self) -> None:
        if await self.courier.exists(self.app_name):
            temp = self.temp_app_name
            logger.info("Rolling back push", foundation_url=self.foundation_url, app=temp)
            try:
                self.response.write(await self.courier.delete(temp))
            except CourierCommandError as exc:
                raise DeleteApplicationError(temp, exc.output) from exc
            return

        if not await self.courier.exists(self.temp_app_name):
            logger.info("Nothing to roll back", foundation_url=self.foundation_url, app=self.temp_app_name)
            return

        logger.info("No previous revision, keeping new app", foundation_url=self.foundation_url)
        await self._rename_temp()

    async def _rename_temp(self) -> None:
        temp = self.temp_app_name
        try:
            self.response.write(await self.courier.rename(temp, self.app_name))
        except CourierCommandError as exc:
            raise RenameError(temp, exc.output) from exc
        logger.info("Renamed app", foundation_url=self.foundation_url, old=temp, new=self.app_name)


class PushManager(FoundationActionCreator):
    """Prepares the artifact for a push and builds one Pusher per foundation."""

    action_class = Pusher
    execute_error_class = PushFailedError
    rollback_error_class = PushRollbackError
    finish_error_class = FinishPushError

    def __init__(
        self,
        courier_creator: CourierCreator,
        event_manager: EventManager,
        deployment_info: DeploymentInfo,
        environment: Environment,
        response: io.StringIO,
        artifetcher: Optional[Artifetcher] = None,
    ):
        super().__init__(courier_creator, event_manager, deployment_info, environment, response)
        self.artifetcher = artifetcher or Artifetcher()

    async def setup(self, environment: Environment) -> None:
        info = self.deployment_info

        if info.content_type == ContentType.ZIP:
            info.app_path = await self.artifetcher.fetch_from_zip(info.body)
            if not info.manifest:
                info.manifest = read_manifest_file(info.app_path)
        else:
            await self._fetch_artifact(environment)

        await self.event_manager.emit(
            ArtifactRetrievalSuccessEvent(
                deployment_info=info,
                environment=environment,
                response=self.response,
                manifest=info.manifest,
                artifact_url=info.artifact_url,
                app_path=info.app_path,
                environment_variables=info.environment_variables,
            )
        )

        manifest_instances = get_instances(info.manifest)
        info.instances = manifest_instances if manifest_instances is not None else environment.instances
        logger.debug("Resolved instance count", instances=info.instances, from_manifest=manifest_instances is not None)

    async def _fetch_artifact(self, environment: Environment) -> None:
        info = self.deployment_info
        if not info.artifact_url:
            raise MissingParameterError(["artifact_url"])

        await self.event_manager.emit(
            ArtifactRetrievalStartEvent(
                deployment_info=info,
                environment=environment,
                response=self.response,
                manifest=info.manifest,
                artifact_url=info.artifact_url,
            )
        )
        try:
            info.app_path = await self.artifetcher.fetch(info.artifact_url, info.manifest)
        except Exception as exc:
            await self.event_manager.emit(
                ArtifactRetrievalFailureEvent(
                    deployment_info=info,
                    environment=environment,
                    response=self.response,
                    manifest=info.manifest,
                    artifact_url=info.artifact_url,
                    error=exc,
                )
            )
            raise

    async def on_start(self) -> None:
        self.write_banner()
        await self.event_manager.emit(PushStartedEvent(self.deployment_info, self.environment, self.response))

    def clean_up(self) -> None:
        remove_app_path(self.deployment_info.app_path)
