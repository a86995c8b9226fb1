"""Per-request driver: from an HTTP request to a finished deployment."""

from __future__ import annotations

import asyncio
import io
import uuid
from typing import Optional

import structlog

from bluegreen_deployer.actions import DeleteManager, PushManager, StartManager, StopManager
from bluegreen_deployer.bluegreen.action import ActionCreator, status_code_for
from bluegreen_deployer.bluegreen.engine import BlueGreener
from bluegreen_deployer.core.config import Settings
from bluegreen_deployer.core.environments import DeployerConfig
from bluegreen_deployer.core.exceptions import BasicAuthError, DeployerError
from bluegreen_deployer.core.models import (
    ContentType,
    DeploymentInfo,
    DeploymentKind,
    DeployResponse,
    Environment,
    PushRequestBody,
)
from bluegreen_deployer.courier.courier import CourierCreator
from bluegreen_deployer.deploy.artifetcher import Artifetcher
from bluegreen_deployer.deploy.error_finder import ErrorFinder
from bluegreen_deployer.deploy.manifest import decode_manifest
from bluegreen_deployer.deploy.prechecker import Prechecker
from bluegreen_deployer.deploy.silent import SilentDeployer
from bluegreen_deployer.events.manager import EventManager
from bluegreen_deployer.events.types import (
    DeployFailureEvent,
    DeployFinishedEvent,
    DeployStartedEvent,
    DeploySuccessEvent,
)
from bluegreen_deployer.utils.logging import bind_deployment_context

logger = structlog.get_logger()

SUCCESS_MESSAGE = """Your {action} was successful! (^_^)b
If you experience any problems after this point, check that you can manually push your application to Cloud Foundry on a lower environment.
It is likely that it is an error with your application and not with the deployer.
"""

_CREATORS = {
    DeploymentKind.STOP: StopManager,
    DeploymentKind.START: StartManager,
    DeploymentKind.DELETE: DeleteManager,
}


class Deployer:
    """Resolves a request, runs the blue/green engine and reports the outcome."""

    def __init__(
        self,
        config: DeployerConfig,
        settings: Settings,
        event_manager: EventManager,
        courier_creator: CourierCreator,
        bluegreener: Optional[BlueGreener] = None,
        artifetcher: Optional[Artifetcher] = None,
        prechecker: Optional[Prechecker] = None,
        error_finder: Optional[ErrorFinder] = None,
        silent_deployer: Optional[SilentDeployer] = None,
    ):
        self.config = config
        self.settings = settings
        self.event_manager = event_manager
        self.courier_creator = courier_creator
        self.bluegreener = bluegreener or BlueGreener()
        self.artifetcher = artifetcher or Artifetcher()
        self.prechecker = prechecker or Prechecker()
        self.error_finder = error_finder or ErrorFinder(config.error_matchers)
        self.silent_deployer = silent_deployer

    async def deploy(
        self,
        kind: DeploymentKind,
        environment_name: str,
        org: str,
        space: str,
        app_name: str,
        response: io.StringIO,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        content_type: ContentType = ContentType.JSON,
        body: bytes = b"",
        request: Optional[PushRequestBody] = None,
    ) -> DeployResponse:
        """Run one deployment and write its output to ``response``.

        Never raises for deployment failures; the returned response carries
        the status code and the error.
        """
        deployment_uuid = uuid.uuid4().hex
        bind_deployment_context(deployment_uuid, environment_name, app_name, kind.value)
        logger.info("Deployment requested", kind=kind.value, org=org, space=space)

        try:
            environment = self.config.get_environment(environment_name)
            username, password = self._resolve_authorization(environment, username, password)
            info = self._deployment_info(
                kind, environment, org, space, app_name, deployment_uuid,
                username, password, content_type, body, request,
            )
            await self.prechecker.assert_all_foundations_up(environment)
        except DeployerError as exc:
            logger.error("Deployment rejected", error=str(exc))
            response.write(f"{exc}\n")
            return DeployResponse(status_code=status_code_for(exc), error=exc)

        return await self._run(kind, info, environment, response)

    def _resolve_authorization(self, environment: Environment, username: Optional[str], password: Optional[str]):
        if username or password:
            return username or "", password or ""
        if environment.authenticate:
            raise BasicAuthError()
        return self.settings.cf_username, self.settings.cf_password

    def _deployment_info(
        self,
        kind: DeploymentKind,
        environment: Environment,
        org: str,
        space: str,
        app_name: str,
        deployment_uuid: str,
        username: str,
        password: str,
        content_type: ContentType,
        body: bytes,
        request: Optional[PushRequestBody],
    ) -> DeploymentInfo:
        info = DeploymentInfo(
            org=org,
            space=space,
            app_name=app_name,
            username=username,
            password=password,
            environment=environment.name,
            uuid=deployment_uuid,
            content_type=content_type,
            domain=environment.domain,
            skip_ssl=environment.skip_ssl,
            instances=environment.instances,
            custom_params=dict(environment.custom_params),
        )
        if kind is not DeploymentKind.PUSH:
            return info

        if content_type == ContentType.ZIP:
            info.body = body
        elif request is not None:
            info.artifact_url = request.artifact_url or ""
            info.manifest = decode_manifest(request.manifest or "")
            info.data = request.data
            info.environment_variables = request.environment_variables
            info.health_check_endpoint = request.health_check_endpoint or ""
        return info

    def _creator(self, kind: DeploymentKind, info: DeploymentInfo, environment: Environment, response: io.StringIO) -> ActionCreator:
        if kind is DeploymentKind.PUSH:
            return PushManager(self.courier_creator, self.event_manager, info, environment, response, self.artifetcher)
        return _CREATORS[kind](self.courier_creator, self.event_manager, info, environment, response)

    async def _run(
        self,
        kind: DeploymentKind,
        info: DeploymentInfo,
        environment: Environment,
        response: io.StringIO,
    ) -> DeployResponse:
        error: Optional[Exception] = None
        try:
            await self.event_manager.emit(DeployStartedEvent(info, environment, response))
            creator = self._creator(kind, info, environment, response)

            if kind is DeploymentKind.PUSH and self.silent_deployer and self.silent_deployer.applies_to(environment.name):
                error, _ = await asyncio.gather(
                    self._execute(creator, environment, response),
                    self.silent_deployer.deploy(
                        lambda i, e, r: self._creator(kind, i, e, r), info, environment
                    ),
                )
            else:
                error = await self._execute(creator, environment, response)

            result = await creator.on_finish(environment, response, error)
        except DeployerError as exc:
            error = exc
            result = DeployResponse(status_code=status_code_for(exc), error=exc)

        result = await self._report(kind, info, environment, response, result)

        try:
            await self.event_manager.emit(DeployFinishedEvent(info, environment, response, error=result.error))
        except DeployerError as exc:
            logger.error("Deploy finished event failed", error=str(exc))
            response.write(f"{exc}\n")

        logger.info("Deployment finished", kind=kind.value, status_code=result.status_code)
        return result

    async def _execute(self, creator: ActionCreator, environment: Environment, response: io.StringIO) -> Optional[Exception]:
        try:
            await self.bluegreener.execute(creator, environment, response)
        except Exception as exc:
            if not isinstance(exc, DeployerError):
                logger.exception("Unexpected deployment error")
            return exc
        return None

    async def _report(
        self,
        kind: DeploymentKind,
        info: DeploymentInfo,
        environment: Environment,
        response: io.StringIO,
        result: DeployResponse,
    ) -> DeployResponse:
        if result.succeeded:
            try:
                await self.event_manager.emit(DeploySuccessEvent(info, environment, response))
            except DeployerError as exc:
                logger.error("Deploy success event failed", error=str(exc))
                result = DeployResponse(status_code=500, error=exc)
            else:
                action = "deploy" if kind is DeploymentKind.PUSH else kind.value
                response.write("\n" + SUCCESS_MESSAGE.format(action=action))
                return result

        logger.error("Deployment failed", error=str(result.error))
        response.write(f"\n{result.error}\n")
        solutions = self.error_finder.solutions(response.getvalue())
        if solutions:
            response.write(f"\n{solutions}\n")

        try:
            await self.event_manager.emit(DeployFailureEvent(info, environment, response, error=result.error))
        except DeployerError as exc:
            logger.error("Deploy failure event failed", error=str(exc))
            response.write(f"{exc}\n")
        return result
