"""Behaviour shared by every built-in action and action creator."""

from __future__ import annotations

import io
from typing import List, Optional, Type

import structlog

from bluegreen_deployer.bluegreen.action import Action, ActionCreator
from bluegreen_deployer.core.exceptions import (
    CourierCommandError,
    ExecuteError,
    FinishError,
    LoginError,
    RollbackError,
)
from bluegreen_deployer.core.models import DeploymentInfo, DeployResponse, Environment
from bluegreen_deployer.courier.courier import Courier, CourierCreator
from bluegreen_deployer.events.manager import EventManager
from bluegreen_deployer.events.types import DeploymentEvent

logger = structlog.get_logger()


class FoundationAction(Action):
    """An action bound to one foundation, one courier and one output buffer."""

    def __init__(
        self,
        courier: Courier,
        deployment_info: DeploymentInfo,
        environment: Environment,
        response: io.StringIO,
        foundation_url: str,
        event_manager: Optional[EventManager] = None,
    ):
        self.courier = courier
        self.deployment_info = deployment_info
        self.environment = environment
        self.response = response
        self.foundation_url = foundation_url
        self.event_manager = event_manager

    @property
    def app_name(self) -> str:
        return self.deployment_info.app_name

    async def initially(self) -> None:
        info = self.deployment_info
        try:
            output = await self.courier.login(
                self.foundation_url,
                info.username,
                info.password,
                info.org,
                info.space,
                info.skip_ssl,
            )
        except CourierCommandError as exc:
            self.response.write(exc.output)
            logger.error("Could not login", foundation_url=self.foundation_url)
            raise LoginError(self.foundation_url, exc.output) from exc
        self.response.write(output)
        logger.info("Logged in", foundation_url=self.foundation_url)

    async def app_exists(self) -> bool:
        return await self.courier.exists(self.app_name)

    async def finally_(self) -> None:
        self.courier.clean_up()

    async def emit(self, event: DeploymentEvent) -> None:
        if self.event_manager is not None:
            await self.event_manager.emit(event)


class FoundationActionCreator(ActionCreator):
    """Creator for actions that log in first and share one error taxonomy.

    Subclasses name their action class and the aggregate error classes of
    their operation kind.
    """

    action_class: Type[FoundationAction]
    execute_error_class: Type[ExecuteError]
    rollback_error_class: Type[RollbackError]
    finish_error_class: Type[FinishError]
    banner_title = "Deployment Parameters"
    started_event: Optional[Type[DeploymentEvent]] = None
    success_event: Optional[Type[DeploymentEvent]] = None
    failure_event: Optional[Type[DeploymentEvent]] = None

    def __init__(
        self,
        courier_creator: CourierCreator,
        event_manager: EventManager,
        deployment_info: DeploymentInfo,
        environment: Environment,
        response: io.StringIO,
    ):
        self.courier_creator = courier_creator
        self.event_manager = event_manager
        self.deployment_info = deployment_info
        self.environment = environment
        self.response = response

    async def on_start(self) -> None:
        self.write_banner()
        if self.started_event is not None:
            await self.event_manager.emit(
                self.started_event(self.deployment_info, self.environment, self.response)
            )

    def write_banner(self) -> None:
        info = self.deployment_info
        lines = [f"{self.banner_title}:"]
        if info.artifact_url:
            lines.append(f"Artifact URL: {info.artifact_url},")
        lines.extend([
            f"Username:     {info.username},",
            f"Environment:  {info.environment},",
            f"Org:          {info.org},",
            f"Space:        {info.space},",
            f"AppName:      {info.app_name}",
        ])
        self.response.write("\n".join(lines) + "\n\n")

    def create(self, environment: Environment, response: io.StringIO, foundation_url: str) -> Action:
        return self.action_class(
            courier=self.courier_creator.create_courier(),
            deployment_info=self.deployment_info,
            environment=environment,
            response=response,
            foundation_url=foundation_url,
            event_manager=self.event_manager,
        )

    def execute_error(self, errors: List[Exception]) -> Exception:
        return self.execute_error_class(errors)

    def undo_error(self, execute_errors: List[Exception], undo_errors: List[Exception]) -> Exception:
        return self.rollback_error_class(execute_errors, undo_errors)

    def success_error(self, errors: List[Exception]) -> Exception:
        return self.finish_error_class(errors)

    async def on_finish(self, environment: Environment, response: io.StringIO, error: Exception | None) -> DeployResponse:
        result = await super().on_finish(environment, response, error)
        if error is None and self.success_event is not None:
            await self.event_manager.emit(self.success_event(self.deployment_info, environment, response))
        elif error is not None and self.failure_event is not None:
            await self.event_manager.emit(
                self.failure_event(self.deployment_info, environment, response, error=error)
            )
        return result
