"""Start an application on every foundation of an environment."""

from __future__ import annotations

from typing import List

import structlog

from bluegreen_deployer.actions.base import FoundationAction, FoundationActionCreator
from bluegreen_deployer.core.exceptions import (
    CourierCommandError,
    ExistsError,
    FinishStartError,
    StartError,
    StartFailedError,
    StartRollbackError,
    StopError,
)
from bluegreen_deployer.events.types import (
    StartFailureEvent,
    StartFinishedEvent,
    StartStartedEvent,
    StartSuccessEvent,
)

logger = structlog.get_logger()


class Starter(FoundationAction):
    """Starts the app; undo stops it again."""

    async def execute(self) -> None:
        app = self.app_name
        if not await self.courier.exists(app):
            raise ExistsError(app)

        logger.info("Starting app", foundation_url=self.foundation_url, app=app)
        try:
            output = await self.courier.start(app)
        except CourierCommandError as exc:
            self.response.write(exc.output)
            raise StartError(app, exc.output) from exc
        self.response.write(output)

        await self.emit(
            StartFinishedEvent(
                deployment_info=self.deployment_info,
                environment=self.environment,
                response=self.response,
                foundation_url=self.foundation_url,
                courier=self.courier,
            )
        )

    async def undo(self) -> None:
        app = self.app_name
        if not await self.courier.exists(app):
            return
        logger.info("Stopping app after failed start", foundation_url=self.foundation_url, app=app)
        try:
            self.response.write(await self.courier.stop(app))
        except CourierCommandError as exc:
            raise StopError(app, exc.output) from exc


class StartManager(FoundationActionCreator):
    action_class = Starter
    execute_error_class = StartFailedError
    rollback_error_class = StartRollbackError
    finish_error_class = FinishStartError
    banner_title = "Start Parameters"
    started_event = StartStartedEvent
    success_event = StartSuccessEvent
    failure_event = StartFailureEvent

    def rollback_allowed(self, execute_errors: List[Exception]) -> bool:
        return not any(isinstance(e, ExistsError) for e in execute_errors)
