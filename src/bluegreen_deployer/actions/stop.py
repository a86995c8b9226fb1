"""Stop an application on every foundation of an environment."""

from __future__ import annotations

from typing import List

import structlog

from bluegreen_deployer.actions.base import FoundationAction, FoundationActionCreator
from bluegreen_deployer.core.exceptions import (
    CourierCommandError,
    ExistsError,
    FinishStopError,
    StartError,
    StopError,
    StopFailedError,
    StopRollbackError,
)
from bluegreen_deployer.events.types import (
    StopFailureEvent,
    StopFinishedEvent,
    StopStartedEvent,
    StopSuccessEvent,
)

logger = structlog.get_logger()


class Stopper(FoundationAction):
    """Stops the app; undo starts it again."""

    async def execute(self) -> None:
        app = self.app_name
        if not await self.courier.exists(app):
            raise ExistsError(app)

        logger.info("Stopping app", foundation_url=self.foundation_url, app=app)
        try:
            output = await self.courier.stop(app)
        except CourierCommandError as exc:
            self.response.write(exc.output)
            raise StopError(app, exc.output) from exc
        self.response.write(output)

        await self.emit(
            StopFinishedEvent(
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
        logger.info("Restarting app after failed stop", foundation_url=self.foundation_url, app=app)
        try:
            self.response.write(await self.courier.start(app))
        except CourierCommandError as exc:
            raise StartError(app, exc.output) from exc


class StopManager(FoundationActionCreator):
    action_class = Stopper
    execute_error_class = StopFailedError
    rollback_error_class = StopRollbackError
    finish_error_class = FinishStopError
    banner_title = "Stop Parameters"
    started_event = StopStartedEvent
    success_event = StopSuccessEvent
    failure_event = StopFailureEvent

    def rollback_allowed(self, execute_errors: List[Exception]) -> bool:
        return not any(isinstance(e, ExistsError) for e in execute_errors)
