"""Delete an application from every foundation of an environment."""

from __future__ import annotations

from typing import List

import structlog

from bluegreen_deployer.actions.base import FoundationAction, FoundationActionCreator
from bluegreen_deployer.core.exceptions import (
    CourierCommandError,
    DeleteApplicationError,
    DeleteFailedError,
    DeleteRollbackError,
    ExistsError,
    FinishDeleteError,
)
from bluegreen_deployer.events.types import (
    DeleteFailureEvent,
    DeleteFinishedEvent,
    DeleteStartedEvent,
    DeleteSuccessEvent,
)

logger = structlog.get_logger()


class Deleter(FoundationAction):
    """Deletes the app. A deleted app cannot be restored, so undo does nothing."""

    async def execute(self) -> None:
        app = self.app_name
        if not await self.courier.exists(app):
            raise ExistsError(app)

        logger.info("Deleting app", foundation_url=self.foundation_url, app=app)
        try:
            output = await self.courier.delete(app)
        except CourierCommandError as exc:
            self.response.write(exc.output)
            raise DeleteApplicationError(app, exc.output) from exc
        self.response.write(output)

        await self.emit(
            DeleteFinishedEvent(
                deployment_info=self.deployment_info,
                environment=self.environment,
                response=self.response,
                foundation_url=self.foundation_url,
                courier=self.courier,
            )
        )


class DeleteManager(FoundationActionCreator):
    action_class = Deleter
    execute_error_class = DeleteFailedError
    rollback_error_class = DeleteRollbackError
    finish_error_class = FinishDeleteError
    banner_title = "Delete Parameters"
    started_event = DeleteStartedEvent
    success_event = DeleteSuccessEvent
    failure_event = DeleteFailureEvent

    def rollback_allowed(self, execute_errors: List[Exception]) -> bool:
        return False
