"""Mirror deploys to a single extra foundation."""

from __future__ import annotations

import io
from typing import Callable, Optional

import structlog

from bluegreen_deployer.bluegreen.action import ActionCreator, status_code_for
from bluegreen_deployer.bluegreen.engine import BlueGreener
from bluegreen_deployer.core.models import DeploymentInfo, DeployResponse, Environment

logger = structlog.get_logger()

CreatorFactory = Callable[[DeploymentInfo, Environment, io.StringIO], ActionCreator]


class SilentDeployer:
    """Repeats a push against ``url`` when the request targets ``environment_name``.

    The mirror gets its own copy of the deployment info and its own output
    buffer. Its output is discarded and its outcome is only logged, so it
    can never change the result of the real deployment.
    """

    def __init__(self, environment_name: Optional[str], url: Optional[str], bluegreener: Optional[BlueGreener] = None):
        self.environment_name = environment_name
        self.url = url
        self.bluegreener = bluegreener or BlueGreener()

    def applies_to(self, environment_name: str) -> bool:
        return bool(self.url and self.environment_name) and environment_name.lower() == self.environment_name.lower()

    def mirror_environment(self, environment: Environment) -> Environment:
        return environment.model_copy(update={"foundations": [self.url]})

    async def deploy(
        self,
        creator_factory: CreatorFactory,
        deployment_info: DeploymentInfo,
        environment: Environment,
    ) -> DeployResponse:
        mirror = self.mirror_environment(environment)
        info = deployment_info.model_copy(deep=True)
        info.app_path = ""
        response = io.StringIO()

        logger.info("Starting silent deploy", foundation_url=self.url)
        try:
            await self.bluegreener.execute(creator_factory(info, mirror, response), mirror, response)
        except Exception as exc:
            logger.warning("Silent deploy failed", foundation_url=self.url, error=str(exc))
            return DeployResponse(status_code=status_code_for(exc), error=exc)

        logger.info("Silent deploy succeeded", foundation_url=self.url)
        return DeployResponse()
