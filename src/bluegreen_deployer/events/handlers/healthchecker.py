"""Health check of a freshly pushed app through a temporary route."""

from __future__ import annotations

import re
from typing import Optional

import httpx
import structlog

from bluegreen_deployer.core.exceptions import (
    CourierCommandError,
    HealthCheckClientError,
    HealthCheckError,
    MapRouteError,
)
from bluegreen_deployer.events.types import PushFinishedEvent

logger = structlog.get_logger()


class HealthChecker:
    """Subscriber for :class:`PushFinishedEvent`.

    The apps domain of a foundation is derived from its API URL by replacing
    ``old_url`` with ``new_url`` (``https://api.cf.example.com`` becomes
    ``apps.example.com``). The silent deploy environment uses
    ``silent_deploy_url`` as the replacement instead.
    """

    def __init__(
        self,
        old_url: str = "api.cf",
        new_url: str = "apps",
        silent_deploy_environment: Optional[str] = None,
        silent_deploy_url: Optional[str] = None,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.old_url = old_url
        self.new_url = new_url
        self.silent_deploy_environment = silent_deploy_environment
        self.silent_deploy_url = silent_deploy_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _replacement(self, environment: str) -> str:
        if (
            self.silent_deploy_url
            and self.silent_deploy_environment
            and environment.lower() == self.silent_deploy_environment.lower()
        ):
            return self.silent_deploy_url
        return self.new_url

    def app_url(self, foundation_url: str, environment: str, app_name: str) -> tuple[str, str]:
        """Return ``(domain, base_url)`` the app answers on."""
        replacement = self._replacement(environment)
        new_foundation_url = foundation_url.replace(self.old_url, replacement, 1)
        match = re.search(f"{re.escape(replacement)}.*", new_foundation_url)
        domain = match.group(0) if match else ""
        base_url = new_foundation_url.replace(replacement, f"{app_name}.{replacement}", 1)
        return domain, base_url

    async def on_push_finished(self, event: PushFinishedEvent) -> None:
        info = event.deployment_info
        if not info.health_check_endpoint:
            return

        temp = event.temp_app_name
        domain, base_url = self.app_url(event.foundation_url, info.environment, temp)
        courier = event.courier
        logger.debug("Starting health check", app=temp, domain=domain)

        try:
            event.response.write(await courier.map_route(temp, domain, temp))
        except CourierCommandError as exc:
            raise MapRouteError(f"{temp}.{domain}", exc.output) from exc

        try:
            await self.check(base_url, info.health_check_endpoint)
        finally:
            await self._remove_temporary_route(courier, temp, domain)

        event.response.write(f"health check passed for {temp}\n")

    async def check(self, url: str, endpoint: str) -> None:
        """GET ``url/endpoint`` and require a 200."""
        target = f"{url.rstrip('/')}/{endpoint.lstrip('/')}"
        logger.debug("Checking route", url=target)
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = await client.get(target)
        except httpx.HTTPError as exc:
            raise HealthCheckClientError(exc) from exc

        if resp.status_code != 200:
            logger.error("Health check failed", url=target, status_code=resp.status_code)
            raise HealthCheckError(resp.status_code, endpoint, resp.text[:200])
        logger.info("Health check passed", url=target)

    async def _remove_temporary_route(self, courier, app_name: str, domain: str) -> None:
        try:
            await courier.unmap_route(app_name, domain, app_name)
            await courier.delete_route(domain, app_name)
        except CourierCommandError as exc:
            logger.warning("Could not remove temporary route", app=app_name, domain=domain, error=exc.output)
