"""Maps the extra routes listed in a manifest to the pushed app."""

from __future__ import annotations

from typing import List

import structlog

from bluegreen_deployer.core.exceptions import CourierCommandError, InvalidRouteError, MapRouteError
from bluegreen_deployer.deploy.manifest import custom_routes, read_manifest_file
from bluegreen_deployer.events.types import PushFinishedEvent

logger = structlog.get_logger()


class RouteMapper:
    """Subscriber for :class:`PushFinishedEvent`.

    Each ``custom-routes`` entry may be a bare domain, ``host.domain`` or
    ``host.domain/path``. The domain must be one the foundation serves.
    """

    async def on_push_finished(self, event: PushFinishedEvent) -> None:
        manifest = event.manifest or (read_manifest_file(event.app_path) if event.app_path else "")
        routes = custom_routes(manifest)
        if not routes:
            logger.debug("No routes to map")
            return

        courier = event.courier
        domains = await courier.domains()
        app_name = event.deployment_info.app_name
        logger.info("Mapping routes", count=len(routes), app=event.temp_app_name)

        for route in routes:
            await self._map(event, route, domains, app_name)

    async def _map(self, event: PushFinishedEvent, route: str, domains: List[str], app_name: str) -> None:
        courier = event.courier
        temp = event.temp_app_name
        host, _, rest = route.partition(".")
        domain, _, path = rest.partition("/")

        try:
            if route in domains:
                output = await courier.map_route(temp, route, app_name)
            elif rest in domains:
                output = await courier.map_route(temp, rest, host)
            elif path and domain in domains:
                output = await courier.map_route_with_path(temp, domain, host, path)
            else:
                raise InvalidRouteError(route)
        except CourierCommandError as exc:
            raise MapRouteError(route, exc.output) from exc

        event.response.write(output)
        logger.info("Mapped route", route=route, app=temp)
