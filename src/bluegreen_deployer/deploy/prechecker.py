"""Checks that every foundation answers before a deployment starts."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from bluegreen_deployer.core.exceptions import FoundationUnavailableError, NoFoundationsError
from bluegreen_deployer.core.models import Environment

logger = structlog.get_logger()


class Prechecker:
    def __init__(
        self,
        enabled: bool = False,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def assert_all_foundations_up(self, environment: Environment) -> None:
        """Raise unless the environment has foundations and, when enabled, all answer ``/v2/info``."""
        if not environment.foundations:
            raise NoFoundationsError(environment.name)
        if not self.enabled:
            return

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            verify=not environment.skip_ssl,
            transport=self._transport,
        ) as client:
            for foundation_url in environment.foundations:
                try:
                    resp = await client.get(f"{foundation_url.rstrip('/')}/v2/info")
                except httpx.HTTPError as exc:
                    raise FoundationUnavailableError(foundation_url, str(exc)) from exc
                if resp.status_code != 200:
                    logger.error("Foundation unavailable", foundation_url=foundation_url, status_code=resp.status_code)
                    raise FoundationUnavailableError(foundation_url, f"status {resp.status_code}")
        logger.debug("All foundations up", environment=environment.name)
