"""Courier: the per-foundation client every action talks through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import structlog

from bluegreen_deployer.core.exceptions import CourierCommandError, CourierCreationError
from bluegreen_deployer.courier.executor import DEFAULT_PREFIX, Executor

logger = structlog.get_logger()


class Courier(ABC):
    """Abstract per-foundation client.

    Commands return the CLI output on success and raise
    :class:`CourierCommandError` (carrying the output) on failure. One
    instance serves exactly one foundation for one request.
    """

    @abstractmethod
    async def login(self, foundation_url: str, username: str, password: str, org: str, space: str, skip_ssl: bool) -> str: ...

    @abstractmethod
    async def push(self, app_name: str, app_path: str, instances: int) -> str: ...

    @abstractmethod
    async def rename(self, old_name: str, new_name: str) -> str: ...

    @abstractmethod
    async def map_route(self, app_name: str, domain: str, hostname: str) -> str: ...

    @abstractmethod
    async def map_route_with_path(self, app_name: str, domain: str, hostname: str, path: str) -> str: ...

    @abstractmethod
    async def unmap_route(self, app_name: str, domain: str, hostname: str) -> str: ...

    @abstractmethod
    async def delete_route(self, domain: str, hostname: str) -> str: ...

    @abstractmethod
    async def delete(self, app_name: str) -> str: ...

    @abstractmethod
    async def start(self, app_name: str) -> str: ...

    @abstractmethod
    async def stop(self, app_name: str) -> str: ...

    @abstractmethod
    async def exists(self, app_name: str) -> bool: ...

    @abstractmethod
    async def logs(self, app_name: str) -> str: ...

    @abstractmethod
    async def domains(self) -> List[str]: ...

    @abstractmethod
    async def cups(self, service_name: str, body: str) -> str: ...

    @abstractmethod
    async def uups(self, service_name: str, body: str) -> str: ...

    @abstractmethod
    def clean_up(self) -> None:
        """Release the working directory and credentials acquired by login."""


class CloudFoundryCourier(Courier):
    """Courier backed by the ``cf`` CLI."""

    def __init__(self, executor: Executor):
        self.executor = executor

    async def login(self, foundation_url, username, password, org, space, skip_ssl):
        args = ["login", "-a", foundation_url, "-u", username, "-p", password, "-o", org, "-s", space]
        if skip_ssl:
            args.append("--skip-ssl-validation")
        return await self.executor.execute(*args)

    async def push(self, app_name, app_path, instances):
        return await self.executor.execute_in_directory(app_path, "push", app_name, "-i", str(instances))

    async def rename(self, old_name, new_name):
        return await self.executor.execute("rename", old_name, new_name)

    async def map_route(self, app_name, domain, hostname):
        return await self.executor.execute("map-route", app_name, domain, "-n", hostname)

    async def map_route_with_path(self, app_name, domain, hostname, path):
        return await self.executor.execute("map-route", app_name, domain, "-n", hostname, "--path", path)

    async def unmap_route(self, app_name, domain, hostname):
        return await self.executor.execute("unmap-route", app_name, domain, "-n", hostname)

    async def delete_route(self, domain, hostname):
        return await self.executor.execute("delete-route", domain, "-n", hostname, "-f")

    async def delete(self, app_name):
        return await self.executor.execute("delete", app_name, "-f")

    async def start(self, app_name):
        return await self.executor.execute("start", app_name)

    async def stop(self, app_name):
        return await self.executor.execute("stop", app_name)

    async def exists(self, app_name):
        try:
            await self.executor.execute("app", app_name)
        except CourierCommandError:
            return False
        return True

    async def logs(self, app_name):
        return await self.executor.execute("logs", app_name, "--recent")

    async def domains(self):
        output = await self.executor.execute("domains")
        return parse_domains(output)

    async def cups(self, service_name, body):
        return await self.executor.execute("cups", service_name, "-p", body)

    async def uups(self, service_name, body):
        return await self.executor.execute("uups", service_name, "-p", body)

    def clean_up(self):
        self.executor.clean_up()


def parse_domains(output: str) -> List[str]:
    """Extract domain names from ``cf domains`` output.

    The table starts after the ``name`` header row; the first column of each
    following row is the domain.
    """
    domains: List[str] = []
    in_table = False
    for line in output.splitlines():
        columns = line.split()
        if not columns:
            continue
        if columns[0] == "name":
            in_table = True
            continue
        if in_table:
            domains.append(columns[0])
    return domains


class CourierCreator:
    """Builds a fresh courier, with its own executor, for every foundation."""

    def __init__(
        self,
        timeout_seconds: float = 600.0,
        prefix: str = DEFAULT_PREFIX,
        factory: Optional[Callable[[], Courier]] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.prefix = prefix
        self._factory = factory

    def create_courier(self) -> Courier:
        if self._factory is not None:
            return self._factory()
        try:
            executor = Executor(timeout_seconds=self.timeout_seconds, prefix=self.prefix)
        except OSError as exc:
            raise CourierCreationError(exc) from exc
        return CloudFoundryCourier(executor)
