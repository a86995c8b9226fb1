"""
Pytest configuration and fixtures for deployer tests.

``FakeCloud`` models the apps and routes of any number of foundations and
hands out couriers that act on it, so tests can drive the real engine and
actions without a ``cf`` binary.
"""

import io
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest

from bluegreen_deployer.core.exceptions import CourierCommandError
from bluegreen_deployer.core.models import DeploymentInfo, Environment
from bluegreen_deployer.courier.courier import Courier, CourierCreator
from bluegreen_deployer.deploy.artifetcher import Artifetcher

F1 = "https://api.cf.one.example.com"
F2 = "https://api.cf.two.example.com"


class FakeCloud:
    """In-memory foundations shared by every courier a test creates."""

    def __init__(self):
        self.apps: Dict[str, Set[str]] = defaultdict(set)
        self.stopped: Dict[str, Set[str]] = defaultdict(set)
        self.routes: Dict[str, Set[Tuple[str, str, str]]] = defaultdict(set)
        self.domains: List[str] = ["example.com", "apps.example.com"]
        self.failures: Dict[Tuple[str, str], str] = {}
        self.calls: List[Tuple[str, str, tuple]] = []
        self.couriers: List["FakeCourier"] = []

    def fail(self, foundation_url: str, operation: str, output: str = "FAILED") -> None:
        self.failures[(foundation_url, operation)] = output

    def create_courier(self) -> "FakeCourier":
        courier = FakeCourier(self)
        self.couriers.append(courier)
        return courier

    def courier_creator(self) -> CourierCreator:
        return CourierCreator(factory=self.create_courier)

    def operations(self, foundation_url: str) -> List[str]:
        return [op for url, op, _ in self.calls if url == foundation_url]

    def calls_to(self, operation: str, foundation_url: Optional[str] = None) -> List[tuple]:
        return [
            args for url, op, args in self.calls
            if op == operation and (foundation_url is None or url == foundation_url)
        ]


class FakeCourier(Courier):
    def __init__(self, cloud: FakeCloud):
        self.cloud = cloud
        self.foundation_url = ""
        self.cleaned = 0

    def _call(self, operation: str, *args) -> None:
        self.cloud.calls.append((self.foundation_url, operation, args))
        output = self.cloud.failures.get((self.foundation_url, operation))
        if output is not None:
            raise CourierCommandError([operation, *map(str, args)], 1, output)

    @property
    def apps(self) -> Set[str]:
        return self.cloud.apps[self.foundation_url]

    async def login(self, foundation_url, username, password, org, space, skip_ssl):
        self.foundation_url = foundation_url
        self._call("login", username, org, space, skip_ssl)
        return f"logged in to {foundation_url}\n"

    async def push(self, app_name, app_path, instances):
        self._call("push", app_name, app_path, instances)
        self.apps.add(app_name)
        return f"pushed {app_name}\n"

    async def rename(self, old_name, new_name):
        self._call("rename", old_name, new_name)
        if old_name not in self.apps:
            raise CourierCommandError(["rename", old_name, new_name], 1, f"App {old_name} not found")
        self.apps.discard(old_name)
        self.apps.add(new_name)
        return f"renamed {old_name} to {new_name}\n"

    async def map_route(self, app_name, domain, hostname):
        self._call("map_route", app_name, domain, hostname)
        self.cloud.routes[self.foundation_url].add((app_name, domain, hostname))
        return f"mapped {hostname}.{domain}\n"

    async def map_route_with_path(self, app_name, domain, hostname, path):
        self._call("map_route_with_path", app_name, domain, hostname, path)
        self.cloud.routes[self.foundation_url].add((app_name, domain, f"{hostname}/{path}"))
        return f"mapped {hostname}.{domain}/{path}\n"

    async def unmap_route(self, app_name, domain, hostname):
        self._call("unmap_route", app_name, domain, hostname)
        self.cloud.routes[self.foundation_url].discard((app_name, domain, hostname))
        return f"unmapped {hostname}.{domain}\n"

    async def delete_route(self, domain, hostname):
        self._call("delete_route", domain, hostname)
        return f"deleted route {hostname}.{domain}\n"

    async def delete(self, app_name):
        self._call("delete", app_name)
        self.apps.discard(app_name)
        return f"deleted {app_name}\n"

    async def start(self, app_name):
        self._call("start", app_name)
        self.cloud.stopped[self.foundation_url].discard(app_name)
        return f"started {app_name}\n"

    async def stop(self, app_name):
        self._call("stop", app_name)
        self.cloud.stopped[self.foundation_url].add(app_name)
        return f"stopped {app_name}\n"

    async def exists(self, app_name):
        self.cloud.calls.append((self.foundation_url, "exists", (app_name,)))
        return app_name in self.apps

    async def logs(self, app_name):
        self._call("logs", app_name)
        return f"recent logs for {app_name}\n"

    async def domains(self):
        self._call("domains")
        return list(self.cloud.domains)

    async def cups(self, service_name, body):
        self._call("cups", service_name, body)
        return ""

    async def uups(self, service_name, body):
        self._call("uups", service_name, body)
        return ""

    def clean_up(self):
        self.cleaned += 1
        self.cloud.calls.append((self.foundation_url, "clean_up", ()))


class StubArtifetcher(Artifetcher):
    """Creates an empty app directory instead of downloading anything."""

    def __init__(self, root: Path):
        super().__init__()
        self.root = root
        self.fetched: List[str] = []

    async def fetch(self, url: str, manifest: str = "") -> str:
        self.fetched.append(url)
        app_path = self.root / f"artifact-{len(self.fetched)}"
        app_path.mkdir(parents=True)
        if manifest:
            (app_path / "manifest.yml").write_text(manifest)
        return str(app_path)


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def artifetcher(tmp_path: Path) -> StubArtifetcher:
    return StubArtifetcher(tmp_path / "artifacts")


@pytest.fixture
def environment() -> Environment:
    return Environment(
        name="Test",
        domain="test.example.com",
        foundations=[F1, F2],
        instances=1,
        rollback_enabled=True,
    )


@pytest.fixture
def deployment_info() -> DeploymentInfo:
    return DeploymentInfo(
        org="org",
        space="space",
        app_name="web",
        username="user",
        password="secret",
        environment="Test",
        uuid="abc123",
        artifact_url="https://artifacts.example.com/web.zip",
        domain="test.example.com",
        instances=1,
    )


@pytest.fixture
def response() -> io.StringIO:
    return io.StringIO()
