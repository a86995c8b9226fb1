"""Tests for the event manager and the built-in subscribers."""

import io

import httpx
import pytest
import yaml

from bluegreen_deployer.core.exceptions import (
    EventError,
    HealthCheckClientError,
    HealthCheckError,
    InvalidEventTypeError,
    InvalidRouteError,
    MapRouteError,
    PushError,
)
from bluegreen_deployer.events.handlers import EnvVarHandler, HealthChecker, RouteMapper
from bluegreen_deployer.events.manager import EventManager
from bluegreen_deployer.events.types import (
    ArtifactRetrievalSuccessEvent,
    DeployStartedEvent,
    PushFinishedEvent,
    PushStartedEvent,
)

from conftest import F1


def started(deployment_info, environment):
    return DeployStartedEvent(deployment_info, environment, io.StringIO())


async def logged_in_courier(cloud):
    courier = cloud.create_courier()
    await courier.login(F1, "user", "secret", "org", "space", False)
    return courier


def push_finished(deployment_info, environment, courier, manifest="", app_path=""):
    return PushFinishedEvent(
        deployment_info=deployment_info,
        environment=environment,
        response=io.StringIO(),
        foundation_url=F1,
        courier=courier,
        temp_app_name="web-abc123",
        app_path=app_path,
        manifest=manifest,
    )


class TestEventManager:

    @pytest.mark.asyncio
    async def test_handlers_run_in_registration_order(self, deployment_info, environment):
        manager = EventManager()
        calls = []

        async def second(event):
            calls.append("second")

        manager.subscribe(DeployStartedEvent, lambda event: calls.append("first"))
        manager.subscribe(DeployStartedEvent, second)
        await manager.emit(started(deployment_info, environment))

        assert calls == ["first", "second"]

    @pytest.mark.asyncio
    async def test_dispatch_is_by_exact_type(self, deployment_info, environment):
        manager = EventManager()
        calls = []
        manager.subscribe(PushStartedEvent, calls.append)

        await manager.emit(started(deployment_info, environment))

        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_failure_is_wrapped(self, deployment_info, environment):
        manager = EventManager()
        later = []

        def boom(event):
            raise RuntimeError("boom")

        manager.subscribe(DeployStartedEvent, boom)
        manager.subscribe(DeployStartedEvent, later.append)

        with pytest.raises(EventError) as exc_info:
            await manager.emit(started(deployment_info, environment))

        assert exc_info.value.event_type == "DeployStartedEvent"
        assert isinstance(exc_info.value.err, RuntimeError)
        assert later == []

    @pytest.mark.asyncio
    async def test_deployer_errors_propagate_unwrapped(self, deployment_info, environment):
        manager = EventManager()

        async def fail(event):
            raise PushError()

        manager.subscribe(DeployStartedEvent, fail)

        with pytest.raises(PushError):
            await manager.emit(started(deployment_info, environment))

    def test_subscribe_validates_arguments(self):
        manager = EventManager()

        with pytest.raises(InvalidEventTypeError):
            manager.subscribe(str, lambda event: None)
        with pytest.raises(InvalidEventTypeError):
            manager.subscribe(DeployStartedEvent, None)

    @pytest.mark.asyncio
    async def test_emit_rejects_non_events(self):
        with pytest.raises(InvalidEventTypeError):
            await EventManager().emit("not an event")

    def test_unsubscribe(self):
        manager = EventManager()
        handler = lambda event: None  # noqa: E731
        manager.subscribe(DeployStartedEvent, handler)

        assert manager.handler_count(DeployStartedEvent) == 1
        assert manager.unsubscribe(DeployStartedEvent, handler)
        assert not manager.unsubscribe(DeployStartedEvent, handler)
        assert manager.handler_count(DeployStartedEvent) == 0


class TestHealthChecker:

    def test_app_url_from_foundation_url(self):
        checker = HealthChecker()

        domain, base_url = checker.app_url(F1, "Test", "web-abc123")

        assert domain == "apps.one.example.com"
        assert base_url == "https://web-abc123.apps.one.example.com"

    def test_silent_deploy_environment_uses_its_own_replacement(self):
        checker = HealthChecker(silent_deploy_environment="Silent", silent_deploy_url="silent-apps")

        domain, base_url = checker.app_url(F1, "Silent", "web-abc123")

        assert domain == "silent-apps.one.example.com"
        assert base_url == "https://web-abc123.silent-apps.one.example.com"

    def test_silent_deploy_environment_matches_any_case(self):
        checker = HealthChecker(silent_deploy_environment="Silent", silent_deploy_url="silent-apps")

        domain, _ = checker.app_url(F1, "SILENT", "web-abc123")

        assert domain == "silent-apps.one.example.com"
        assert checker.app_url(F1, "Test", "web-abc123")[0] == "apps.one.example.com"

    @pytest.mark.asyncio
    async def test_skips_without_endpoint(self, cloud, deployment_info, environment):
        courier = await logged_in_courier(cloud)

        await HealthChecker().on_push_finished(push_finished(deployment_info, environment, courier))

        assert cloud.calls_to("map_route") == []

    @pytest.mark.asyncio
    async def test_passing_check_maps_then_removes_temporary_route(self, cloud, deployment_info, environment):
        requests = []

        def handler(request):
            requests.append(str(request.url))
            return httpx.Response(200, text="ok")

        checker = HealthChecker(transport=httpx.MockTransport(handler))
        deployment_info.health_check_endpoint = "/health"
        courier = await logged_in_courier(cloud)
        event = push_finished(deployment_info, environment, courier)

        await checker.on_push_finished(event)

        assert requests == ["https://web-abc123.apps.one.example.com/health"]
        assert cloud.calls_to("map_route") == [("web-abc123", "apps.one.example.com", "web-abc123")]
        assert cloud.calls_to("unmap_route") == [("web-abc123", "apps.one.example.com", "web-abc123")]
        assert cloud.calls_to("delete_route") == [("apps.one.example.com", "web-abc123")]
        assert "health check passed" in event.response.getvalue()

    @pytest.mark.asyncio
    async def test_non_200_fails_and_still_removes_route(self, cloud, deployment_info, environment):
        checker = HealthChecker(transport=httpx.MockTransport(lambda request: httpx.Response(503, text="down")))
        deployment_info.health_check_endpoint = "health"
        courier = await logged_in_courier(cloud)

        with pytest.raises(HealthCheckError) as exc_info:
            await checker.on_push_finished(push_finished(deployment_info, environment, courier))

        assert exc_info.value.status_code == 503
        assert len(cloud.calls_to("delete_route")) == 1

    @pytest.mark.asyncio
    async def test_transport_failure(self, cloud, deployment_info, environment):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        checker = HealthChecker(transport=httpx.MockTransport(refuse))
        deployment_info.health_check_endpoint = "/health"
        courier = await logged_in_courier(cloud)

        with pytest.raises(HealthCheckClientError):
            await checker.on_push_finished(push_finished(deployment_info, environment, courier))

    @pytest.mark.asyncio
    async def test_map_route_failure(self, cloud, deployment_info, environment):
        cloud.fail(F1, "map_route", "route taken")
        deployment_info.health_check_endpoint = "/health"
        courier = await logged_in_courier(cloud)

        with pytest.raises(MapRouteError):
            await HealthChecker().on_push_finished(push_finished(deployment_info, environment, courier))

    @pytest.mark.asyncio
    async def test_route_cleanup_failure_is_not_fatal(self, cloud, deployment_info, environment):
        cloud.fail(F1, "unmap_route")
        checker = HealthChecker(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        deployment_info.health_check_endpoint = "/health"
        courier = await logged_in_courier(cloud)

        await checker.on_push_finished(push_finished(deployment_info, environment, courier))


MANIFEST_WITH_ROUTES = """\
applications:
- name: web
  custom-routes:
  - route: apps.example.com
  - route: api.example.com
  - route: docs.apps.example.com/v1
"""


class TestRouteMapper:

    @pytest.mark.asyncio
    async def test_maps_each_route_form(self, cloud, deployment_info, environment):
        courier = await logged_in_courier(cloud)

        await RouteMapper().on_push_finished(
            push_finished(deployment_info, environment, courier, manifest=MANIFEST_WITH_ROUTES)
        )

        assert cloud.calls_to("map_route") == [
            ("web-abc123", "apps.example.com", "web"),
            ("web-abc123", "example.com", "api"),
        ]
        assert cloud.calls_to("map_route_with_path") == [("web-abc123", "apps.example.com", "docs", "v1")]

    @pytest.mark.asyncio
    async def test_reads_manifest_from_app_path(self, cloud, deployment_info, environment, tmp_path):
        (tmp_path / "manifest.yml").write_text(MANIFEST_WITH_ROUTES)
        courier = await logged_in_courier(cloud)

        await RouteMapper().on_push_finished(
            push_finished(deployment_info, environment, courier, app_path=str(tmp_path))
        )

        assert len(cloud.calls_to("map_route")) == 2

    @pytest.mark.asyncio
    async def test_no_routes_does_not_query_domains(self, cloud, deployment_info, environment):
        courier = await logged_in_courier(cloud)

        await RouteMapper().on_push_finished(
            push_finished(deployment_info, environment, courier, manifest="applications:\n- name: web\n")
        )

        assert cloud.calls_to("domains") == []

    @pytest.mark.asyncio
    async def test_unknown_domain_is_invalid(self, cloud, deployment_info, environment):
        courier = await logged_in_courier(cloud)
        manifest = "applications:\n- name: web\n  custom-routes:\n  - route: web.elsewhere.org\n"

        with pytest.raises(InvalidRouteError):
            await RouteMapper().on_push_finished(push_finished(deployment_info, environment, courier, manifest=manifest))

    @pytest.mark.asyncio
    async def test_courier_failure_becomes_map_route_error(self, cloud, deployment_info, environment):
        cloud.fail(F1, "map_route", "quota exceeded")
        courier = await logged_in_courier(cloud)

        with pytest.raises(MapRouteError) as exc_info:
            await RouteMapper().on_push_finished(
                push_finished(deployment_info, environment, courier, manifest=MANIFEST_WITH_ROUTES)
            )

        assert "quota exceeded" in str(exc_info.value)


class TestEnvVarHandler:

    def _event(self, deployment_info, environment, app_path, manifest, env_vars):
        return ArtifactRetrievalSuccessEvent(
            deployment_info=deployment_info,
            environment=environment,
            response=io.StringIO(),
            manifest=manifest,
            artifact_url=deployment_info.artifact_url,
            app_path=str(app_path),
            environment_variables=env_vars,
        )

    def test_merges_variables_into_first_application(self, deployment_info, environment, tmp_path):
        manifest = "applications:\n- name: web\n  path: ./build\n  env:\n    EXISTING: keep\n"

        EnvVarHandler().on_artifact_retrieved(
            self._event(deployment_info, environment, tmp_path, manifest, {"FEATURE": "on"})
        )

        data = yaml.safe_load((tmp_path / "manifest.yml").read_text())
        application = data["applications"][0]
        assert application["env"] == {"EXISTING": "keep", "FEATURE": "on"}
        assert "path" not in application

    def test_creates_application_when_manifest_is_empty(self, deployment_info, environment, tmp_path):
        EnvVarHandler().on_artifact_retrieved(
            self._event(deployment_info, environment, tmp_path, "", {"FEATURE": "on"})
        )

        data = yaml.safe_load((tmp_path / "manifest.yml").read_text())
        assert data["applications"] == [{"name": "web", "env": {"FEATURE": "on"}}]

    def test_no_variables_leaves_manifest_alone(self, deployment_info, environment, tmp_path):
        EnvVarHandler().on_artifact_retrieved(self._event(deployment_info, environment, tmp_path, "", {}))

        assert not (tmp_path / "manifest.yml").exists()
