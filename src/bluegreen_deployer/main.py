"""Main entry point for the blue/green deployer service."""

import signal
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from bluegreen_deployer import __version__
from bluegreen_deployer.api.apps import init_deployer
from bluegreen_deployer.api.apps import router as apps_router
from bluegreen_deployer.api.health import router as health_router
from bluegreen_deployer.api.middleware import (
    setup_error_handling,
    setup_logging_middleware,
    setup_metrics_middleware,
)
from bluegreen_deployer.core.config import Settings
from bluegreen_deployer.core.environments import DeployerConfig, load_config
from bluegreen_deployer.core.exceptions import ConfigurationError
from bluegreen_deployer.courier.courier import CourierCreator
from bluegreen_deployer.courier.executor import remove_stale_work_dirs
from bluegreen_deployer.deploy.artifetcher import Artifetcher
from bluegreen_deployer.deploy.error_finder import ErrorFinder
from bluegreen_deployer.deploy.prechecker import Prechecker
from bluegreen_deployer.deploy.silent import SilentDeployer
from bluegreen_deployer.deployer import Deployer
from bluegreen_deployer.events.handlers import EnvVarHandler, HealthChecker, RouteMapper
from bluegreen_deployer.events.manager import EventManager
from bluegreen_deployer.events.types import ArtifactRetrievalSuccessEvent, PushFinishedEvent
from bluegreen_deployer.utils.logging import setup_logging

logger = structlog.get_logger()

PROCESS_START = time.time()


def create_event_manager(settings: Settings) -> EventManager:
    """Event manager with the built-in subscribers registered."""
    event_manager = EventManager()

    health_checker = HealthChecker(
        old_url=settings.health_check_old_url,
        new_url=settings.health_check_new_url,
        silent_deploy_environment=settings.silent_deploy_environment,
        silent_deploy_url=settings.silent_deploy_url,
        timeout_seconds=settings.health_check_timeout_seconds,
    )
    event_manager.subscribe(ArtifactRetrievalSuccessEvent, EnvVarHandler().on_artifact_retrieved)
    event_manager.subscribe(PushFinishedEvent, health_checker.on_push_finished)
    event_manager.subscribe(PushFinishedEvent, RouteMapper().on_push_finished)
    return event_manager


def create_deployer(
    settings: Settings,
    config: DeployerConfig,
    courier_creator: Optional[CourierCreator] = None,
    event_manager: Optional[EventManager] = None,
) -> Deployer:
    """Wire a deployer from settings and the environments file."""
    courier_creator = courier_creator or CourierCreator(
        timeout_seconds=settings.cf_command_timeout_seconds,
        prefix=settings.work_dir_prefix,
    )
    silent_deployer = None
    if settings.silent_deploy_enabled:
        silent_deployer = SilentDeployer(settings.silent_deploy_environment, settings.silent_deploy_url)

    return Deployer(
        config=config,
        settings=settings,
        event_manager=event_manager or create_event_manager(settings),
        courier_creator=courier_creator,
        artifetcher=Artifetcher(
            prefix=settings.work_dir_prefix,
            max_size_bytes=settings.max_artifact_size_mb * 1024 * 1024,
            timeout_seconds=settings.artifact_timeout_seconds,
        ),
        prechecker=Prechecker(enabled=settings.precheck_foundations),
        error_finder=ErrorFinder(config.error_matchers),
        silent_deployer=silent_deployer,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting blue/green deployer", version=__version__)

    settings: Settings = app.state.settings
    config = app.state.config
    if config is None:
        config = app.state.config = load_config(settings.config_path)

    remove_stale_work_dirs(settings.work_dir_prefix, older_than=PROCESS_START)

    app.state.deployer = init_deployer(
        create_deployer(settings, config, courier_creator=app.state.courier_creator)
    )
    logger.info("Deployer initialized", environments=sorted(config.environments))

    yield

    logger.info("Shutting down blue/green deployer")


def create_app(
    settings: Settings | None = None,
    config: DeployerConfig | None = None,
    courier_creator: CourierCreator | None = None,
) -> FastAPI:
    """Create FastAPI application."""
    if settings is None:
        settings = Settings()

    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Blue/Green Deployer",
        version=__version__,
        description="Blue/green deployments across every foundation of an environment",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.config = config
    app.state.courier_creator = courier_creator

    setup_error_handling(app)
    setup_logging_middleware(app)
    setup_metrics_middleware(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(apps_router, tags=["apps"])

    if settings.metrics_enabled:
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    return app


def run(config_path: Optional[str] = None, log_level: Optional[str] = None) -> None:
    """Run the application.

    Settings and the environments file are loaded before the listener starts
    so a bad configuration exits non-zero instead of serving errors.
    """
    overrides = {}
    if config_path:
        overrides["config_path"] = config_path
    if log_level:
        overrides["log_level"] = log_level

    try:
        settings = Settings(**overrides)
        setup_logging(settings.log_level, settings.log_format)
        config = load_config(settings.config_path)
    except (ConfigurationError, ValueError) as exc:
        print(f"bluegreen-deployer: {exc}", file=sys.stderr)
        sys.exit(1)

    def handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, initiating graceful shutdown")
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_sigterm)

    config_obj = uvicorn.Config(
        create_app(settings, config),
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,  # one line per request from setup_logging_middleware
    )

    server = uvicorn.Server(config_obj)
    server.run()
    if not server.started:
        logger.error("Listener failed to start", host=settings.host, port=settings.port)
        sys.exit(1)


if __name__ == "__main__":
    run()
