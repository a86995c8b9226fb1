"""API middleware for request logging, deployment metrics, and error responses.

Every response the deployer sends is plain text, so errors raised outside a
deployment are rendered the same way as a deployment's own output.
"""

import time
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from prometheus_client import Counter, Gauge, Histogram
from starlette.exceptions import HTTPException as StarletteHTTPException

from bluegreen_deployer.bluegreen.action import status_code_for
from bluegreen_deployer.core.exceptions import DeployerError

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Path parameters of the deployment routes that are worth a log field
DEPLOYMENT_PARAMS = ("environment", "org", "space", "app")

REQUEST_COUNT = Counter(
    "bluegreen_http_requests_total",
    "HTTP requests by route template and status",
    ["method", "endpoint", "status"],
)

REQUEST_DURATION = Histogram(
    "bluegreen_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
    buckets=(0.05, 0.25, 1, 5, 15, 60, 300, 1200),
)

DEPLOYMENTS_TOTAL = Counter(
    "bluegreen_deployments_total",
    "Deployments by kind and outcome",
    ["kind", "status"],
)

DEPLOYMENTS_IN_PROGRESS = Gauge(
    "bluegreen_deployments_in_progress",
    "Deployments currently running",
    ["kind"],
)

DEPLOYMENT_DURATION = Histogram(
    "bluegreen_deployment_duration_seconds",
    "Deployment duration",
    ["kind"],
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1200),
)


class DeploymentOutcome:
    """Set by the caller of :func:`track_deployment` once the result is known."""

    def __init__(self) -> None:
        self.succeeded = False


@contextmanager
def track_deployment(kind: str) -> Iterator[DeploymentOutcome]:
    """Count a deployment as in progress, then record its outcome and duration.

    A deployment that raises is recorded as a failure.
    """
    outcome = DeploymentOutcome()
    DEPLOYMENTS_IN_PROGRESS.labels(kind=kind).inc()
    start_time = time.time()
    try:
        yield outcome
    finally:
        DEPLOYMENTS_IN_PROGRESS.labels(kind=kind).dec()
        status = "success" if outcome.succeeded else "failure"
        DEPLOYMENTS_TOTAL.labels(kind=kind, status=status).inc()
        DEPLOYMENT_DURATION.labels(kind=kind).observe(time.time() - start_time)


def _error_text(message: str) -> str:
    return message if message.endswith("\n") else f"{message}\n"


def setup_error_handling(app: FastAPI) -> None:
    """Render errors that escape a route as plain text."""

    @app.exception_handler(DeployerError)
    async def deployer_error_handler(request: Request, exc: DeployerError) -> PlainTextResponse:
        logger.warning("Deployer error outside a deployment", error=str(exc), code=exc.code)
        return PlainTextResponse(_error_text(str(exc)), status_code=status_code_for(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in error.get('loc', ()))}: {error.get('msg', '')}" for error in exc.errors()
        )
        return PlainTextResponse(_error_text(f"invalid request: {details}"), status_code=422)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        return PlainTextResponse(_error_text(str(exc.detail)), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        logger.exception("Unexpected error", exc_info=exc)
        return PlainTextResponse("an unexpected error occurred\n", status_code=500)


def setup_logging_middleware(app: FastAPI) -> None:
    """Log one line per request, correlated by request id.

    A caller-supplied ``X-Request-ID`` is kept so a deployment can be traced
    from the pipeline that triggered it.
    """

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("Request failed", duration_seconds=time.time() - start_time, exc_info=exc)
            raise

        params = request.scope.get("path_params") or {}
        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_seconds=time.time() - start_time,
            **{key: params[key] for key in DEPLOYMENT_PARAMS if key in params},
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_metrics_middleware(app: FastAPI) -> None:
    """Collect per-route request metrics."""

    @app.middleware("http")
    async def collect_metrics(request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)

        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")

        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(time.time() - start_time)
        return response
