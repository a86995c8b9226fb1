"""Deployment endpoints: push, stop, start and delete an app."""

from __future__ import annotations

import io
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import ValidationError

from bluegreen_deployer.api.middleware import track_deployment
from bluegreen_deployer.bluegreen.action import status_code_for
from bluegreen_deployer.core.exceptions import InvalidContentTypeError, RequestError
from bluegreen_deployer.core.models import ContentType, DeploymentKind, DeployResponse, PushRequestBody
from bluegreen_deployer.deployer import Deployer

router = APIRouter()
logger = structlog.get_logger()

basic_auth = HTTPBasic(auto_error=False)

_deployer: Deployer | None = None


def init_deployer(deployer: Deployer) -> Deployer:
    global _deployer
    _deployer = deployer
    return _deployer


def get_deployer() -> Deployer:
    if _deployer is None:
        raise RuntimeError("Deployer not initialized")
    return _deployer


def _content_type(request: Request) -> ContentType:
    media_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if media_type == "application/json":
        return ContentType.JSON
    if media_type == "application/zip":
        return ContentType.ZIP
    raise InvalidContentTypeError()


def _credentials(credentials: Optional[HTTPBasicCredentials]) -> tuple[Optional[str], Optional[str]]:
    if credentials is None:
        return None, None
    return credentials.username, credentials.password


async def _run(
    kind: DeploymentKind,
    environment: str,
    org: str,
    space: str,
    app: str,
    credentials: Optional[HTTPBasicCredentials],
    **kwargs,
) -> PlainTextResponse:
    deployer = get_deployer()
    username, password = _credentials(credentials)
    output = io.StringIO()

    with track_deployment(kind.value) as outcome:
        result = await deployer.deploy(
            kind,
            environment,
            org,
            space,
            app,
            output,
            username=username,
            password=password,
            **kwargs,
        )
        outcome.succeeded = result.succeeded

    return _text_response(result, output)


def _text_response(result: DeployResponse, output: io.StringIO) -> PlainTextResponse:
    return PlainTextResponse(output.getvalue(), status_code=result.status_code)


def _rejected(error: Exception) -> PlainTextResponse:
    logger.warning("Request rejected", error=str(error))
    return PlainTextResponse(f"{error}\n", status_code=status_code_for(error))


@router.post("/v1/apps/{environment}/{org}/{space}/{app}")
async def push_app(
    environment: str,
    org: str,
    space: str,
    app: str,
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
) -> PlainTextResponse:
    """Blue/green push of ``app`` to every foundation of ``environment``."""
    try:
        content_type = _content_type(request)
    except InvalidContentTypeError as exc:
        return _rejected(exc)

    body = await request.body()
    push_request: Optional[PushRequestBody] = None
    if content_type == ContentType.JSON:
        try:
            push_request = PushRequestBody.model_validate_json(body or b"{}")
        except ValidationError as exc:
            return _rejected(RequestError(f"invalid request body: {exc.errors()[0]['msg']}", code="request_body"))

    return await _run(
        DeploymentKind.PUSH,
        environment,
        org,
        space,
        app,
        credentials,
        content_type=content_type,
        body=body if content_type == ContentType.ZIP else b"",
        request=push_request,
    )


@router.put("/v2/apps/{environment}/{org}/{space}/{app}/stop")
async def stop_app(
    environment: str,
    org: str,
    space: str,
    app: str,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
) -> PlainTextResponse:
    return await _run(DeploymentKind.STOP, environment, org, space, app, credentials)


@router.put("/v2/apps/{environment}/{org}/{space}/{app}/start")
async def start_app(
    environment: str,
    org: str,
    space: str,
    app: str,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
) -> PlainTextResponse:
    return await _run(DeploymentKind.START, environment, org, space, app, credentials)


@router.delete("/v2/apps/{environment}/{org}/{space}/{app}")
async def delete_app(
    environment: str,
    org: str,
    space: str,
    app: str,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
) -> PlainTextResponse:
    return await _run(DeploymentKind.DELETE, environment, org, space, app, credentials)
