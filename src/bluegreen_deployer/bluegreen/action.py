"""Lifecycle contract for one foundation, and the per-request factory of actions."""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from typing import List

from bluegreen_deployer.core.exceptions import (
    BasicAuthError,
    InvalidContentTypeError,
    LoginFailedError,
)
from bluegreen_deployer.core.models import DeployResponse, Environment


class Action:
    """One operation against one foundation.

    The engine calls the phases in order from a single actor, so an action
    never sees two calls at once. Every phase defaults to a no-op.
    """

    async def initially(self) -> None:
        """Prepare the foundation, usually by logging in."""

    async def execute(self) -> None:
        """Do the primary work."""

    async def verify(self) -> None:
        """Check the result of :meth:`execute`; raising fails the execute phase."""

    async def success(self) -> None:
        """Promote the new state once every foundation executed cleanly."""

    async def undo(self) -> None:
        """Reverse :meth:`execute` because a peer foundation failed."""

    async def finally_(self) -> None:
        """Release resources; always the last call."""

    async def app_exists(self) -> bool:
        """Whether the target application is already on this foundation."""
        return False


class ActionCreator(ABC):
    """Request-scoped factory that builds actions and wraps phase errors."""

    async def setup(self, environment: Environment) -> None:
        """One-time preparation before any foundation is touched."""

    async def on_start(self) -> None:
        """Announce the deployment."""

    @abstractmethod
    def create(self, environment: Environment, response: io.StringIO, foundation_url: str) -> Action:
        """Build a fresh action bound to ``foundation_url`` and its own courier."""

    def initially_error(self, errors: List[Exception]) -> Exception:
        return LoginFailedError(errors)

    @abstractmethod
    def execute_error(self, errors: List[Exception]) -> Exception: ...

    @abstractmethod
    def undo_error(self, execute_errors: List[Exception], undo_errors: List[Exception]) -> Exception: ...

    @abstractmethod
    def success_error(self, errors: List[Exception]) -> Exception: ...

    def rollback_allowed(self, execute_errors: List[Exception]) -> bool:
        """Let the operation veto a rollback the environment would allow."""
        return True

    async def on_finish(self, environment: Environment, response: io.StringIO, error: Exception | None) -> DeployResponse:
        """Turn the engine's outcome into a status code."""
        if error is None:
            return DeployResponse(status_code=200)
        return DeployResponse(status_code=status_code_for(error), error=error)

    def clean_up(self) -> None:
        """Release anything :meth:`setup` acquired."""


def status_code_for(error: Exception) -> int:
    """Map a deployment failure onto the HTTP status returned to the caller."""
    if isinstance(error, (LoginFailedError, InvalidContentTypeError)):
        return 400
    if isinstance(error, BasicAuthError):
        return 401
    return 500
