"""Custom exceptions for the blue/green deployer."""

from typing import List, Optional, Sequence


class DeployerError(Exception):
    """Base exception for all deployer errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


# Configuration errors

class ConfigurationError(DeployerError):
    """Configuration error."""
    pass


class EnvironmentNotFoundError(ConfigurationError):
    """Requested environment is not configured."""

    def __init__(self, environment: str):
        super().__init__(f"environment not found: {environment}", code="environment_not_found")
        self.environment = environment


class NoFoundationsError(ConfigurationError):
    """Environment has no foundations to deploy to."""

    def __init__(self, environment: str):
        super().__init__(f"no foundations configured for environment {environment}", code="no_foundations")
        self.environment = environment


class FoundationUnavailableError(ConfigurationError):
    """A foundation did not answer the precheck."""

    def __init__(self, foundation_url: str, detail: str):
        super().__init__(
            f"deploy aborted: one or more CF foundations unavailable: {foundation_url}: {detail}",
            code="foundation_unavailable",
        )
        self.foundation_url = foundation_url


class BasicAuthError(ConfigurationError):
    """Authentication is required but no basic auth header was sent."""

    def __init__(self):
        super().__init__("basic auth header not found", code="basic_auth")


# Request errors

class RequestError(DeployerError):
    """Request could not be turned into a deployment."""
    pass


class InvalidContentTypeError(RequestError):
    def __init__(self):
        super().__init__("must be application/json or application/zip", code="content_type")


class MissingParameterError(RequestError):
    def __init__(self, missing: Sequence[str]):
        super().__init__(f"The following properties are missing: {', '.join(missing)}", code="missing_parameter")
        self.missing = list(missing)


class ManifestError(RequestError):
    def __init__(self, detail: str = ""):
        message = "base64 encoded manifest could not be decoded"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, code="manifest")


# Resource errors

class ResourceError(DeployerError):
    """Temp dir, artifact fetch or unzip failure."""
    pass


class ArtifactFetchError(ResourceError):
    pass


class UnzipError(ResourceError):
    pass


class AppPathError(ResourceError):
    """The application directory could not be prepared."""

    def __init__(self, err: Exception):
        super().__init__(f"cannot get app path: {err}", code="app_path")
        self.err = err


class EventError(DeployerError):
    """A subscriber failed while handling an event."""

    def __init__(self, event_type: str, err: Exception):
        super().__init__(f"an error occurred in the {event_type} event: {err}", code="event")
        self.event_type = event_type
        self.err = err


class InvalidEventTypeError(DeployerError):
    pass


# Courier errors

class CourierError(DeployerError):
    """Base class for errors raised by a courier."""
    pass


class CourierCommandError(CourierError):
    """A CLI command exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: Optional[int], output: str = ""):
        super().__init__(f"cf {' '.join(args)} exited with status {returncode}", code="courier_command")
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output


class CourierCreationError(CourierError):
    def __init__(self, err: Exception):
        super().__init__(f"cannot create courier: {err}", code="courier_creation")
        self.err = err


# Per-foundation action errors

class FoundationError(DeployerError):
    """Error raised by an action against one foundation."""
    pass


class LoginError(FoundationError):
    def __init__(self, foundation_url: str, output: str = ""):
        super().__init__(f"cannot login to {foundation_url}: {output}".rstrip(": "), code="login")
        self.foundation_url = foundation_url
        self.output = output


class PushError(FoundationError):
    def __init__(self):
        super().__init__("check the Cloud Foundry output above for more information", code="push")


class CloudFoundryLogsError(FoundationError):
    def __init__(self, task_err: Exception, logs_err: Exception):
        super().__init__(f"{task_err}: cannot get Cloud Foundry logs: {logs_err}", code="logs")
        self.task_err = task_err
        self.logs_err = logs_err


class MapRouteError(FoundationError):
    def __init__(self, route: str = "", output: str = ""):
        if route:
            message = f"map route failed: {route}: {output}".rstrip(": ")
        else:
            message = "map route failed: check the Cloud Foundry output above for more information"
        super().__init__(message, code="map_route")
        self.route = route
        self.output = output


class UnmapRouteError(FoundationError):
    def __init__(self, application_name: str, output: str = ""):
        super().__init__(f"failed to unmap route for {application_name}", code="unmap_route")
        self.application_name = application_name
        self.output = output


class InvalidRouteError(FoundationError):
    def __init__(self, route: str):
        super().__init__(f"route {route} is invalid: its domain is not available on this foundation", code="invalid_route")
        self.route = route


class DeleteApplicationError(FoundationError):
    def __init__(self, application_name: str, output: str = ""):
        super().__init__(f"cannot delete {application_name}: {output}".rstrip(": "), code="delete")
        self.application_name = application_name
        self.output = output


class RenameError(FoundationError):
    def __init__(self, application_name: str, output: str = ""):
        super().__init__(f"cannot rename {application_name}: {output}".rstrip(": "), code="rename")
        self.application_name = application_name
        self.output = output


class StopError(FoundationError):
    def __init__(self, application_name: str, output: str = ""):
        super().__init__(f"cannot stop {application_name}: {output}".rstrip(": "), code="stop")
        self.application_name = application_name
        self.output = output


class StartError(FoundationError):
    def __init__(self, application_name: str, output: str = ""):
        super().__init__(f"cannot start {application_name}: {output}".rstrip(": "), code="start")
        self.application_name = application_name
        self.output = output


class ExistsError(FoundationError):
    def __init__(self, application_name: str):
        super().__init__(f"application {application_name} does not exist", code="exists")
        self.application_name = application_name


class HealthCheckError(FoundationError):
    def __init__(self, status_code: int, endpoint: str, body: str = ""):
        super().__init__(
            f"health check failed for endpoint {endpoint} with status {status_code}: {body}".rstrip(": "),
            code="health_check",
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.body = body


class ActorStoppedError(FoundationError):
    """The actor task for a foundation ended before answering a command."""

    def __init__(self, foundation_url: str, err: Optional[BaseException] = None):
        reason = f": {err!r}" if err is not None else ""
        super().__init__(f"actor for {foundation_url} stopped{reason}", code="actor_stopped")
        self.foundation_url = foundation_url
        self.err = err


class HealthCheckClientError(FoundationError):
    def __init__(self, err: Exception):
        super().__init__(f"health check client error: {err}", code="health_check_client")
        self.err = err


# Aggregated phase errors

def _describe(err: Exception) -> str:
    foundation_url = getattr(err, "foundation_url", None)
    if foundation_url and foundation_url not in str(err):
        return f"{foundation_url}: {err}"
    return str(err)


def _join(errors: Sequence[Exception]) -> str:
    return ", ".join(_describe(e) for e in errors)


class AggregateError(DeployerError):
    """Errors collected across foundations for one phase."""

    kind = "deploy"

    def __init__(self, errors: Sequence[Exception]):
        self.errors: List[Exception] = list(errors)
        super().__init__(f"{self.describe()}: [{_join(self.errors)}]", code=self.__class__.__name__)

    def describe(self) -> str:
        return f"{self.kind} failed"


class LoginFailedError(AggregateError):
    """Login failed on one or more foundations."""

    def describe(self) -> str:
        return "login failed"


class ExecuteError(AggregateError):
    pass


class PushFailedError(ExecuteError):
    kind = "push"


class StopFailedError(ExecuteError):
    kind = "stop"


class StartFailedError(ExecuteError):
    kind = "start"


class DeleteFailedError(ExecuteError):
    kind = "delete"


class RollbackError(DeployerError):
    """Execute failed and the rollback ran; keeps both error lists."""

    kind = "deploy"

    def __init__(self, execute_errors: Sequence[Exception], undo_errors: Sequence[Exception]):
        self.execute_errors: List[Exception] = list(execute_errors)
        self.undo_errors: List[Exception] = list(undo_errors)
        if self.undo_errors:
            message = (
                f"{self.kind} failed: [{_join(self.execute_errors)}]: "
                f"rollback failed: [{_join(self.undo_errors)}]"
            )
        else:
            message = f"{self.kind} failed: [{_join(self.execute_errors)}]: rollback triggered"
        super().__init__(message, code=self.__class__.__name__)


class PushRollbackError(RollbackError):
    kind = "push"


class StopRollbackError(RollbackError):
    kind = "stop"


class StartRollbackError(RollbackError):
    kind = "start"


class DeleteRollbackError(RollbackError):
    kind = "delete"


class FinishError(AggregateError):
    """Post-success cleanup failed on one or more foundations."""

    def describe(self) -> str:
        return f"finish {self.kind} failed"


class FinishPushError(FinishError):
    kind = "push"


class FinishStopError(FinishError):
    kind = "stop"


class FinishStartError(FinishError):
    kind = "start"


class FinishDeleteError(FinishError):
    kind = "delete"
