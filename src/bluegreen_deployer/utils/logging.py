"""Structured logging for the deployer."""

import logging
import re
import sys
from typing import Optional

import structlog
from structlog.contextvars import bind_contextvars

from bluegreen_deployer.core.config import normalize_log_level

SENSITIVE_KEYS = {
    "password",
    "cf_password",
    "secret",
    "token",
    "authorization",
    "auth",
}

# Artifact and foundation URLs may carry basic auth credentials
_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s:]+:[^/@\s]+@")

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "s3transfer")


def _redact_sensitive(_, __, event_dict: dict) -> dict:
    """Redact sensitive fields and credentials embedded in URLs."""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "[REDACTED]"
        elif isinstance(value, str) and "@" in value:
            event_dict[key] = redact_url_credentials(value)
    return event_dict


def redact_url_credentials(text: str) -> str:
    """Replace ``user:password@`` in any URL found in ``text``."""
    return _URL_CREDENTIALS.sub(r"\g<scheme>[REDACTED]@", text)


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging.

    ``log_level`` accepts the service's own names (NOTI, WARN, CRIT) as well
    as the standard library ones. Below DEBUG the HTTP and AWS client
    libraries only log warnings.
    """
    level = getattr(logging, normalize_log_level(log_level))

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_sensitive,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_deployment_context(
    deployment_uuid: Optional[str] = None,
    environment: Optional[str] = None,
    app_name: Optional[str] = None,
    kind: Optional[str] = None,
) -> None:
    """Bind the fields that tie every log line to one deployment."""
    fields = {
        "deployment_uuid": deployment_uuid,
        "environment": environment,
        "app_name": app_name,
        "deployment_kind": kind,
    }
    bind_contextvars(**{key: value for key, value in fields.items() if value})
