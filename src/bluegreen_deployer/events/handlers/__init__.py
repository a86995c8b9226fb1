"""Subscribers wired to the deployment lifecycle at startup."""

from .envvar import EnvVarHandler
from .healthchecker import HealthChecker
from .routemapper import RouteMapper

__all__ = ["EnvVarHandler", "HealthChecker", "RouteMapper"]
