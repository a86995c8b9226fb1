"""API module for the blue/green deployer."""

from .apps import router as apps_router
from .health import router as health_router

__all__ = [
    "apps_router",
    "health_router",
]
