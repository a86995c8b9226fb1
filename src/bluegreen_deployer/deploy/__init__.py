"""Artifact handling and deployment helpers."""

from .artifetcher import Artifetcher
from .error_finder import ErrorFinder
from .prechecker import Prechecker
from .silent import SilentDeployer

__all__ = ["Artifetcher", "ErrorFinder", "Prechecker", "SilentDeployer"]
