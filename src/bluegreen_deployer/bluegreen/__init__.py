"""Blue/green fan-out engine: actions, actors and the lifecycle driver."""

from .action import Action, ActionCreator, status_code_for
from .actor import Actor
from .engine import BlueGreener

__all__ = ["Action", "ActionCreator", "Actor", "BlueGreener", "status_code_for"]
