"""Built-in actions: push, stop, start and delete."""

from .delete import DeleteManager, Deleter
from .push import PushManager, Pusher
from .start import StartManager, Starter
from .stop import StopManager, Stopper

__all__ = [
    "Pusher",
    "PushManager",
    "Stopper",
    "StopManager",
    "Starter",
    "StartManager",
    "Deleter",
    "DeleteManager",
]
