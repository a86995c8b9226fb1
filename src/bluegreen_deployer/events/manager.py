"""Typed publish/subscribe for deployment lifecycle hooks."""

from __future__ import annotations

import inspect
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Type

import structlog

from bluegreen_deployer.core.exceptions import DeployerError, EventError, InvalidEventTypeError
from bluegreen_deployer.events.types import DeploymentEvent

logger = structlog.get_logger()

Handler = Callable[[Any], Any]  # sync callable or coroutine function


class EventManager:
    """Dispatches events to the handlers bound to their exact type.

    Handlers run in registration order and may be plain callables or
    coroutine functions. The first handler that raises stops the dispatch
    and its exception propagates to the publisher, wrapped in
    :class:`EventError` unless it already is a deployer error. A subscriber
    can therefore fail the phase that emitted the event. Subscription is
    guarded by a lock so the manager can be shared by every actor of a
    request.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: Dict[Type[DeploymentEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DeploymentEvent], handler: Handler) -> None:
        """Register *handler* for *event_type*."""
        if handler is None or not callable(handler):
            raise InvalidEventTypeError("handler must be callable", code="invalid_handler")
        if not (isinstance(event_type, type) and issubclass(event_type, DeploymentEvent)):
            raise InvalidEventTypeError(f"{event_type!r} is not an event type", code="invalid_event_type")
        with self._lock:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[DeploymentEvent], handler: Handler) -> bool:
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
                return True
            except ValueError:
                return False

    def handler_count(self, event_type: Type[DeploymentEvent]) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, []))

    async def emit(self, event: DeploymentEvent) -> None:
        """Publish *event* to every handler bound to its type."""
        if not isinstance(event, DeploymentEvent):
            raise InvalidEventTypeError(f"cannot emit {type(event).__name__}", code="invalid_event_type")

        with self._lock:
            handlers = list(self._handlers.get(type(event), []))

        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except DeployerError:
                raise
            except Exception as exc:
                logger.error("Event handler failed", event_type=event.name, error=str(exc))
                raise EventError(event.name, exc) from exc
        if handlers:
            logger.debug("Event emitted", event_type=event.name, handlers=len(handlers))
