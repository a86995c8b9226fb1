"""Serializes commands for one (action, foundation) pair."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from bluegreen_deployer.bluegreen.action import Action
from bluegreen_deployer.core.exceptions import ActorStoppedError

logger = structlog.get_logger()

Command = Callable[[Action, str], Awaitable[None]]

_CLOSED = object()


class Actor:
    """Runs commands against one action in a single asyncio task.

    Both queues hold one item, so a sender must read the reply to a command
    before it can send the next one. A command that raises produces the
    exception as its reply; a command that returns produces ``None``.
    Sending ``None`` closes the actor.

    If a command raises something that is not an ``Exception`` (a
    cancellation, for instance) the actor answers with an
    ``ActorStoppedError`` and its task ends. Every later command is
    answered with an ``ActorStoppedError`` without being run.
    """

    def __init__(self, action: Action, foundation_url: str):
        self.action = action
        self.foundation_url = foundation_url
        self.commands: asyncio.Queue = asyncio.Queue(maxsize=1)
        self.errors: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "Actor":
        self._task = asyncio.create_task(self._run(), name=f"actor:{self.foundation_url}")
        return self

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            command = await self.commands.get()
            if command is None:
                await self.errors.put(_CLOSED)
                return

            error: Optional[Exception] = None
            try:
                await command(self.action, self.foundation_url)
            except Exception as exc:
                if getattr(exc, "foundation_url", None) is None:
                    exc.foundation_url = self.foundation_url
                logger.debug("Actor command failed", foundation_url=self.foundation_url, error=str(exc))
                error = exc
            except BaseException as exc:
                logger.warning("Actor stopped", foundation_url=self.foundation_url, error=repr(exc))
                self.errors.put_nowait(ActorStoppedError(self.foundation_url, exc))
                raise
            await self.errors.put(error)

    async def send(self, command: Command) -> None:
        if not self.running:
            return
        await self.commands.put(command)

    async def receive(self) -> Optional[Exception]:
        if self.errors.empty() and not self.running:
            return ActorStoppedError(self.foundation_url)

        getter = asyncio.ensure_future(self.errors.get())
        try:
            await asyncio.wait({getter, self._task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not getter.done():
                getter.cancel()
        if not getter.done() or getter.cancelled():
            if self.errors.empty():
                return ActorStoppedError(self.foundation_url)
            reply = self.errors.get_nowait()
        else:
            reply = getter.result()

        if reply is _CLOSED:
            raise RuntimeError(f"actor for {self.foundation_url} is closed")
        return reply

    async def close(self) -> None:
        """Stop the actor task and wait for it to exit."""
        if not self.running:
            return
        await self.commands.put(None)
        await self.errors.get()
        await self._task
