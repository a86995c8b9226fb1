"""Blue/green fan-out engine."""

from __future__ import annotations

import io
from typing import List, Optional, Sequence

import structlog

from bluegreen_deployer.bluegreen.action import Action, ActionCreator
from bluegreen_deployer.bluegreen.actor import Actor, Command
from bluegreen_deployer.core.exceptions import NoFoundationsError
from bluegreen_deployer.core.models import Environment

logger = structlog.get_logger()

OUTPUT_HEADER = "---- Cloud Foundry Output ({foundation}) ----\n"
OUTPUT_FOOTER = "---- End Cloud Foundry Output ----\n"


async def _initially(action: Action, foundation_url: str) -> None:
    await action.initially()


async def _verify(action: Action, foundation_url: str) -> None:
    await action.verify()


async def _success(action: Action, foundation_url: str) -> None:
    await action.success()


async def _undo(action: Action, foundation_url: str) -> None:
    await action.undo()


async def _finally(action: Action, foundation_url: str) -> None:
    await action.finally_()


class BlueGreener:
    """Drives one action per foundation through the deployment lifecycle.

    Every phase is broadcast to the participating actors in foundation order
    and then joined: one reply is read from each actor before the phase is
    considered done. Errors are collected across foundations, never
    short-circuited, and only this class decides whether to roll back.
    ``finally_`` runs exactly once on every action that was created.
    """

    async def execute(
        self,
        action_creator: ActionCreator,
        environment: Environment,
        response: io.StringIO,
    ) -> None:
        """Run the lifecycle. Raises the creator's aggregated error on failure."""
        if not environment.foundations:
            raise NoFoundationsError(environment.name)

        try:
            await action_creator.setup(environment)
            await action_creator.on_start()
            await self._run(action_creator, environment, response)
        finally:
            try:
                action_creator.clean_up()
            except Exception as exc:
                logger.warning("Clean up failed", error=str(exc))

    async def _run(
        self,
        action_creator: ActionCreator,
        environment: Environment,
        response: io.StringIO,
    ) -> None:
        actors: List[Actor] = []
        buffers: List[io.StringIO] = []

        try:
            for foundation_url in environment.foundations:
                buffer = io.StringIO()
                action = action_creator.create(environment, buffer, foundation_url)
                actors.append(Actor(action, foundation_url).start())
                buffers.append(buffer)

            logger.info("Starting blue/green lifecycle", foundations=len(actors))

            initially_errors = await self._broadcast(actors, _initially)
            failed = _failures(initially_errors)
            if failed:
                logger.warning("Initially phase failed", failed=len(failed))
                raise action_creator.initially_error(failed)

            existing: List[bool] = []

            async def _execute(action: Action, foundation_url: str) -> None:
                existing.append(await action.app_exists())
                await action.execute()

            execute_errors = await self._broadcast(actors, _execute)
            first_deploy = not any(existing)

            executed = [a for a, err in zip(actors, execute_errors) if err is None]
            verify_errors = await self._broadcast(executed, _verify)
            failed = _failures(execute_errors) + _failures(verify_errors)

            if not failed:
                success_errors = _failures(await self._broadcast(actors, _success))
                if success_errors:
                    raise action_creator.success_error(success_errors)
                logger.info("Blue/green lifecycle succeeded", foundations=len(actors))
                return

            rollback = (
                environment.enable_rollback
                and not (first_deploy and environment.disable_first_deploy_rollback)
                and action_creator.rollback_allowed(failed)
            )
            if not rollback:
                logger.warning(
                    "Execute phase failed, rollback skipped",
                    failed=len(failed),
                    first_deploy=first_deploy,
                )
                raise action_creator.execute_error(failed)

            logger.warning("Execute phase failed, rolling back", failed=len(failed))
            undo_errors = _failures(await self._broadcast(actors, _undo))
            raise action_creator.undo_error(failed, undo_errors)
        finally:
            await self._finish(actors)
            _flush(response, environment.foundations, buffers)

    async def _broadcast(self, actors: Sequence[Actor], command: Command) -> List[Optional[Exception]]:
        for actor in actors:
            await actor.send(command)
        return [await actor.receive() for actor in actors]

    async def _finish(self, actors: Sequence[Actor]) -> None:
        for actor, error in zip(actors, await self._broadcast(actors, _finally)):
            if error is not None:
                logger.warning("Finally phase failed", foundation_url=actor.foundation_url, error=str(error))
        for actor in actors:
            await actor.close()


def _failures(errors: Sequence[Optional[Exception]]) -> List[Exception]:
    return [e for e in errors if e is not None]


def _flush(response: io.StringIO, foundations: Sequence[str], buffers: Sequence[io.StringIO]) -> None:
    if not buffers:
        return
    for foundation_url, buffer in zip(foundations, buffers):
        response.write(OUTPUT_HEADER.format(foundation=foundation_url))
        output = buffer.getvalue()
        response.write(output)
        if output and not output.endswith("\n"):
            response.write("\n")
    response.write(OUTPUT_FOOTER)
