"""Runs ``cf`` commands in an isolated CF_HOME."""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Sequence

import structlog

from bluegreen_deployer.core.exceptions import CourierCommandError

logger = structlog.get_logger()

DEFAULT_PREFIX = "bluegreen-deployer-"


class Executor:
    """Executes CLI commands with a private CF_HOME temp directory.

    Every executor owns its temp directory, so concurrent executors never
    share a credentials cache. :meth:`clean_up` removes it.
    """

    def __init__(
        self,
        binary: str = "cf",
        timeout_seconds: float = 600.0,
        prefix: str = DEFAULT_PREFIX,
    ):
        self.binary = binary
        self.timeout_seconds = timeout_seconds
        self.home_dir = tempfile.mkdtemp(prefix=prefix)

    def _env(self) -> dict:
        env = dict(os.environ)
        env["CF_HOME"] = self.home_dir
        return env

    async def execute(self, *args: str, cwd: Optional[str] = None) -> str:
        """Run a command and return its combined output.

        Raises:
            CourierCommandError: the command exited non-zero, timed out or
                could not be started. The error carries the output.
        """
        logger.debug("Executing cf command", command=args[0] if args else None, cwd=cwd)
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=self._env(),
                cwd=cwd,
            )
        except OSError as exc:
            raise CourierCommandError(_safe_args(args), None, str(exc)) from exc

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CourierCommandError(
                _safe_args(args), None, f"timed out after {self.timeout_seconds} seconds"
            ) from None

        output = (stdout or b"").decode("utf-8", errors="replace")
        if process.returncode != 0:
            raise CourierCommandError(_safe_args(args), process.returncode, output)
        return output

    async def execute_in_directory(self, directory: str, *args: str) -> str:
        return await self.execute(*args, cwd=directory)

    def clean_up(self) -> None:
        shutil.rmtree(self.home_dir)


def _safe_args(args: Sequence[str]) -> list:
    """Hide the password argument of ``cf login``."""
    safe = list(args)
    if safe and safe[0] == "login":
        for i, arg in enumerate(safe[:-1]):
            if arg == "-p":
                safe[i + 1] = "[REDACTED]"
    return safe


def remove_stale_work_dirs(prefix: str = DEFAULT_PREFIX, older_than: Optional[float] = None) -> int:
    """Remove temp directories left behind by a process that died mid-request.

    Returns the number of directories removed.
    """
    root = Path(tempfile.gettempdir())
    removed = 0
    for path in root.glob(f"{prefix}*"):
        if not path.is_dir():
            continue
        if older_than is not None and path.stat().st_mtime >= older_than:
            continue
        try:
            shutil.rmtree(path)
            removed += 1
        except OSError as exc:
            logger.warning("Failed to remove stale work dir", path=str(path), error=str(exc))
    if removed:
        logger.info("Removed stale work dirs", count=removed, prefix=prefix)
    return removed
