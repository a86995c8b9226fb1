"""Turns a request's artifact into a local application directory."""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from pathlib import Path

import aiofiles
import structlog

from bluegreen_deployer.core.exceptions import AppPathError, ArtifactFetchError, ResourceError
from bluegreen_deployer.courier.executor import DEFAULT_PREFIX
from bluegreen_deployer.deploy.extractor import unzip
from bluegreen_deployer.deploy.fetch import fetch_artifact_to_path

logger = structlog.get_logger()


class Artifetcher:
    """Downloads or receives a zip artifact and extracts it to a temp dir.

    The returned directory belongs to the caller, who removes it when the
    deployment is over. On failure nothing is left behind.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        max_size_bytes: int = 512 * 1024 * 1024,
        timeout_seconds: float = 240.0,
    ):
        self.prefix = prefix
        self.max_size_bytes = max_size_bytes
        self.timeout_seconds = timeout_seconds

    async def fetch(self, url: str, manifest: str = "") -> str:
        """Download the zip at ``url`` and extract it."""
        work_dir = self._make_work_dir()
        try:
            archive = work_dir / "artifact.zip"
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._download, url, archive)
            app_path = await self._extract(archive, work_dir / "app", manifest)
        except BaseException:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise
        logger.info("Fetched artifact", url=url, app_path=app_path)
        return app_path

    async def fetch_from_zip(self, body: bytes) -> str:
        """Extract a zip archive received as the request body."""
        if not body:
            raise ArtifactFetchError("request body is empty", code="empty_body")
        if len(body) > self.max_size_bytes:
            raise ArtifactFetchError("artifact exceeds maximum allowed size", code="artifact_size")

        work_dir = self._make_work_dir()
        try:
            archive = work_dir / "request.zip"
            async with aiofiles.open(archive, "wb") as f:
                await f.write(body)
            app_path = await self._extract(archive, work_dir / "app", "")
        except BaseException:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise
        logger.info("Extracted request body", bytes=len(body), app_path=app_path)
        return app_path

    def _make_work_dir(self) -> Path:
        try:
            return Path(tempfile.mkdtemp(prefix=self.prefix))
        except OSError as exc:
            raise AppPathError(exc) from exc

    def _download(self, url: str, archive: Path) -> None:
        fetch_artifact_to_path(
            url,
            archive,
            max_size_bytes=self.max_size_bytes,
            total_timeout_sec=self.timeout_seconds,
        )

    async def _extract(self, archive: Path, destination: Path, manifest: str) -> str:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, unzip, archive, destination, manifest)
        archive.unlink(missing_ok=True)
        return str(destination)


def remove_app_path(app_path: str) -> None:
    """Remove the work dir that holds ``app_path``."""
    if not app_path:
        return
    path = Path(app_path)
    root = path.parent if path.name == "app" else path
    try:
        shutil.rmtree(root)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise ResourceError(f"cannot remove {root}: {exc}", code="app_path") from exc
