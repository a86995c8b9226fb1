"""Unzips artifacts into an application directory."""

from __future__ import annotations

import zipfile
from pathlib import Path

import structlog

from bluegreen_deployer.core.exceptions import UnzipError
from bluegreen_deployer.deploy.manifest import MANIFEST_FILE

logger = structlog.get_logger()


def unzip(source: Path, destination: Path, manifest: str = "") -> int:
    """Extract ``source`` into ``destination`` and return the number of files.

    Entries that would land outside ``destination`` are rejected. File modes
    recorded in the archive are restored. A non-empty ``manifest`` is written
    as ``manifest.yml``, replacing the one in the archive.
    """
    destination = destination.resolve()
    destination.mkdir(parents=True, exist_ok=True)
    logger.debug("Extracting archive", source=str(source), destination=str(destination))

    try:
        archive = zipfile.ZipFile(source)
    except (zipfile.BadZipFile, OSError) as exc:
        raise UnzipError(f"cannot open archive: {exc}", code="unzip") from exc

    files = 0
    with archive:
        for info in archive.infolist():
            target = (destination / info.filename).resolve()
            if target != destination and destination not in target.parents:
                raise UnzipError(f"archive entry escapes destination: {info.filename}", code="unzip")

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with archive.open(info) as src, open(target, "wb") as dst:
                    while chunk := src.read(64 * 1024):
                        dst.write(chunk)
            except (zipfile.BadZipFile, OSError) as exc:
                raise UnzipError(f"cannot extract {info.filename}: {exc}", code="unzip") from exc

            mode = (info.external_attr >> 16) & 0o777
            if mode:
                target.chmod(mode)
            files += 1

    if manifest:
        (destination / MANIFEST_FILE).write_text(manifest, encoding="utf-8")

    logger.info("Extracted archive", files=files, destination=str(destination))
    return files
