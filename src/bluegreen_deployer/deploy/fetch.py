"""Fetch utilities for downloading application artifacts."""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Tuple

import boto3
import httpx
import structlog

from bluegreen_deployer.core.exceptions import ArtifactFetchError


logger = structlog.get_logger()

READ_TIMEOUT_SECONDS = 15.0


def _parse_s3_url(url: str) -> Tuple[str, str]:
    """Parse s3://bucket/key URL into (bucket, key)."""
    if not url.startswith("s3://"):
        raise ValueError("Not an s3 URL")
    rest = url[len("s3://"):]
    parts = rest.split("/", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError("Invalid s3 URL; expected s3://bucket/key")
    return parts[0], parts[1]


def _write_stream_to_file(stream_iter, dest_path: Path, max_size_bytes: int) -> int:
    """Write streaming bytes to file with max-size enforcement.

    Returns number of bytes written.
    """
    tmp_file = dest_path.with_suffix(".downloading")
    bytes_written = 0
    try:
        with open(tmp_file, "wb") as f:
            for chunk in stream_iter:
                if not chunk:
                    continue
                bytes_written += len(chunk)
                if bytes_written > max_size_bytes:
                    raise ArtifactFetchError("artifact exceeds maximum allowed size", code="artifact_size")
                f.write(chunk)
    except BaseException:
        tmp_file.unlink(missing_ok=True)
        raise
    os.replace(tmp_file, dest_path)
    return bytes_written


def _download_http(url: str, dest_path: Path, max_size_bytes: int, remaining: float) -> int:
    timeout = httpx.Timeout(remaining, read=min(READ_TIMEOUT_SECONDS, remaining))
    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        with client.stream("GET", url) as resp:
            resp.raise_for_status()
            return _write_stream_to_file(resp.iter_bytes(), dest_path, max_size_bytes)


def _download_s3(url: str, dest_path: Path, max_size_bytes: int) -> int:
    bucket, key = _parse_s3_url(url)
    s3 = boto3.client("s3")
    obj = s3.get_object(Bucket=bucket, Key=key)
    return _write_stream_to_file(obj["Body"].iter_chunks(64 * 1024), dest_path, max_size_bytes)


def fetch_artifact_to_path(
    url: str,
    dest_path: Path,
    *,
    max_size_bytes: int = 512 * 1024 * 1024,
    total_timeout_sec: float = 240.0,
    max_retries: int = 3,
    backoff_base: float = 0.3,
) -> Path:
    """Download an artifact to ``dest_path``.

    Supports:
    - http(s):// URL via httpx streaming, with a 15 second read timeout
    - s3://bucket/key via boto3 GetObject

    Enforces a maximum size and a total timeout across retries. Oversized
    artifacts and client errors (4xx) are not retried.
    """
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    if not url.startswith(("http://", "https://", "s3://")):
        raise ArtifactFetchError(f"unsupported artifact url: {url}", code="artifact_url")

    start = time.time()
    attempt = 0
    last_error: Exception | None = None

    while attempt < max_retries and (time.time() - start) < total_timeout_sec:
        attempt += 1
        try:
            if url.startswith("s3://"):
                logger.info("Downloading artifact from S3", url=url, dest=str(dest_path), attempt=attempt)
                bytes_written = _download_s3(url, dest_path, max_size_bytes)
            else:
                logger.info("Downloading artifact", url=url, dest=str(dest_path), attempt=attempt)
                remaining = total_timeout_sec - (time.time() - start)
                bytes_written = _download_http(url, dest_path, max_size_bytes, remaining)
            logger.info("Downloaded artifact", bytes=bytes_written)
            return dest_path
        except ArtifactFetchError:
            raise
        except httpx.HTTPStatusError as e:
            if e.response.status_code < 500:
                raise ArtifactFetchError(
                    f"cannot get artifact: {url} responded {e.response.status_code}", code="artifact_status"
                ) from e
            last_error = e
        except Exception as e:
            last_error = e

        # bounded backoff
        elapsed = time.time() - start
        remaining = total_timeout_sec - elapsed
        logger.warning("Fetch attempt failed", attempt=attempt, error=str(last_error), remaining_time_sec=max(0.0, remaining))
        if attempt >= max_retries or remaining <= 0:
            break
        time.sleep(min(backoff_base * (2 ** (attempt - 1)), max(0.0, remaining)))

    raise ArtifactFetchError(
        f"failed to fetch artifact after {attempt} attempts: {last_error}", code="artifact_fetch"
    )
