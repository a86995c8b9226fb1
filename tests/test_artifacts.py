import base64
import io
import stat
import zipfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from bluegreen_deployer.core.exceptions import AppPathError, ArtifactFetchError, ManifestError, UnzipError
from bluegreen_deployer.deploy.artifetcher import Artifetcher, remove_app_path
from bluegreen_deployer.deploy.extractor import unzip
from bluegreen_deployer.deploy.fetch import _parse_s3_url, fetch_artifact_to_path
from bluegreen_deployer.deploy.manifest import custom_routes, decode_manifest, get_instances


def make_zip(path: Path, files: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return path


def zip_bytes(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def streaming(resp):
    """Context manager returned by ``client.stream``."""
    cm = MagicMock()
    cm.__enter__.return_value = resp
    return cm


def ok_response(data: bytes):
    resp = MagicMock()
    resp.raise_for_status.return_value = None
    resp.iter_bytes.return_value = iter([data])
    return resp


def status_response(status: int):
    request = httpx.Request("GET", "https://artifacts.example.com/web.zip")
    resp = MagicMock()
    resp.raise_for_status.side_effect = httpx.HTTPStatusError(
        "bad status", request=request, response=httpx.Response(status, request=request)
    )
    return resp


# Manifest


def test_manifest_instances():
    assert get_instances("applications:\n- name: web\n  instances: 4\n") == 4
    assert get_instances("applications:\n- name: web\n") is None
    assert get_instances("") is None


def test_manifest_instances_ignores_invalid_values():
    assert get_instances("applications:\n- name: web\n  instances: 0\n") is None
    assert get_instances("applications:\n- name: web\n  instances: many\n") is None
    assert get_instances("applications: [unclosed") is None


def test_decode_manifest():
    encoded = base64.b64encode(b"applications:\n- name: web\n").decode()
    assert decode_manifest(encoded) == "applications:\n- name: web\n"
    assert decode_manifest("") == ""


def test_decode_manifest_rejects_bad_base64():
    with pytest.raises(ManifestError):
        decode_manifest("not base64!")


def test_custom_routes_skips_malformed_entries():
    manifest = "applications:\n- name: web\n  custom-routes:\n  - route: a.example.com\n  - nope\n  - route: ''\n"
    assert custom_routes(manifest) == ["a.example.com"]


# Extraction


def test_unzip_extracts_and_overrides_manifest(tmp_path: Path):
    archive = make_zip(tmp_path / "a.zip", {
        "index.js": b"console.log(1)",
        "lib/util.js": b"module.exports = {}",
        "manifest.yml": b"applications:\n- name: old\n",
    })
    dest = tmp_path / "app"

    count = unzip(archive, dest, manifest="applications:\n- name: web\n")

    assert count == 3
    assert (dest / "lib" / "util.js").read_bytes() == b"module.exports = {}"
    assert (dest / "manifest.yml").read_text() == "applications:\n- name: web\n"


def test_unzip_restores_file_modes(tmp_path: Path):
    archive = tmp_path / "a.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        info = zipfile.ZipInfo("bin/start")
        info.external_attr = (stat.S_IFREG | 0o755) << 16
        zf.writestr(info, b"#!/bin/sh\n")

    unzip(archive, tmp_path / "app")

    assert (tmp_path / "app" / "bin" / "start").stat().st_mode & 0o777 == 0o755


def test_unzip_rejects_escaping_entries(tmp_path: Path):
    archive = make_zip(tmp_path / "bad.zip", {"../evil.txt": b"oops"})

    with pytest.raises(UnzipError):
        unzip(archive, tmp_path / "app")

    assert not (tmp_path / "evil.txt").exists()


def test_unzip_rejects_non_zip(tmp_path: Path):
    archive = tmp_path / "a.zip"
    archive.write_bytes(b"definitely not a zip")

    with pytest.raises(UnzipError):
        unzip(archive, tmp_path / "app")


# Artifetcher


@pytest.mark.asyncio
async def test_fetch_from_zip(tmp_path: Path):
    fetcher = Artifetcher(prefix=str(tmp_path / "deployer-"))

    app_path = await fetcher.fetch_from_zip(zip_bytes({"index.html": b"<h1>hi</h1>"}))

    assert Path(app_path).name == "app"
    assert (Path(app_path) / "index.html").read_bytes() == b"<h1>hi</h1>"
    assert not (Path(app_path).parent / "request.zip").exists()

    remove_app_path(app_path)
    assert not Path(app_path).parent.exists()


@pytest.mark.asyncio
async def test_fetch_from_zip_rejects_empty_and_oversized_bodies(tmp_path: Path):
    fetcher = Artifetcher(prefix=str(tmp_path / "deployer-"), max_size_bytes=10)

    with pytest.raises(ArtifactFetchError):
        await fetcher.fetch_from_zip(b"")
    with pytest.raises(ArtifactFetchError):
        await fetcher.fetch_from_zip(b"x" * 11)


@pytest.mark.asyncio
async def test_unusable_work_dir_is_an_app_path_error(tmp_path: Path):
    fetcher = Artifetcher(prefix=str(tmp_path / "missing" / "deployer-"))

    with pytest.raises(AppPathError) as exc_info:
        await fetcher.fetch_from_zip(zip_bytes({"index.html": b"hi"}))

    assert "cannot get app path" in str(exc_info.value)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_fetch_cleans_up_after_bad_archive(tmp_path: Path):
    fetcher = Artifetcher(prefix=str(tmp_path / "deployer-"))

    with pytest.raises(UnzipError):
        await fetcher.fetch_from_zip(b"not a zip")

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_fetch_downloads_and_writes_manifest(tmp_path: Path):
    fetcher = Artifetcher(prefix=str(tmp_path / "deployer-"))
    data = zip_bytes({"index.js": b"1"})

    with patch("httpx.Client") as Client:
        client = MagicMock()
        client.stream.return_value = streaming(ok_response(data))
        Client.return_value.__enter__.return_value = client
        app_path = await fetcher.fetch("https://artifacts.example.com/web.zip", "applications:\n- name: web\n")

    assert (Path(app_path) / "index.js").read_bytes() == b"1"
    assert (Path(app_path) / "manifest.yml").exists()


# Download


def test_https_download(tmp_path: Path):
    dest = tmp_path / "artifact.zip"

    with patch("httpx.Client") as Client:
        client = MagicMock()
        client.stream.return_value = streaming(ok_response(b"hello world"))
        Client.return_value.__enter__.return_value = client
        out = fetch_artifact_to_path("https://artifacts.example.com/web.zip", dest)

    assert out.read_bytes() == b"hello world"


def test_s3_download_via_boto(tmp_path: Path):
    dest = tmp_path / "artifact.zip"

    class StreamingBody:
        def __init__(self, buf: bytes):
            self._buf = io.BytesIO(buf)

        def iter_chunks(self, size):
            while True:
                chunk = self._buf.read(size)
                if not chunk:
                    break
                yield chunk

    with patch("boto3.client") as bclient:
        s3 = MagicMock()
        s3.get_object.return_value = {"Body": StreamingBody(b"payload")}
        bclient.return_value = s3
        out = fetch_artifact_to_path("s3://bucket/builds/web.zip", dest)

    s3.get_object.assert_called_once_with(Bucket="bucket", Key="builds/web.zip")
    assert out.read_bytes() == b"payload"


def test_parse_s3_url():
    assert _parse_s3_url("s3://b/k/v.zip") == ("b", "k/v.zip")
    with pytest.raises(ValueError):
        _parse_s3_url("s3://bucket-only")


def test_download_size_limit(tmp_path: Path):
    dest = tmp_path / "artifact.zip"

    with patch("httpx.Client") as Client:
        client = MagicMock()
        client.stream.return_value = streaming(ok_response(b"a" * 1024))
        Client.return_value.__enter__.return_value = client
        with pytest.raises(ArtifactFetchError):
            fetch_artifact_to_path("https://artifacts.example.com/large.zip", dest, max_size_bytes=10)

    assert not dest.exists()
    assert not dest.with_suffix(".downloading").exists()


def test_https_retry_then_success(tmp_path: Path):
    dest = tmp_path / "artifact.zip"
    seq = [streaming(status_response(502)), streaming(ok_response(b"ok"))]

    with patch("httpx.Client") as Client:
        client = MagicMock()
        client.stream.side_effect = lambda *args, **kwargs: seq.pop(0)
        Client.return_value.__enter__.return_value = client
        out = fetch_artifact_to_path(
            "https://artifacts.example.com/web.zip", dest, total_timeout_sec=5.0, max_retries=2, backoff_base=0.01
        )

    assert out.read_bytes() == b"ok"


def test_https_404_fails_fast(tmp_path: Path):
    dest = tmp_path / "artifact.zip"

    with patch("httpx.Client") as Client:
        client = MagicMock()
        client.stream.return_value = streaming(status_response(404))
        Client.return_value.__enter__.return_value = client
        with pytest.raises(ArtifactFetchError) as exc_info:
            fetch_artifact_to_path("https://artifacts.example.com/web.zip", dest, max_retries=3)

    assert client.stream.call_count == 1
    assert "404" in str(exc_info.value)


def test_retries_exhausted(tmp_path: Path):
    dest = tmp_path / "artifact.zip"

    with patch("httpx.Client") as Client:
        client = MagicMock()
        client.stream.side_effect = httpx.ConnectError("refused")
        Client.return_value.__enter__.return_value = client
        with pytest.raises(ArtifactFetchError) as exc_info:
            fetch_artifact_to_path(
                "https://artifacts.example.com/web.zip", dest, max_retries=2, backoff_base=0.001
            )

    assert "after 2 attempts" in str(exc_info.value)


def test_unsupported_scheme(tmp_path: Path):
    with pytest.raises(ArtifactFetchError):
        fetch_artifact_to_path("ftp://artifacts.example.com/web.zip", tmp_path / "a.zip")
