"""Reading and rewriting Cloud Foundry manifests."""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml

from bluegreen_deployer.core.exceptions import ManifestError

logger = structlog.get_logger()

MANIFEST_FILE = "manifest.yml"


def decode_manifest(encoded: str) -> str:
    """Decode the base64 manifest sent in a JSON push request."""
    if not encoded:
        return ""
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ManifestError(str(exc)) from exc


def parse_manifest(manifest: str) -> Dict[str, Any]:
    if not manifest:
        return {}
    try:
        data = yaml.safe_load(manifest)
    except yaml.YAMLError as exc:
        raise ManifestError(f"manifest is not valid yaml: {exc}") from exc
    return data if isinstance(data, dict) else {}


def first_application(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    applications = data.get("applications")
    if isinstance(applications, list) and applications and isinstance(applications[0], dict):
        return applications[0]
    return None


def get_instances(manifest: str) -> Optional[int]:
    """Instance count of the first application, or None when not set.

    Unparseable manifests and values below 1 are treated as not set.
    """
    try:
        application = first_application(parse_manifest(manifest))
    except ManifestError:
        logger.warning("Ignoring unparseable manifest for instance count")
        return None
    if not application:
        return None

    instances = application.get("instances")
    if isinstance(instances, bool) or not isinstance(instances, int) or instances < 1:
        return None
    return instances


def custom_routes(manifest: str) -> List[str]:
    """Routes listed under ``custom-routes`` of the first application."""
    application = first_application(parse_manifest(manifest))
    if not application:
        return []
    routes = []
    for entry in application.get("custom-routes") or []:
        if isinstance(entry, dict) and entry.get("route"):
            routes.append(str(entry["route"]))
    return routes


def read_manifest_file(app_path: str | Path) -> str:
    path = Path(app_path) / MANIFEST_FILE
    if not path.is_file():
        return ""
    return path.read_text(encoding="utf-8")


def write_manifest_file(app_path: str | Path, data: Dict[str, Any]) -> Path:
    path = Path(app_path) / MANIFEST_FILE
    path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8")
    return path
