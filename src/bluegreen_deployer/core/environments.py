"""Loading of the environments YAML file."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from bluegreen_deployer.core.exceptions import ConfigurationError, EnvironmentNotFoundError
from bluegreen_deployer.core.models import Environment, ErrorMatcherDescriptor

logger = structlog.get_logger()

REQUIRED_ENVIRONMENT_KEYS = ("name", "foundations", "domain")


class DeployerConfig(BaseModel):
    """Environments keyed by lower-cased name, plus error matchers."""

    environments: Dict[str, Environment] = Field(default_factory=dict)
    error_matchers: List[ErrorMatcherDescriptor] = Field(default_factory=list)

    def get_environment(self, name: str) -> Environment:
        try:
            return self.environments[name.lower()]
        except KeyError:
            raise EnvironmentNotFoundError(name) from None


def parse_config(data: Any) -> DeployerConfig:
    """Validate already-decoded YAML content."""
    if not isinstance(data, dict) or not data.get("environments"):
        raise ConfigurationError("environments key not specified in the configuration", code="config")

    environments: Dict[str, Environment] = {}
    for index, raw in enumerate(data["environments"]):
        if not isinstance(raw, dict):
            raise ConfigurationError(f"environment #{index} is not a mapping", code="config")

        missing = [key for key in REQUIRED_ENVIRONMENT_KEYS if not raw.get(key)]
        if missing:
            raise ConfigurationError(
                f"missing required parameter in environment #{index}: {', '.join(missing)}",
                code="config",
            )

        try:
            environment = Environment.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid environment {raw.get('name')}: {exc}", code="config") from exc

        environments[environment.name.lower()] = environment

    try:
        matchers = [ErrorMatcherDescriptor.model_validate(m) for m in data.get("error_matchers") or []]
    except ValidationError as exc:
        raise ConfigurationError(f"invalid error matcher: {exc}", code="config") from exc

    return DeployerConfig(environments=environments, error_matchers=matchers)


def load_config(path: str | Path, content: Optional[str] = None) -> DeployerConfig:
    """Read and validate the environments file at ``path``."""
    config_path = Path(path)
    if content is None:
        try:
            content = config_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"cannot read config file {config_path}: {exc}", code="config") from exc

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"cannot parse yaml file: {exc}", code="config") from exc

    config = parse_config(data)
    logger.info(
        "Loaded environments",
        config_path=str(config_path),
        environments=sorted(config.environments),
        error_matchers=len(config.error_matchers),
    )
    return config
