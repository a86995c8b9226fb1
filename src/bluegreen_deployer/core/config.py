"""Configuration management for the blue/green deployer."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "NOTI": "INFO",
    "NOTICE": "INFO",
    "WARN": "WARNING",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRIT": "CRITICAL",
    "CRITICAL": "CRITICAL",
}


def normalize_log_level(level: str) -> str:
    """Map the service's log level names onto stdlib logging names."""
    try:
        return LOG_LEVELS[level.strip().upper()]
    except KeyError:
        raise ValueError(f"unable to get log level: {level}") from None


class Settings(BaseSettings):
    """Service configuration settings read from the process environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    host: str = Field("0.0.0.0", description="Server host")
    port: int = Field(8080, description="Server port")

    # Default foundation credentials, used when an environment does not authenticate
    cf_username: str = Field(..., description="Default Cloud Foundry username")
    cf_password: str = Field(..., description="Default Cloud Foundry password")

    # Environments file
    config_path: str = Field("./config.yml", description="Path to the environments YAML file")

    # Mirror deploys
    silent_deploy_environment: Optional[str] = Field(None, description="Environment mirrored to the silent URL")
    silent_deploy_url: Optional[str] = Field(None, description="Foundation that receives mirror deploys")

    # Health checking of freshly pushed apps
    health_check_old_url: str = Field("api.cf", description="Foundation URL fragment replaced to build the app domain")
    health_check_new_url: str = Field("apps", description="Replacement fragment for the app domain")
    health_check_timeout_seconds: float = Field(15.0)

    # Couriers
    cf_command_timeout_seconds: float = Field(600.0, description="Upper bound for a single cf command")
    work_dir_prefix: str = Field("bluegreen-deployer-", description="Prefix of per-request temp directories")

    # Artifacts
    artifact_timeout_seconds: float = Field(240.0)
    max_artifact_size_mb: int = Field(512)

    precheck_foundations: bool = Field(False, description="GET <foundation>/v2/info before deploying")

    # Observability
    log_level: str = Field("INFO")
    log_format: str = Field("json")
    metrics_enabled: bool = Field(True)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return normalize_log_level(v)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError(f"cannot parse $PORT: {v}")
        return v

    @property
    def silent_deploy_enabled(self) -> bool:
        return bool(self.silent_deploy_environment and self.silent_deploy_url)
