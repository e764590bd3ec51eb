"""TOML-based workspace configuration.

Loads ~/.liftoff/defaults.toml (global) and liftoff.toml (project),
merges them, and builds an immutable LiftoffConfig.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeAlias

from liftoff.core.exceptions import ConfigurationError
from liftoff.logging import LogConfig
from liftoff.settings import DEFAULT_SETTINGS_PATH

RawConfig: TypeAlias = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".liftoff" / "defaults.toml"
PROJECT_CONFIG_NAME = "liftoff.toml"

DEFAULT_STACK_NAME = "GameLiftPluginStack"
DEFAULT_TEMPLATE_URL = "https://{bucket}.s3.{region}.amazonaws.com/scenarios/{scenario}/cloudformation.yml"


@dataclass(frozen=True, slots=True)
class DeploymentConfig:
    """Deployment stack polling and naming."""

    stack_name: str = DEFAULT_STACK_NAME
    poll_interval: float = 5.0
    client_settings_interval: float = 2.0
    game_name: str = "Game"


@dataclass(frozen=True, slots=True)
class AWSConfig:
    """Locations used by the AWS adapter."""

    credentials_file: Path | None = None
    config_file: Path | None = None
    template_url: str = DEFAULT_TEMPLATE_URL


@dataclass(frozen=True, slots=True)
class LiftoffConfig:
    settings_path: Path = DEFAULT_SETTINGS_PATH
    deployment: DeploymentConfig = field(default_factory=DeploymentConfig)
    aws: AWSConfig = field(default_factory=AWSConfig)
    logging: LogConfig | None = None


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def load_raw_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)
    return _deep_merge(global_cfg, project_cfg)


def _positive(section: str, key: str, value: Any) -> float:
    match value:
        case bool():
            pass
        case int() | float() if value > 0:
            return float(value)
    raise ConfigurationError(f"[{section}] {key} must be a positive number, got {value!r}")


def _optional_path(value: Any) -> Path | None:
    return Path(value).expanduser() if value else None


def _build(raw: RawConfig) -> LiftoffConfig:
    unknown = set(raw) - {"settings", "deployment", "aws", "logging"}
    if unknown:
        raise ConfigurationError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

    settings = raw.get("settings", {})
    deployment = dict(raw.get("deployment", {}))
    aws = raw.get("aws", {})

    defaults = DeploymentConfig()
    try:
        deployment_cfg = DeploymentConfig(
            stack_name=str(deployment.pop("stack_name", defaults.stack_name)),
            poll_interval=_positive(
                "deployment", "poll_interval", deployment.pop("poll_interval", defaults.poll_interval)
            ),
            client_settings_interval=_positive(
                "deployment",
                "client_settings_interval",
                deployment.pop("client_settings_interval", defaults.client_settings_interval),
            ),
            game_name=str(deployment.pop("game_name", defaults.game_name)),
        )
        if deployment:
            raise ConfigurationError(f"Unknown [deployment] key(s): {', '.join(sorted(deployment))}")

        log_cfg = LogConfig.from_raw(raw["logging"]) if "logging" in raw else None
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    return LiftoffConfig(
        settings_path=_optional_path(settings.get("path")) or DEFAULT_SETTINGS_PATH,
        deployment=deployment_cfg,
        aws=AWSConfig(
            credentials_file=_optional_path(aws.get("credentials_file")),
            config_file=_optional_path(aws.get("config_file")),
            template_url=str(aws.get("template_url", DEFAULT_TEMPLATE_URL)),
        ),
        logging=log_cfg,
    )


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> LiftoffConfig:
    """Load and validate the merged global and project configuration."""
    return _build(load_raw_config(project_dir=project_dir, global_path=global_path))


__all__ = [
    "AWSConfig",
    "DeploymentConfig",
    "LiftoffConfig",
    "load_config",
    "load_raw_config",
]
