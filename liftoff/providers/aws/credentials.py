"""Profiles backed by the shared AWS credentials and config files.

Access keys live in ``~/.aws/credentials`` under ``[name]``; the region
lives in ``~/.aws/config`` under ``[profile name]`` (``[default]`` for the
default profile), matching what the AWS CLI writes.
"""

from __future__ import annotations

import configparser
from pathlib import Path

from loguru import logger

from liftoff.core.exceptions import ConfigurationError
from liftoff.profiles import DEFAULT_PROFILE_NAME
from liftoff.types import Credentials, Profile

DEFAULT_CREDENTIALS_FILE = Path.home() / ".aws" / "credentials"
DEFAULT_CONFIG_FILE = Path.home() / ".aws" / "config"


def _config_section(name: str) -> str:
    return name if name == DEFAULT_PROFILE_NAME else f"profile {name}"


def _read(path: Path) -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None)
    if path.is_file():
        try:
            parser.read(path)
        except configparser.Error as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e
    return parser


def _write(parser: configparser.ConfigParser, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        parser.write(f)
    path.chmod(0o600)


class CredentialsFileStore:
    """ProfileStore reading and writing the shared AWS files."""

    def __init__(
        self,
        credentials_file: Path | None = None,
        config_file: Path | None = None,
    ) -> None:
        self.credentials_file = credentials_file or DEFAULT_CREDENTIALS_FILE
        self.config_file = config_file or DEFAULT_CONFIG_FILE

    def load(self) -> list[Profile]:
        credentials = _read(self.credentials_file)
        config = _read(self.config_file)

        profiles: list[Profile] = []
        for name in credentials.sections():
            section = credentials[name]
            key_id = section.get("aws_access_key_id")
            secret = section.get("aws_secret_access_key")
            if not key_id or not secret:
                logger.debug(f"Skipping profile '{name}' without static keys")
                continue
            region = config.get(_config_section(name), "region", fallback=None)
            profiles.append(
                Profile(
                    name=name,
                    credentials=Credentials(
                        access_key_id=key_id,
                        secret_access_key=secret,
                        session_token=section.get("aws_session_token"),
                    ),
                    region=region,
                )
            )
        return profiles

    def save(self, profile: Profile) -> None:
        credentials = _read(self.credentials_file)
        if not credentials.has_section(profile.name):
            credentials.add_section(profile.name)
        section = credentials[profile.name]
        section["aws_access_key_id"] = profile.credentials.access_key_id
        section["aws_secret_access_key"] = profile.credentials.secret_access_key
        if profile.credentials.session_token:
            section["aws_session_token"] = profile.credentials.session_token
        else:
            section.pop("aws_session_token", None)
        _write(credentials, self.credentials_file)

        config = _read(self.config_file)
        name = _config_section(profile.name)
        if profile.region:
            if not config.has_section(name):
                config.add_section(name)
            config[name]["region"] = profile.region
        elif config.has_section(name):
            config.remove_option(name, "region")
        _write(config, self.config_file)
        logger.debug(f"Profile '{profile.name}' written to {self.credentials_file}")


__all__ = ["CredentialsFileStore"]
