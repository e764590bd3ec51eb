"""Key/value settings storage.

liftoff only relies on ``get(key) -> str | None`` and ``put(key, value)``.
Two implementations ship with the package: an in-memory store for tests
and embedding, and a JSON file store used by default.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from liftoff.types import ClientSettings

DEFAULT_SETTINGS_PATH = Path.home() / ".liftoff" / "settings.json"
SETTINGS_VERSION = 1


@runtime_checkable
class SettingsStore(Protocol):
    """Persistent key/value configuration."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


class SettingsKeys:
    """Names of every persisted setting."""

    CURRENT_PROFILE_NAME = "CurrentProfileName"
    FLEET_NAME = "FleetName"
    DEPLOYMENT_SCENARIO = "DeploymentScenario"
    CLIENT_REGION = "Client.Region"
    CLIENT_API_GATEWAY_ENDPOINT = "Client.ApiGatewayEndpoint"
    CLIENT_USER_POOL_CLIENT_ID = "Client.UserPoolClientId"
    CLIENT_IS_ANYWHERE = "Client.IsAnywhere"

    @staticmethod
    def bucket_for(profile: str) -> str:
        return f"Profiles.{profile}.BootstrappedBucket"

    @staticmethod
    def fleet_for(profile: str) -> str:
        return f"Profiles.{profile}.FleetName"


class MemorySettings:
    """Settings held in a plain dict."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self._values = dict(values or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def put(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonSettings:
    """Settings persisted to a JSON file, loaded lazily on first access."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_SETTINGS_PATH
        self._data: dict[str, str] | None = None

    @property
    def data(self) -> dict[str, str]:
        """Lazy load settings data."""
        if self._data is None:
            self._data = self._load()
        return self._data

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return {}
        if not isinstance(raw, dict) or not isinstance(raw.get("values", {}), dict):
            logger.warning(f"Ignoring malformed settings file {self.path}")
            return {}
        if raw.get("version") != SETTINGS_VERSION:
            logger.warning(f"Ignoring settings file {self.path} with unsupported version")
            return {}
        return {str(k): str(v) for k, v in raw.get("values", {}).items()}

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({"version": SETTINGS_VERSION, "values": self.data}, indent=2, sort_keys=True)
        )

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        self.data[key] = value
        self._save()


def load_client_settings(store: SettingsStore) -> ClientSettings | None:
    """Read stored client settings. None when the client was never configured."""
    region = store.get(SettingsKeys.CLIENT_REGION)
    endpoint = store.get(SettingsKeys.CLIENT_API_GATEWAY_ENDPOINT)
    pool_client_id = store.get(SettingsKeys.CLIENT_USER_POOL_CLIENT_ID)
    is_anywhere = store.get(SettingsKeys.CLIENT_IS_ANYWHERE)
    if region is None and endpoint is None and pool_client_id is None and is_anywhere is None:
        return None
    return ClientSettings(
        region=region or None,
        api_gateway_endpoint=endpoint or None,
        user_pool_client_id=pool_client_id or None,
        is_anywhere=(is_anywhere or "").lower() == "true",
    )


def save_client_settings(store: SettingsStore, settings: ClientSettings) -> None:
    store.put(SettingsKeys.CLIENT_REGION, settings.region or "")
    store.put(SettingsKeys.CLIENT_API_GATEWAY_ENDPOINT, settings.api_gateway_endpoint or "")
    store.put(SettingsKeys.CLIENT_USER_POOL_CLIENT_ID, settings.user_pool_client_id or "")
    store.put(SettingsKeys.CLIENT_IS_ANYWHERE, "true" if settings.is_anywhere else "false")


__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "JsonSettings",
    "MemorySettings",
    "SettingsKeys",
    "SettingsStore",
    "load_client_settings",
    "save_client_settings",
]
