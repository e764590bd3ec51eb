"""Named credential profiles and the single active profile.

The registry is purely synchronous. Selecting a profile persists its name
and fires ``profile_selected`` before returning, so dependents have
already reset their profile-scoped state when the caller continues.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace
from typing import Final, Protocol, runtime_checkable

from loguru import logger

from liftoff.core.exceptions import (
    DuplicateProfileError,
    NoActiveProfileError,
    ProfileNotFoundError,
    ValidationError,
)
from liftoff.settings import SettingsKeys, SettingsStore
from liftoff.signals import Signal
from liftoff.types import Credentials, Profile

DEFAULT_PROFILE_NAME: Final[str] = "default"

_PROFILE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")
_ACCESS_KEY_ID = re.compile(r"^[A-Z0-9]{16,128}$")


@runtime_checkable
class ProfileStore(Protocol):
    """Where profiles live between sessions."""

    def load(self) -> Sequence[Profile]: ...

    def save(self, profile: Profile) -> None: ...


class ProfileRegistry:
    """Owns the set of profiles and which one is active."""

    def __init__(
        self,
        settings: SettingsStore,
        store: ProfileStore | None = None,
        regions: Sequence[str] = (),
    ) -> None:
        self._settings = settings
        self._store = store
        self._regions = tuple(regions)
        self._profiles: dict[str, Profile] = {}
        self._active: str | None = None

        self.profile_selected = Signal("profile_selected")
        self.profiles_changed = Signal("profiles_changed")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_profiles(self) -> list[str]:
        """Profile names in registration order."""
        return list(self._profiles)

    def list_regions(self) -> list[str]:
        return list(self._regions)

    def get(self, name: str) -> Profile:
        try:
            return self._profiles[name]
        except KeyError:
            raise ProfileNotFoundError(name) from None

    @property
    def active_name(self) -> str | None:
        return self._active

    @property
    def active_profile(self) -> Profile | None:
        return self._profiles.get(self._active) if self._active is not None else None

    def require_active(self) -> Profile:
        profile = self.active_profile
        if profile is None:
            raise NoActiveProfileError()
        return profile

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def restore(self) -> None:
        """Load stored profiles and reselect the last active one.

        Falls back to the "default" profile when nothing was persisted or the
        persisted profile no longer exists.
        """
        if self._store is not None:
            self._profiles = {p.name: p for p in self._store.load()}
            logger.debug(f"Loaded {len(self._profiles)} profile(s)")
            self.profiles_changed.emit()

        saved = self._settings.get(SettingsKeys.CURRENT_PROFILE_NAME)
        for candidate in (saved, DEFAULT_PROFILE_NAME):
            if candidate is not None and candidate in self._profiles:
                self.select_profile(candidate)
                return

    def create_profile(
        self,
        name: str,
        credentials: Credentials,
        region: str | None = None,
    ) -> Profile:
        """Validate, persist and register a new profile. Does not select it."""
        name = self._validate(name, credentials, region)
        if name in self._profiles:
            raise DuplicateProfileError(name)

        profile = Profile(name=name, credentials=credentials, region=region)
        if self._store is not None:
            self._store.save(profile)
        self._profiles[name] = profile
        logger.info(f"Profile '{name}' created")
        self.profiles_changed.emit()
        return profile

    def update_profile(
        self,
        name: str,
        credentials: Credentials,
        region: str | None = None,
    ) -> Profile:
        """Replace the credentials and region of an existing profile.

        Updating the active profile fires ``profile_selected`` again so that
        everything scoped to it reloads with the new credentials.
        """
        current = self.get(name)
        self._validate(name, credentials, region)
        profile = replace(current, credentials=credentials, region=region)
        if self._store is not None:
            self._store.save(profile)
        self._profiles[name] = profile
        logger.info(f"Profile '{name}' updated")
        self.profiles_changed.emit()
        if name == self._active:
            self.profile_selected.emit()
        return profile

    def select_profile(self, name: str) -> Profile:
        """Make name the active profile and notify dependents synchronously."""
        profile = self.get(name)
        self._active = name
        self._settings.put(SettingsKeys.CURRENT_PROFILE_NAME, name)
        logger.info(f"Profile '{name}' selected")
        self.profile_selected.emit()
        return profile

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate(self, name: str, credentials: Credentials, region: str | None) -> str:
        name = name.strip()
        if not name:
            raise ValidationError("Profile name must not be empty")
        if not _PROFILE_NAME.match(name):
            raise ValidationError(f"Invalid profile name '{name}'")
        if not _ACCESS_KEY_ID.match(credentials.access_key_id.strip()):
            raise ValidationError("Access key id is malformed")
        if not credentials.secret_access_key.strip():
            raise ValidationError("Secret access key must not be empty")
        if region is not None and self._regions and region not in self._regions:
            raise ValidationError(f"Unknown region '{region}'")
        return name


__all__ = [
    "DEFAULT_PROFILE_NAME",
    "ProfileRegistry",
    "ProfileStore",
]
