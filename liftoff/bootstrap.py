"""Bucket discovery, selection and creation for the active profile.

A profile is bootstrapped once a staging bucket is associated with it.
The association is persisted per profile in settings storage; only the
active profile's state is held in memory.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace
from typing import Final

from loguru import logger

from liftoff.core.exceptions import ProviderError, ValidationError
from liftoff.profiles import ProfileRegistry
from liftoff.providers import CloudProvider
from liftoff.refresh import RefreshOutcome, RefreshScheduler, Stream
from liftoff.settings import SettingsKeys, SettingsStore
from liftoff.signals import Signal
from liftoff.types import BootstrapState

_BUCKET_NAME: Final = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")


def validate_bucket_name(name: str) -> str:
    """Check S3 naming rules. Returns the name unchanged."""
    if not _BUCKET_NAME.match(name) or ".." in name:
        raise ValidationError(f"Invalid bucket name '{name}'")
    return name


class BootstrapCoordinator:
    """Owns the BootstrapState of the active profile.

    Signals:
        changed: bucket selection or bootstrap status changed.
        buckets_changed: the list of existing buckets was replaced.
        failed: a provider call failed; see ``last_error``.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        provider: CloudProvider,
        scheduler: RefreshScheduler,
        settings: SettingsStore,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._scheduler = scheduler
        self._settings = settings

        self._state = BootstrapState()
        self._saved_bucket: str | None = None
        self._buckets: tuple[str, ...] = ()
        self.last_error: ProviderError | None = None

        self.changed = Signal("bootstrap_changed")
        self.buckets_changed = Signal("buckets_changed")
        self.failed = Signal("bootstrap_failed")

        self._subscription = registry.profile_selected.connect(self._on_profile_selected)
        self._load()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def bucket_name(self) -> str | None:
        return self._state.bucket_name

    @property
    def is_bootstrapped(self) -> bool:
        return self._state.is_bootstrapped

    @property
    def bootstrapped_bucket(self) -> str | None:
        """The bucket persisted for the active profile."""
        return self._saved_bucket

    @property
    def buckets(self) -> tuple[str, ...]:
        """Buckets from the most recent successful refresh."""
        return self._buckets

    @property
    def needs_bootstrap(self) -> bool:
        return self._registry.active_profile is not None and not self.is_bootstrapped

    def _load(self) -> None:
        profile = self._registry.active_profile
        if profile is None:
            self._saved_bucket = None
            self._state = BootstrapState()
            return
        self._saved_bucket = self._settings.get(SettingsKeys.bucket_for(profile.name))
        self._state = BootstrapState(
            region=profile.region or "",
            bucket_name=self._saved_bucket,
            is_bootstrapped=self._saved_bucket is not None,
        )

    def _on_profile_selected(self) -> None:
        self._scheduler.invalidate(Stream.BUCKETS)
        self._buckets = ()
        self.last_error = None
        self._load()
        self.buckets_changed.emit()
        self.changed.emit()

    def _fail(self, error: ProviderError) -> None:
        self.last_error = error
        self.failed.emit()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def refresh_existing_buckets(self) -> RefreshOutcome:
        """List buckets visible to the active profile.

        A newer call, or a profile switch, supersedes this one; a superseded
        result is dropped without touching state.
        """
        profile = self._registry.require_active()
        return await self._scheduler.run(
            Stream.BUCKETS,
            fetch=lambda: self._provider.list_buckets(profile),
            apply=self._apply_buckets,
            on_error=self._fail,
        )

    def _apply_buckets(self, names: Sequence[str]) -> None:
        self._buckets = tuple(names)
        self.last_error = None
        self.buckets_changed.emit()

    def select_bucket(self, name: str) -> bool:
        """Select a fetched bucket or the profile's bootstrapped one. Returns False otherwise."""
        if name not in self._buckets and name != self._saved_bucket:
            logger.debug(f"Bucket '{name}' is neither listed nor bootstrapped, selection rejected")
            return False
        if name != self._state.bucket_name:
            self._state = replace(self._state, bucket_name=name)
            self.changed.emit()
        return True

    def save_selected_bucket(self) -> None:
        """Persist the selected bucket as the active profile's bootstrap bucket."""
        profile = self._registry.require_active()
        bucket = self._state.bucket_name
        if bucket is None:
            raise ValidationError("No bucket selected")
        self._settings.put(SettingsKeys.bucket_for(profile.name), bucket)
        self._saved_bucket = bucket
        if not self._state.is_bootstrapped:
            self._state = replace(self._state, is_bootstrapped=True)
            self.changed.emit()
        logger.info(f"Profile '{profile.name}' bootstrapped with bucket '{bucket}'")

    async def bootstrap_account(self, bucket_name: str) -> bool:
        """Create the bucket if needed and bootstrap the active profile with it.

        Returns False when the provider call fails; state is left unchanged
        and ``failed`` fires. The association is always persisted for the
        profile that was active when the call started.
        """
        validate_bucket_name(bucket_name)
        profile = self._registry.require_active()

        if bucket_name not in self._buckets:
            try:
                await self._provider.create_bucket(profile, bucket_name)
            except ProviderError as e:
                logger.warning(f"Bootstrap of '{profile.name}' failed: {e}")
                self._fail(e)
                return False
            logger.info(f"Bucket '{bucket_name}' created for profile '{profile.name}'")

        self._settings.put(SettingsKeys.bucket_for(profile.name), bucket_name)
        if self._registry.active_name != profile.name:
            logger.debug(f"Profile changed while bootstrapping '{profile.name}', in-memory state kept")
            return True

        if bucket_name not in self._buckets:
            self._buckets = (*self._buckets, bucket_name)
            self.buckets_changed.emit()
        self._saved_bucket = bucket_name
        self._state = BootstrapState(
            region=profile.region or "",
            bucket_name=bucket_name,
            is_bootstrapped=True,
        )
        self.last_error = None
        logger.info(f"Profile '{profile.name}' bootstrapped with bucket '{bucket_name}'")
        self.changed.emit()
        return True

    def close(self) -> None:
        self._subscription.unsubscribe()


__all__ = [
    "BootstrapCoordinator",
    "validate_bucket_name",
]
