from __future__ import annotations

import asyncio

import pytest

from liftoff.bootstrap import BootstrapCoordinator, validate_bucket_name
from liftoff.core.exceptions import NoActiveProfileError, ValidationError
from liftoff.profiles import ProfileRegistry
from liftoff.refresh import RefreshOutcome
from liftoff.settings import SettingsKeys
from tests.conftest import FakeProvider, settle

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


class TestBucketNames:
    @pytest.mark.parametrize("name", ["my-bucket", "game.assets.2024", "abc"])
    def test_valid(self, name: str):
        assert validate_bucket_name(name) == name

    @pytest.mark.parametrize("name", ["", "ab", "UpperCase", "-dash", "dots..twice", "x" * 64])
    def test_invalid(self, name: str):
        with pytest.raises(ValidationError):
            validate_bucket_name(name)


class TestSelection:
    async def test_select_bucket_from_list(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider
    ):
        provider.buckets["p1"] = ["b1", "b2"]
        registry.select_profile("p1")
        await bootstrap.refresh_existing_buckets()

        assert bootstrap.select_bucket("b2") is True
        assert bootstrap.bucket_name == "b2"
        assert bootstrap.select_bucket("b3") is False
        assert bootstrap.bucket_name == "b2"
        assert bootstrap.is_bootstrapped is False

    def test_reselect_bootstrapped_bucket_before_refresh(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, settings
    ):
        settings.put(SettingsKeys.bucket_for("p1"), "saved-bucket")
        registry.select_profile("p1")

        assert bootstrap.buckets == ()
        assert bootstrap.select_bucket("saved-bucket") is True
        assert bootstrap.bucket_name == "saved-bucket"
        assert bootstrap.select_bucket("other-bucket") is False
        assert bootstrap.bucket_name == "saved-bucket"

    async def test_select_emits_only_on_change(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider, count_emits
    ):
        provider.buckets["p1"] = ["b1"]
        registry.select_profile("p1")
        await bootstrap.refresh_existing_buckets()
        changes = count_emits(bootstrap.changed)

        bootstrap.select_bucket("b1")
        bootstrap.select_bucket("b1")

        assert changes.count == 1

    async def test_save_selected_bucket(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider, settings
    ):
        provider.buckets["p1"] = ["b1"]
        registry.select_profile("p1")
        await bootstrap.refresh_existing_buckets()
        bootstrap.select_bucket("b1")

        bootstrap.save_selected_bucket()

        assert bootstrap.is_bootstrapped
        assert bootstrap.bootstrapped_bucket == "b1"
        assert settings.get(SettingsKeys.bucket_for("p1")) == "b1"

    def test_save_without_selection(self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator):
        registry.select_profile("p1")
        with pytest.raises(ValidationError):
            bootstrap.save_selected_bucket()

    async def test_refresh_requires_active_profile(self, bootstrap: BootstrapCoordinator):
        with pytest.raises(NoActiveProfileError):
            await bootstrap.refresh_existing_buckets()


class TestRefresh:
    async def test_failure_keeps_previous_list(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider, count_emits
    ):
        provider.buckets["p1"] = ["b1"]
        registry.select_profile("p1")
        await bootstrap.refresh_existing_buckets()
        failures = count_emits(bootstrap.failed)
        provider.fail("list_buckets")

        outcome = await bootstrap.refresh_existing_buckets()

        assert outcome is RefreshOutcome.FAILED
        assert bootstrap.buckets == ("b1",)
        assert bootstrap.last_error is not None
        assert bootstrap.last_error.code == "AccessDenied"
        assert failures.count == 1

    async def test_profile_switch_discards_outstanding_refresh(
        self,
        registry: ProfileRegistry,
        bootstrap: BootstrapCoordinator,
        provider: FakeProvider,
        settings,
        count_emits,
    ):
        provider.buckets["p1"] = ["b1", "b2"]
        settings.put(SettingsKeys.bucket_for("p2"), "p2-bucket")
        registry.select_profile("p1")
        gate = provider.gate("list_buckets", "p1")
        pending = asyncio.create_task(bootstrap.refresh_existing_buckets())
        await settle()

        registry.select_profile("p2")
        bucket_changes = count_emits(bootstrap.buckets_changed)
        gate.set()

        assert await pending is RefreshOutcome.DISCARDED
        assert bootstrap.buckets == ()
        assert bootstrap.bucket_name == "p2-bucket"
        assert bootstrap.is_bootstrapped
        assert bucket_changes.count == 0

    async def test_newer_refresh_wins(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider
    ):
        registry.select_profile("p1")
        provider.buckets["p1"] = ["old"]
        gate = provider.gate("list_buckets")
        first = asyncio.create_task(bootstrap.refresh_existing_buckets())
        await settle()
        second = asyncio.create_task(bootstrap.refresh_existing_buckets())
        await settle()
        provider.buckets["p1"] = ["new"]
        gate.set()

        outcomes = await asyncio.gather(first, second)

        assert outcomes == [RefreshOutcome.DISCARDED, RefreshOutcome.APPLIED]
        assert bootstrap.buckets == ("new",)


class TestBootstrapAccount:
    async def test_creates_missing_bucket(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider, settings
    ):
        registry.select_profile("p1")
        assert bootstrap.needs_bootstrap

        assert await bootstrap.bootstrap_account("game-staging") is True

        assert provider.count("create_bucket") == 1
        assert bootstrap.is_bootstrapped
        assert bootstrap.bucket_name == "game-staging"
        assert "game-staging" in bootstrap.buckets
        assert settings.get(SettingsKeys.bucket_for("p1")) == "game-staging"
        assert not bootstrap.needs_bootstrap

    async def test_existing_bucket_is_not_recreated(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider
    ):
        provider.buckets["p1"] = ["b1"]
        registry.select_profile("p1")
        await bootstrap.refresh_existing_buckets()

        assert await bootstrap.bootstrap_account("b1") is True
        assert provider.count("create_bucket") == 0

    async def test_invalid_name_never_reaches_provider(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider
    ):
        registry.select_profile("p1")
        with pytest.raises(ValidationError):
            await bootstrap.bootstrap_account("Bad_Name")
        assert provider.calls == []

    async def test_provider_failure_leaves_state(
        self,
        registry: ProfileRegistry,
        bootstrap: BootstrapCoordinator,
        provider: FakeProvider,
        settings,
        count_emits,
    ):
        registry.select_profile("p1")
        failures = count_emits(bootstrap.failed)
        changes = count_emits(bootstrap.changed)
        provider.fail("create_bucket", "bucket name taken", "BucketAlreadyExists")

        assert await bootstrap.bootstrap_account("taken-bucket") is False

        assert not bootstrap.is_bootstrapped
        assert bootstrap.bucket_name is None
        assert settings.get(SettingsKeys.bucket_for("p1")) is None
        assert bootstrap.last_error is not None
        assert failures.count == 1
        assert changes.count == 0

    async def test_profile_switch_during_creation(
        self, registry: ProfileRegistry, bootstrap: BootstrapCoordinator, provider: FakeProvider, settings
    ):
        registry.select_profile("p1")
        gate = provider.gate("create_bucket")
        pending = asyncio.create_task(bootstrap.bootstrap_account("p1-bucket"))
        await settle()

        registry.select_profile("p2")
        gate.set()

        assert await pending is True
        assert settings.get(SettingsKeys.bucket_for("p1")) == "p1-bucket"
        assert not bootstrap.is_bootstrapped
        assert bootstrap.bucket_name is None

        registry.select_profile("p1")
        assert bootstrap.is_bootstrapped
        assert bootstrap.bucket_name == "p1-bucket"
