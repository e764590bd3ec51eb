"""Central DI module for liftoff.

Provides the shared components of one workspace:
- SettingsStore and RefreshScheduler (singletons)
- ProfileRegistry and the three state machines wired to it
- Workspace, the facade tying them together

A CloudProvider and a ProfileStore must be bound by another module,
normally AWSModule.
"""

from __future__ import annotations

from injector import Module, provider, singleton

from liftoff.bootstrap import BootstrapCoordinator
from liftoff.config import LiftoffConfig
from liftoff.deployment import DeploymentStatusMachine
from liftoff.fleet import FleetConnection
from liftoff.profiles import ProfileRegistry, ProfileStore
from liftoff.providers import CloudProvider
from liftoff.refresh import RefreshScheduler
from liftoff.settings import JsonSettings, SettingsStore
from liftoff.workspace import Workspace


class LiftoffModule(Module):
    """Core module providing shared dependencies.

    Usage:
        injector = Injector([LiftoffModule(config), AWSModule()])
        workspace = injector.get(Workspace)
    """

    def __init__(
        self,
        config: LiftoffConfig | None = None,
        settings: SettingsStore | None = None,
    ) -> None:
        self._config = config or LiftoffConfig()
        self._settings = settings

    @singleton
    @provider
    def provide_config(self) -> LiftoffConfig:
        return self._config

    @singleton
    @provider
    def provide_settings(self) -> SettingsStore:
        return self._settings or JsonSettings(self._config.settings_path)

    @singleton
    @provider
    def provide_scheduler(self) -> RefreshScheduler:
        return RefreshScheduler()

    @singleton
    @provider
    def provide_registry(
        self,
        settings: SettingsStore,
        store: ProfileStore,
        cloud: CloudProvider,
    ) -> ProfileRegistry:
        return ProfileRegistry(settings, store=store, regions=cloud.list_regions())

    @singleton
    @provider
    def provide_bootstrap(
        self,
        registry: ProfileRegistry,
        cloud: CloudProvider,
        scheduler: RefreshScheduler,
        settings: SettingsStore,
    ) -> BootstrapCoordinator:
        return BootstrapCoordinator(registry, cloud, scheduler, settings)

    @singleton
    @provider
    def provide_fleet(
        self,
        registry: ProfileRegistry,
        cloud: CloudProvider,
        scheduler: RefreshScheduler,
        settings: SettingsStore,
    ) -> FleetConnection:
        return FleetConnection(registry, cloud, scheduler, settings)

    @singleton
    @provider
    def provide_deployment(
        self,
        registry: ProfileRegistry,
        bootstrap: BootstrapCoordinator,
        cloud: CloudProvider,
        scheduler: RefreshScheduler,
        settings: SettingsStore,
    ) -> DeploymentStatusMachine:
        return DeploymentStatusMachine(
            registry, bootstrap, cloud, scheduler, settings, self._config.deployment
        )

    @singleton
    @provider
    def provide_workspace(
        self,
        registry: ProfileRegistry,
        bootstrap: BootstrapCoordinator,
        fleet: FleetConnection,
        deployment: DeploymentStatusMachine,
        scheduler: RefreshScheduler,
    ) -> Workspace:
        return Workspace(registry, bootstrap, fleet, deployment, scheduler)


__all__ = ["LiftoffModule"]
