"""Workspace facade: one registry, its three state machines, one scheduler.

Example:
    async with create_workspace() as ws:
        await ws.switch_profile("dev")
        if ws.bootstrap.needs_bootstrap:
            await ws.bootstrap.bootstrap_account("my-staging-bucket")
        await ws.deployment.deploy()
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from types import TracebackType

from injector import Injector, Module
from loguru import logger

from liftoff.bootstrap import BootstrapCoordinator
from liftoff.config import LiftoffConfig, load_config
from liftoff.deployment import DeploymentStatusMachine
from liftoff.fleet import FleetConnection
from liftoff.logging import setup_logging, teardown_logging
from liftoff.profiles import ProfileRegistry
from liftoff.refresh import RefreshOutcome, RefreshScheduler, Stream
from liftoff.types import Profile


class Workspace:
    """Everything scoped to the active profile, kept consistent on switches."""

    def __init__(
        self,
        registry: ProfileRegistry,
        bootstrap: BootstrapCoordinator,
        fleet: FleetConnection,
        deployment: DeploymentStatusMachine,
        scheduler: RefreshScheduler,
    ) -> None:
        self.registry = registry
        self.bootstrap = bootstrap
        self.fleet = fleet
        self.deployment = deployment
        self.scheduler = scheduler
        self._log_handlers: list[int] = []

    async def switch_profile(self, name: str) -> Profile:
        """Select name, then reload buckets, fleets and stack concurrently.

        Every dependent has reset its profile-scoped state before the
        reloads start, so results for the previous profile are discarded.
        """
        profile = self.registry.select_profile(name)
        await self.refresh_all()
        return profile

    async def refresh_all(self) -> dict[Stream, RefreshOutcome]:
        """Reload every stream of the active profile. Empty when none is active."""
        if self.registry.active_profile is None:
            return {}
        buckets, fleets, stack = await asyncio.gather(
            self.bootstrap.refresh_existing_buckets(),
            self.fleet.initialize(),
            self.deployment.refresh(),
        )
        return {Stream.BUCKETS: buckets, Stream.FLEETS: fleets, Stream.STACK: stack}

    async def close(self) -> None:
        await self.deployment.close()
        self.fleet.close()
        self.bootstrap.close()
        await self.scheduler.close()
        logger.debug("Workspace closed")
        if self._log_handlers:
            teardown_logging(self._log_handlers)
            self._log_handlers = []

    async def __aenter__(self) -> Workspace:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def create_workspace(
    config: LiftoffConfig | None = None,
    *,
    modules: Sequence[Module] | None = None,
    project_dir: Path | None = None,
) -> Workspace:
    """Build a workspace and restore the last active profile.

    Args:
        config: Explicit configuration. Loaded from TOML files when omitted.
        modules: Modules binding CloudProvider and ProfileStore. Defaults to
            AWSModule.
        project_dir: Directory holding liftoff.toml.
    """
    from liftoff.module import LiftoffModule
    from liftoff.providers.aws import AWSModule

    config = config or load_config(project_dir=project_dir)
    handlers = setup_logging(config.logging) if config.logging else []

    injector = Injector([LiftoffModule(config), *(modules if modules is not None else [AWSModule()])])
    workspace = injector.get(Workspace)
    workspace._log_handlers = handlers
    workspace.registry.restore()
    logger.debug(f"Workspace ready (active profile: {workspace.registry.active_name})")
    return workspace


__all__ = ["Workspace", "create_workspace"]
