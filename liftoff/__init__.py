"""liftoff - profile, bootstrap, fleet and deployment state for game server hosting.

Example:

    from liftoff import create_workspace

    async with create_workspace() as ws:
        await ws.switch_profile("dev")
        await ws.bootstrap.bootstrap_account("my-game-staging")
        ws.fleet.select_fleet("my-anywhere-fleet")
        if ws.deployment.can_deploy:
            await ws.deployment.deploy()
"""

# Errors
from liftoff.core.exceptions import (
    ConfigurationError,
    DuplicateProfileError,
    LiftoffError,
    NoActiveProfileError,
    ProfileNotFoundError,
    ProviderError,
    ValidationError,
)

# Configuration
from liftoff.config import AWSConfig, DeploymentConfig, LiftoffConfig, load_config
from liftoff.logging import LogConfig, setup_logging, teardown_logging

# Storage
from liftoff.settings import JsonSettings, MemorySettings, SettingsKeys, SettingsStore

# Refresh and signals
from liftoff.refresh import RefreshOutcome, RefreshScheduler, Stream
from liftoff.signals import Signal, Subscription

# State machines
from liftoff.bootstrap import BootstrapCoordinator
from liftoff.deployment import DeploymentStatusMachine, classify_stack_status
from liftoff.fleet import FleetConnection, FleetElement, visible_elements
from liftoff.profiles import ProfileRegistry, ProfileStore

# Provider boundary
from liftoff.providers import CloudProvider

# Types
from liftoff.types import (
    BootstrapState,
    ClientSettings,
    Credentials,
    DeploymentRequest,
    DeploymentScenario,
    DeploymentStatus,
    FleetAttributes,
    FleetConnectionState,
    FleetParameters,
    Profile,
    StackInfo,
    StackStatus,
)

# Wiring
from liftoff.module import LiftoffModule
from liftoff.workspace import Workspace, create_workspace

__version__ = "0.1.0"

__all__ = [
    "AWSConfig",
    "BootstrapCoordinator",
    "BootstrapState",
    "ClientSettings",
    "CloudProvider",
    "ConfigurationError",
    "Credentials",
    "DeploymentConfig",
    "DeploymentRequest",
    "DeploymentScenario",
    "DeploymentStatus",
    "DeploymentStatusMachine",
    "DuplicateProfileError",
    "FleetAttributes",
    "FleetConnection",
    "FleetConnectionState",
    "FleetElement",
    "FleetParameters",
    "JsonSettings",
    "LiftoffConfig",
    "LiftoffError",
    "LiftoffModule",
    "LogConfig",
    "MemorySettings",
    "NoActiveProfileError",
    "Profile",
    "ProfileNotFoundError",
    "ProfileRegistry",
    "ProfileStore",
    "ProviderError",
    "RefreshOutcome",
    "RefreshScheduler",
    "SettingsKeys",
    "SettingsStore",
    "Signal",
    "StackInfo",
    "StackStatus",
    "Stream",
    "Subscription",
    "ValidationError",
    "Workspace",
    "classify_stack_status",
    "create_workspace",
    "load_config",
    "setup_logging",
    "teardown_logging",
    "visible_elements",
]
