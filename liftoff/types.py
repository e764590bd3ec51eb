"""Value types shared across liftoff components.

Everything here is an immutable snapshot. State owners replace values
wholesale (``dataclasses.replace``) instead of mutating them in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import Final

from loguru import logger

from liftoff.core.exceptions import ValidationError

# =============================================================================
# Profiles
# =============================================================================


@dataclass(frozen=True, slots=True)
class Credentials:
    """Opaque credential material for a profile. Secrets never show in repr."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class Profile:
    """Named credential profile.

    Replacing credentials produces a new Profile; a registered value is
    never changed in place.
    """

    name: str
    credentials: Credentials
    region: str | None = None


# =============================================================================
# Bootstrap
# =============================================================================


@dataclass(frozen=True, slots=True)
class BootstrapState:
    """Bucket association of a single profile."""

    region: str = ""
    bucket_name: str | None = None
    is_bootstrapped: bool = False

    def __post_init__(self) -> None:
        if self.is_bootstrapped and self.bucket_name is None:
            raise ValidationError("A bootstrapped profile must have a bucket")


# =============================================================================
# Stacks
# =============================================================================


class StackStatus(StrEnum):
    """CloudFormation stack statuses, plus UNKNOWN for unrecognised values."""

    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    CREATE_FAILED = "CREATE_FAILED"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    ROLLBACK_IN_PROGRESS = "ROLLBACK_IN_PROGRESS"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"
    ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETE_FAILED = "DELETE_FAILED"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
    UPDATE_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_COMPLETE = "UPDATE_COMPLETE"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPDATE_ROLLBACK_IN_PROGRESS = "UPDATE_ROLLBACK_IN_PROGRESS"
    UPDATE_ROLLBACK_FAILED = "UPDATE_ROLLBACK_FAILED"
    UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"
    REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"
    IMPORT_IN_PROGRESS = "IMPORT_IN_PROGRESS"
    IMPORT_COMPLETE = "IMPORT_COMPLETE"
    IMPORT_ROLLBACK_IN_PROGRESS = "IMPORT_ROLLBACK_IN_PROGRESS"
    IMPORT_ROLLBACK_FAILED = "IMPORT_ROLLBACK_FAILED"
    IMPORT_ROLLBACK_COMPLETE = "IMPORT_ROLLBACK_COMPLETE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: str | None) -> StackStatus | None:
        """Parse a provider status string. Unrecognised values become UNKNOWN."""
        if raw is None:
            return None
        try:
            return cls(raw)
        except ValueError:
            logger.warning(f"Unrecognised stack status '{raw}', treating as UNKNOWN")
            return cls.UNKNOWN

    @property
    def is_in_progress(self) -> bool:
        return self.value.endswith("_IN_PROGRESS")

    @property
    def is_failed(self) -> bool:
        return self.value.endswith("_FAILED")

    @property
    def is_rollback(self) -> bool:
        return "ROLLBACK" in self.value

    @property
    def is_operation_done(self) -> bool:
        return self in _OPERATION_DONE


_OPERATION_DONE: Final[frozenset[StackStatus]] = frozenset({
    StackStatus.CREATE_COMPLETE,
    StackStatus.UPDATE_COMPLETE,
    StackStatus.IMPORT_COMPLETE,
})


@dataclass(frozen=True, slots=True)
class StackInfo:
    """Snapshot of the deployment stack. ``stack_status is None`` means no stack."""

    stack_id: str | None = None
    stack_status: StackStatus | None = None
    api_gateway_endpoint: str | None = None
    user_pool_client_id: str | None = None


class DeploymentScenario(StrEnum):
    SINGLE_REGION = "SingleRegion"
    FLEXMATCH = "FlexMatch"


class DeploymentStatus(Enum):
    """UI classification of a stack status."""

    NOT_DEPLOYED = "not_deployed"
    DEPLOYING = "deploying"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"
    DELETING = "deleting"
    DEPLOYED = "deployed"
    FAILED = "failed"

    @property
    def is_error(self) -> bool:
        """Whether the status should be surfaced as an error to the user."""
        return self in (
            DeploymentStatus.FAILED,
            DeploymentStatus.ROLLING_BACK,
            DeploymentStatus.ROLLED_BACK,
        )


OPERATING_SYSTEMS: Final[tuple[str, ...]] = (
    "AMAZON_LINUX_2",
    "AMAZON_LINUX_2023",
    "WINDOWS_2016",
    "WINDOWS_2022",
)


@dataclass(frozen=True, slots=True)
class FleetParameters:
    """Parameters of the managed fleet deployed by the stack."""

    game_name: str = ""
    fleet_name: str = ""
    build_name: str = ""
    launch_parameters: str = ""
    server_file: str | None = None
    server_folder: str | None = None
    operating_system: str = "AMAZON_LINUX_2"

    @classmethod
    def defaults(cls, game_name: str, scenario: DeploymentScenario) -> FleetParameters:
        """Default parameters derived from the game name and scenario."""
        return cls(
            game_name=game_name,
            fleet_name=f"{game_name}-ManagedFleet",
            build_name=f"{game_name}-{scenario.value.replace(' ', '_')}-Build",
        )

    def missing(self) -> tuple[str, ...]:
        """Names of parameters that are absent or invalid."""
        missing: list[str] = []
        for name in ("game_name", "fleet_name", "build_name", "server_file", "server_folder"):
            value = getattr(self, name)
            if value is None or not value.strip():
                missing.append(name)
        if self.operating_system not in OPERATING_SYSTEMS:
            missing.append("operating_system")
        return tuple(missing)

    @property
    def is_valid(self) -> bool:
        return not self.missing()


@dataclass(frozen=True, slots=True)
class DeploymentRequest:
    """Everything a provider needs to start a deployment stack."""

    scenario: DeploymentScenario
    bucket: str
    region: str
    parameters: FleetParameters

    def stack_parameters(self) -> dict[str, str]:
        """CloudFormation parameter map for the stack template."""
        p = self.parameters
        return {
            "GameNameParameter": p.game_name,
            "FleetNameParameter": p.fleet_name,
            "BuildNameParameter": p.build_name,
            "LaunchParametersParameter": p.launch_parameters,
            "BuildOperatingSystemParameter": p.operating_system,
            "BuildServerFileParameter": p.server_file or "",
            "BuildS3BucketParameter": self.bucket,
        }


@dataclass(frozen=True, slots=True)
class ClientSettings:
    """Locally stored settings the game client uses to reach the backend."""

    region: str | None = None
    api_gateway_endpoint: str | None = None
    user_pool_client_id: str | None = None
    is_anywhere: bool = False


# =============================================================================
# Fleets
# =============================================================================


@dataclass(frozen=True, slots=True)
class FleetAttributes:
    """Immutable fleet snapshot from a list query."""

    fleet_id: str
    name: str
    region: str
    status: str | None = None


class FleetConnectionState(Enum):
    NOT_CREATED = "not_created"
    CREATING = "creating"
    SELECTING = "selecting"
    SELECTED = "selected"


__all__ = [
    "BootstrapState",
    "ClientSettings",
    "Credentials",
    "DeploymentRequest",
    "DeploymentScenario",
    "DeploymentStatus",
    "FleetAttributes",
    "FleetConnectionState",
    "FleetParameters",
    "OPERATING_SYSTEMS",
    "Profile",
    "StackInfo",
    "StackStatus",
]
