"""Cloud provider boundary.

State machines talk to the cloud exclusively through CloudProvider.
Adapters translate SDK failures into ProviderError; nothing else may
escape an adapter for an expected failure.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from liftoff.types import DeploymentRequest, FleetAttributes, Profile, StackInfo


@runtime_checkable
class CloudProvider(Protocol):
    def list_regions(self) -> Sequence[str]: ...

    async def list_buckets(self, profile: Profile) -> Sequence[str]: ...

    async def create_bucket(self, profile: Profile, name: str) -> None: ...

    async def list_fleets(self, profile: Profile) -> Sequence[FleetAttributes]: ...

    async def create_fleet(self, profile: Profile, name: str) -> FleetAttributes: ...

    async def get_stack_info(self, profile: Profile) -> StackInfo: ...

    async def deploy_stack(self, profile: Profile, request: DeploymentRequest) -> None: ...

    async def delete_stack(self, profile: Profile) -> None: ...


__all__ = ["CloudProvider"]
