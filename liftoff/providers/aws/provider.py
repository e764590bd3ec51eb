"""CloudProvider implementation on top of aioboto3.

S3 holds staging buckets, GameLift Anywhere fleets are created against a
custom location, and the deployment stack is a CloudFormation stack.
SDK errors are translated into ProviderError at this boundary; read
calls are retried on throttling before giving up.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, Final

import botocore.session
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from liftoff.config import DEFAULT_STACK_NAME, AWSConfig
from liftoff.core.exceptions import ProviderError
from liftoff.providers.aws.clients import SessionFactory, region_of
from liftoff.types import DeploymentRequest, FleetAttributes, Profile, StackInfo, StackStatus

_THROTTLING_CODES: Final = frozenset({
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "SlowDown",
})

_STACK_CAPABILITIES: Final = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND"]

ANYWHERE_COMPUTE_TYPE: Final = "ANYWHERE"
OUTPUT_API_GATEWAY_ENDPOINT: Final = "ApiGatewayEndpoint"
OUTPUT_USER_POOL_CLIENT_ID: Final = "UserPoolClientId"


def _error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "")
    return ""


def _is_throttling(exc: BaseException) -> bool:
    return _error_code(exc) in _THROTTLING_CODES


_read_retry = retry(
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=0.5, max=8),
    retry=retry_if_exception(_is_throttling),
    reraise=True,
)


@asynccontextmanager
async def _translate(operation: str) -> AsyncIterator[None]:
    """Re-raise SDK failures as ProviderError."""
    try:
        yield
    except ClientError as e:
        error = e.response.get("Error", {})
        raise ProviderError(operation, error.get("Message", str(e)), error.get("Code")) from e
    except BotoCoreError as e:
        raise ProviderError(operation, str(e)) from e


def location_name(fleet_name: str) -> str:
    """Custom location registered for an Anywhere fleet."""
    return f"custom-{fleet_name}"


def _stack_info(stack: dict[str, Any]) -> StackInfo:
    status = StackStatus.parse(stack.get("StackStatus"))
    if status is StackStatus.DELETE_COMPLETE:
        return StackInfo()
    outputs = {o["OutputKey"]: o.get("OutputValue") for o in stack.get("Outputs", [])}
    return StackInfo(
        stack_id=stack.get("StackId"),
        stack_status=status,
        api_gateway_endpoint=outputs.get(OUTPUT_API_GATEWAY_ENDPOINT),
        user_pool_client_id=outputs.get(OUTPUT_USER_POOL_CLIENT_ID),
    )


class AWSProvider:
    """CloudProvider backed by S3, GameLift and CloudFormation."""

    def __init__(
        self,
        sessions: SessionFactory | None = None,
        config: AWSConfig | None = None,
        stack_name: str = DEFAULT_STACK_NAME,
        regions: Sequence[str] | None = None,
    ) -> None:
        self._sessions = sessions or SessionFactory()
        self._config = config or AWSConfig()
        self._stack_name = stack_name
        self._regions = tuple(regions) if regions is not None else None

    def list_regions(self) -> Sequence[str]:
        """Regions where GameLift is available, from botocore's endpoint data."""
        if self._regions is None:
            self._regions = tuple(botocore.session.get_session().get_available_regions("gamelift"))
        return self._regions

    # -------------------------------------------------------------------------
    # S3
    # -------------------------------------------------------------------------

    async def list_buckets(self, profile: Profile) -> list[str]:
        @_read_retry
        async def fetch() -> list[str]:
            async with self._sessions.client(profile, "s3") as s3:
                response = await s3.list_buckets()
            return [b["Name"] for b in response.get("Buckets", [])]

        async with _translate("ListBuckets"):
            return await fetch()

    async def create_bucket(self, profile: Profile, name: str) -> None:
        region = region_of(profile)
        kwargs: dict[str, Any] = {"Bucket": name}
        # us-east-1 rejects an explicit location constraint
        if region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}

        async with _translate("CreateBucket"):
            async with self._sessions.client(profile, "s3") as s3:
                try:
                    await s3.create_bucket(**kwargs)
                except ClientError as e:
                    if _error_code(e) != "BucketAlreadyOwnedByYou":
                        raise
                    logger.debug(f"Bucket '{name}' already owned by '{profile.name}'")
                    return
        logger.info(f"Created bucket '{name}' in {region}")

    # -------------------------------------------------------------------------
    # GameLift
    # -------------------------------------------------------------------------

    async def list_fleets(self, profile: Profile) -> list[FleetAttributes]:
        region = region_of(profile)

        @_read_retry
        async def fetch() -> list[FleetAttributes]:
            fleets: list[FleetAttributes] = []
            async with self._sessions.client(profile, "gamelift") as gamelift:
                paginator = gamelift.get_paginator("describe_fleet_attributes")
                async for page in paginator.paginate():
                    for raw in page.get("FleetAttributes", []):
                        if raw.get("ComputeType") != ANYWHERE_COMPUTE_TYPE:
                            continue
                        fleets.append(
                            FleetAttributes(
                                fleet_id=raw["FleetId"],
                                name=raw.get("Name", raw["FleetId"]),
                                region=region,
                                status=raw.get("Status"),
                            )
                        )
            return fleets

        async with _translate("DescribeFleetAttributes"):
            return await fetch()

    async def create_fleet(self, profile: Profile, name: str) -> FleetAttributes:
        location = location_name(name)
        async with _translate("CreateFleet"):
            async with self._sessions.client(profile, "gamelift") as gamelift:
                try:
                    await gamelift.create_location(LocationName=location)
                except ClientError as e:
                    if _error_code(e) != "ConflictException":
                        raise
                    logger.debug(f"Custom location '{location}' already exists")
                response = await gamelift.create_fleet(
                    Name=name,
                    ComputeType=ANYWHERE_COMPUTE_TYPE,
                    Locations=[{"Location": location}],
                )
        raw = response["FleetAttributes"]
        logger.info(f"Created Anywhere fleet '{name}' ({raw['FleetId']})")
        return FleetAttributes(
            fleet_id=raw["FleetId"],
            name=raw.get("Name", name),
            region=region_of(profile),
            status=raw.get("Status"),
        )

    # -------------------------------------------------------------------------
    # CloudFormation
    # -------------------------------------------------------------------------

    async def get_stack_info(self, profile: Profile) -> StackInfo:
        @_read_retry
        async def fetch() -> StackInfo:
            async with self._sessions.client(profile, "cloudformation") as cfn:
                try:
                    response = await cfn.describe_stacks(StackName=self._stack_name)
                except ClientError as e:
                    if _error_code(e) == "ValidationError" and "does not exist" in str(e):
                        return StackInfo()
                    raise
            stacks = response.get("Stacks", [])
            return _stack_info(stacks[0]) if stacks else StackInfo()

        async with _translate("DescribeStacks"):
            return await fetch()

    async def deploy_stack(self, profile: Profile, request: DeploymentRequest) -> None:
        template_url = self._config.template_url.format(
            bucket=request.bucket,
            region=request.region,
            scenario=request.scenario.value,
        )
        parameters = [
            {"ParameterKey": key, "ParameterValue": value}
            for key, value in request.stack_parameters().items()
        ]
        async with _translate("CreateStack"):
            async with self._sessions.client(profile, "cloudformation") as cfn:
                response = await cfn.create_stack(
                    StackName=self._stack_name,
                    TemplateURL=template_url,
                    Parameters=parameters,
                    Capabilities=_STACK_CAPABILITIES,
                )
        logger.info(f"Stack '{self._stack_name}' creation started ({response.get('StackId')})")

    async def delete_stack(self, profile: Profile) -> None:
        async with _translate("DeleteStack"):
            async with self._sessions.client(profile, "cloudformation") as cfn:
                await cfn.delete_stack(StackName=self._stack_name)
        logger.info(f"Stack '{self._stack_name}' deletion started")


__all__ = [
    "AWSProvider",
    "location_name",
]
