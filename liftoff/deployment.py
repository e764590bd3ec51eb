"""Deployment stack lifecycle and the predicates derived from it.

The machine keeps the latest StackInfo of the active profile and answers
"can I act now" questions (deploy, delete, edit, launch, configure) as
pure functions of that snapshot plus bootstrap status, scenario,
parameters and stored client settings.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Final

from loguru import logger

from liftoff.bootstrap import BootstrapCoordinator
from liftoff.config import DeploymentConfig
from liftoff.core.exceptions import ProviderError, ValidationError
from liftoff.profiles import ProfileRegistry
from liftoff.providers import CloudProvider
from liftoff.refresh import RefreshOutcome, RefreshScheduler, Stream
from liftoff.settings import (
    SettingsKeys,
    SettingsStore,
    load_client_settings,
    save_client_settings,
)
from liftoff.signals import Signal
from liftoff.types import (
    ClientSettings,
    DeploymentRequest,
    DeploymentScenario,
    DeploymentStatus,
    FleetParameters,
    StackInfo,
    StackStatus,
)

STACK_EVENTS_URL: Final[str] = (
    "https://{region}.console.aws.amazon.com/cloudformation/home"
    "?region={region}#/stacks/events?stackId={stack_id}"
)

_LAUNCHABLE: Final[frozenset[StackStatus]] = frozenset({
    StackStatus.CREATE_COMPLETE,
    StackStatus.UPDATE_COMPLETE,
})


# =============================================================================
# Pure classification
# =============================================================================


def classify_stack_status(status: StackStatus | None) -> DeploymentStatus:
    """Map any stack status (or no stack) to exactly one UI classification.

    Unrecognised statuses fall back to NOT_DEPLOYED so the UI never blocks.
    """
    if status is None:
        return DeploymentStatus.NOT_DEPLOYED
    if status.is_failed:
        return DeploymentStatus.FAILED
    if status is StackStatus.DELETE_IN_PROGRESS:
        return DeploymentStatus.DELETING
    if status.is_rollback:
        return DeploymentStatus.ROLLING_BACK if status.is_in_progress else DeploymentStatus.ROLLED_BACK
    if status.is_in_progress:
        return DeploymentStatus.DEPLOYING
    if status.is_operation_done:
        return DeploymentStatus.DEPLOYED
    return DeploymentStatus.NOT_DEPLOYED


def is_deletable(status: StackStatus | None) -> bool:
    """A stack can be deleted once it exists and is not mid-transition."""
    if status is None or status in (StackStatus.UNKNOWN, StackStatus.DELETE_COMPLETE):
        return False
    return not status.is_in_progress


def is_client_configured(
    client: ClientSettings | None,
    region: str | None,
    stack: StackInfo,
) -> bool:
    """Stored client settings point exactly at the deployed stack."""
    return (
        client is not None
        and not client.is_anywhere
        and client.region == region
        and client.api_gateway_endpoint == stack.api_gateway_endpoint
        and client.user_pool_client_id == stack.user_pool_client_id
    )


# =============================================================================
# State machine
# =============================================================================


class DeploymentStatusMachine:
    """Tracks the deployment stack of the active profile.

    Signals:
        stack_info_changed: a refresh produced a different StackInfo.
        refreshed: a refresh was applied (fires even when nothing changed).
        changed: any input of the derived predicates changed.
        client_settings_changed: stored client settings changed.
        failed: a provider call failed; see ``last_error``.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        bootstrap: BootstrapCoordinator,
        provider: CloudProvider,
        scheduler: RefreshScheduler,
        settings: SettingsStore,
        config: DeploymentConfig | None = None,
    ) -> None:
        self._registry = registry
        self._bootstrap = bootstrap
        self._provider = provider
        self._scheduler = scheduler
        self._settings = settings
        self._config = config or DeploymentConfig()

        self._stack = StackInfo()
        self._scenario = self._load_scenario()
        self._parameters = FleetParameters.defaults(self._config.game_name, self._scenario)
        self._client = load_client_settings(settings)
        self._poll_tasks: list[asyncio.Task[None]] = []
        self.last_error: ProviderError | None = None

        self.stack_info_changed = Signal("stack_info_changed")
        self.refreshed = Signal("stack_refreshed")
        self.changed = Signal("deployment_changed")
        self.client_settings_changed = Signal("client_settings_changed")
        self.failed = Signal("deployment_failed")

        self._subscriptions = [
            registry.profile_selected.connect(self._on_profile_selected),
            bootstrap.changed.connect(self.changed.emit),
        ]

    def _load_scenario(self) -> DeploymentScenario:
        raw = self._settings.get(SettingsKeys.DEPLOYMENT_SCENARIO)
        try:
            return DeploymentScenario(raw) if raw else DeploymentScenario.SINGLE_REGION
        except ValueError:
            logger.warning(f"Ignoring unknown stored scenario '{raw}'")
            return DeploymentScenario.SINGLE_REGION

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def stack_info(self) -> StackInfo:
        return self._stack

    @property
    def stack_status(self) -> StackStatus | None:
        return self._stack.stack_status

    @property
    def scenario(self) -> DeploymentScenario:
        return self._scenario

    @property
    def parameters(self) -> FleetParameters:
        return self._parameters

    @property
    def client_settings(self) -> ClientSettings | None:
        return self._client

    @property
    def region(self) -> str | None:
        profile = self._registry.active_profile
        return profile.region if profile is not None else None

    # -------------------------------------------------------------------------
    # Derived predicates
    # -------------------------------------------------------------------------

    @property
    def status(self) -> DeploymentStatus:
        return classify_stack_status(self.stack_status)

    @property
    def has_current_stack(self) -> bool:
        return self.stack_status is not None

    @property
    def missing_parameters(self) -> tuple[str, ...]:
        return self._parameters.missing()

    @property
    def can_deploy(self) -> bool:
        return (
            self.stack_status is None
            and self._bootstrap.is_bootstrapped
            and self._parameters.is_valid
        )

    @property
    def can_delete(self) -> bool:
        return is_deletable(self.stack_status)

    @property
    def can_edit(self) -> bool:
        return self.stack_status is None

    @property
    def is_client_configured(self) -> bool:
        return is_client_configured(self._client, self.region, self._stack)

    @property
    def can_launch_client(self) -> bool:
        return self.stack_status in _LAUNCHABLE and self.is_client_configured

    @property
    def can_configure_client(self) -> bool:
        return self.stack_status in _LAUNCHABLE and not self.is_client_configured

    @property
    def launch_visible(self) -> bool:
        """FlexMatch clients are launched outside the editor."""
        return self._scenario is not DeploymentScenario.FLEXMATCH

    @property
    def status_link(self) -> str | None:
        """Console URL with the stack's event history."""
        if self._stack.stack_id is None or not self.region:
            return None
        return STACK_EVENTS_URL.format(region=self.region, stack_id=self._stack.stack_id)

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    def set_scenario(self, scenario: DeploymentScenario) -> None:
        if not self.can_edit:
            raise ValidationError("Scenario is locked while a stack exists")
        if scenario is self._scenario:
            return
        self._scenario = scenario
        self._settings.put(SettingsKeys.DEPLOYMENT_SCENARIO, scenario.value)
        self.changed.emit()

    def set_parameters(self, parameters: FleetParameters) -> None:
        if not self.can_edit:
            raise ValidationError("Parameters are locked while a stack exists")
        if parameters == self._parameters:
            return
        self._parameters = parameters
        self.changed.emit()

    def _on_profile_selected(self) -> None:
        self._scheduler.invalidate(Stream.STACK)
        self.last_error = None
        if self._stack != StackInfo():
            self._stack = StackInfo()
            self.stack_info_changed.emit()
        self.changed.emit()

    def _fail(self, error: ProviderError) -> None:
        self.last_error = error
        self.failed.emit()

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    async def refresh(self) -> RefreshOutcome:
        """Fetch the stack of the active profile and replace the snapshot."""
        profile = self._registry.require_active()
        return await self._scheduler.run(
            Stream.STACK,
            fetch=lambda: self._provider.get_stack_info(profile),
            apply=self._apply_stack,
            on_error=self._fail,
        )

    def _apply_stack(self, info: StackInfo) -> None:
        different = info != self._stack
        self._stack = info
        if different:
            logger.debug(f"Stack status now {info.stack_status}")
            self.stack_info_changed.emit()
            self.changed.emit()
        self.refreshed.emit()

    def reload_client_settings(self) -> bool:
        """Re-read stored client settings. Returns True if they changed."""
        client = load_client_settings(self._settings)
        if client == self._client:
            return False
        self._client = client
        self.client_settings_changed.emit()
        self.changed.emit()
        return True

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def deploy(self) -> bool:
        """Start the deployment stack, then refresh to pick up its status."""
        if not self.can_deploy:
            logger.debug(f"Deploy not available (missing: {', '.join(self.missing_parameters) or 'none'})")
            return False
        profile = self._registry.require_active()
        bucket = self._bootstrap.bootstrapped_bucket or self._bootstrap.state.bucket_name
        if bucket is None:
            return False
        request = DeploymentRequest(
            scenario=self._scenario,
            bucket=bucket,
            region=profile.region or self._bootstrap.state.region,
            parameters=self._parameters,
        )
        try:
            await self._provider.deploy_stack(profile, request)
        except ProviderError as e:
            logger.warning(f"Deployment failed to start: {e}")
            self._fail(e)
            return False

        logger.info(f"Deployment of '{self._parameters.game_name}' ({self._scenario.value}) started")
        if self._registry.active_name == profile.name:
            await self.refresh()
        return True

    async def delete(self) -> bool:
        """Delete the stack. Always refreshes afterwards, whatever the outcome."""
        if not self.can_delete:
            return False
        profile = self._registry.require_active()
        try:
            await self._provider.delete_stack(profile)
            logger.info(f"Stack deletion requested for profile '{profile.name}'")
            ok = True
        except ProviderError as e:
            logger.warning(f"Stack deletion failed: {e}")
            self._fail(e)
            ok = False
        finally:
            if self._registry.active_profile is not None:
                await self.refresh()
        return ok

    def configure_client(self) -> None:
        """Point the stored client settings at the current stack."""
        if not self.has_current_stack:
            raise ValidationError("No stack to configure the client for")
        save_client_settings(
            self._settings,
            ClientSettings(
                region=self.region,
                api_gateway_endpoint=self._stack.api_gateway_endpoint,
                user_pool_client_id=self._stack.user_pool_client_id,
                is_anywhere=False,
            ),
        )
        logger.info("Client settings configured for the deployed stack")
        self.reload_client_settings()

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    @property
    def polling(self) -> bool:
        return any(not t.done() for t in self._poll_tasks)

    def start_polling(self) -> None:
        """Poll the stack and client settings on their configured intervals.

        Each timer is re-armed only after the previous round finished, so
        rounds never overlap.
        """
        if self.polling:
            return
        loop = asyncio.get_running_loop()
        self._poll_tasks = [
            loop.create_task(self._poll_stack(), name="poll-stack"),
            loop.create_task(self._poll_client_settings(), name="poll-client-settings"),
        ]
        logger.debug(f"Stack polling started (interval={self._config.poll_interval}s)")

    async def stop_polling(self) -> None:
        tasks, self._poll_tasks = self._poll_tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        if tasks:
            logger.debug("Stack polling stopped")

    async def _poll_stack(self) -> None:
        while True:
            try:
                if self._registry.active_profile is not None:
                    await self.refresh()
            except Exception:
                logger.exception("Stack poll round failed")
            await asyncio.sleep(self._config.poll_interval)

    async def _poll_client_settings(self) -> None:
        while True:
            try:
                self.reload_client_settings()
            except Exception:
                logger.exception("Client settings poll round failed")
            await asyncio.sleep(self._config.client_settings_interval)

    async def close(self) -> None:
        await self.stop_polling()
        for sub in self._subscriptions:
            sub.unsubscribe()


__all__ = [
    "DeploymentStatusMachine",
    "classify_stack_status",
    "is_client_configured",
    "is_deletable",
]
