"""Fleet connection: pick an existing fleet or create a new one.

States:
    NOT_CREATED  no fleet exists yet, the create form is shown
    CREATING     the create form is shown (possibly with a create in flight)
    SELECTING    fleets exist, none picked yet
    SELECTED     a fleet is picked; its id and status are shown

Which UI elements are visible is a pure function of the state, see
visible_elements().
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from types import MappingProxyType
from typing import Final

from loguru import logger

from liftoff.core.exceptions import ProviderError, ValidationError
from liftoff.profiles import ProfileRegistry
from liftoff.providers import CloudProvider
from liftoff.refresh import RefreshOutcome, RefreshScheduler, Stream
from liftoff.settings import SettingsKeys, SettingsStore
from liftoff.signals import Signal
from liftoff.types import FleetAttributes, FleetConnectionState


class FleetElement(StrEnum):
    NAME_INPUT = "fleet_name_input"
    CREATE_TITLE = "create_fleet_title"
    FLEET_DROPDOWN = "fleet_dropdown"
    CANCEL_BUTTON = "cancel_button"
    CONNECT_TITLE = "connect_fleet_title"
    FLEET_ID = "fleet_id"
    FLEET_STATUS = "fleet_status"


_VISIBLE: Final[Mapping[FleetConnectionState, frozenset[FleetElement]]] = MappingProxyType({
    FleetConnectionState.NOT_CREATED: frozenset({
        FleetElement.NAME_INPUT,
        FleetElement.CREATE_TITLE,
    }),
    FleetConnectionState.CREATING: frozenset({
        FleetElement.NAME_INPUT,
        FleetElement.CANCEL_BUTTON,
        FleetElement.CREATE_TITLE,
    }),
    FleetConnectionState.SELECTING: frozenset({
        FleetElement.FLEET_DROPDOWN,
        FleetElement.CONNECT_TITLE,
    }),
    FleetConnectionState.SELECTED: frozenset({
        FleetElement.FLEET_DROPDOWN,
        FleetElement.FLEET_ID,
        FleetElement.FLEET_STATUS,
        FleetElement.CONNECT_TITLE,
    }),
})


def visible_elements(state: FleetConnectionState) -> frozenset[FleetElement]:
    """Elements the presentation layer should show in state."""
    return _VISIBLE[state]


class FleetConnection:
    """State machine for connecting to a fleet of the active profile.

    Signals:
        changed: state or selected fleet changed.
        fleets_changed: the fleet list was replaced.
        failed: a provider call failed; see ``last_error``.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        provider: CloudProvider,
        scheduler: RefreshScheduler,
        settings: SettingsStore,
        initial_state: FleetConnectionState = FleetConnectionState.NOT_CREATED,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._scheduler = scheduler
        self._settings = settings
        self._initial_state = initial_state

        self._state = initial_state
        self._fleets: tuple[FleetAttributes, ...] = ()
        self._selected: FleetAttributes | None = None
        self._draft_name = ""
        self.last_error: ProviderError | None = None

        self.changed = Signal("fleet_state_changed")
        self.fleets_changed = Signal("fleets_changed")
        self.failed = Signal("fleet_failed")

        self._subscription = registry.profile_selected.connect(self._on_profile_selected)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> FleetConnectionState:
        return self._state

    @property
    def fleets(self) -> tuple[FleetAttributes, ...]:
        return self._fleets

    @property
    def fleet_names(self) -> list[str]:
        return [f.name for f in self._fleets]

    @property
    def selected_fleet(self) -> FleetAttributes | None:
        return self._selected

    @property
    def visible_elements(self) -> frozenset[FleetElement]:
        return visible_elements(self._state)

    @property
    def can_cancel(self) -> bool:
        """Cancelling creation is only offered when a fleet was selected before."""
        return self._state is FleetConnectionState.CREATING and self._selected is not None

    @property
    def draft_name(self) -> str:
        return self._draft_name

    def set_draft_name(self, text: str) -> None:
        """Record what the user typed into the fleet name input."""
        self._draft_name = text

    def _commit(self, state: FleetConnectionState) -> None:
        if state is not self._state:
            logger.debug(f"Fleet connection: {self._state.name} -> {state.name}")
        self._state = state
        self.changed.emit()

    def _fail(self, error: ProviderError) -> None:
        self.last_error = error
        self.failed.emit()

    def _on_profile_selected(self) -> None:
        self._scheduler.invalidate(Stream.FLEETS)
        self._fleets = ()
        self._selected = None
        self._draft_name = ""
        self.last_error = None
        self._state = self._initial_state
        self.fleets_changed.emit()
        self.changed.emit()

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def initialize(self) -> RefreshOutcome:
        """Load fleets and pick the starting state.

        Moves to SELECTING when at least one fleet exists, and on to SELECTED
        when the previously chosen fleet is still there. A state the user
        has already moved to (or a name they started typing) is kept.
        """
        start_state = self._state
        outcome = await self.refresh_fleets()
        untouched = (
            self._state is start_state
            and self._state is FleetConnectionState.NOT_CREATED
            and not self._draft_name
        )
        if outcome is not RefreshOutcome.APPLIED or not untouched or not self._fleets:
            return outcome

        profile = self._registry.active_profile
        saved = self._settings.get(SettingsKeys.fleet_for(profile.name)) if profile else None
        fleet = self._find(saved) if saved else None
        if fleet is not None:
            self._select(fleet)
        else:
            self._commit(FleetConnectionState.SELECTING)
        return outcome

    async def refresh_fleets(self) -> RefreshOutcome:
        profile = self._registry.require_active()
        return await self._scheduler.run(
            Stream.FLEETS,
            fetch=lambda: self._provider.list_fleets(profile),
            apply=self._apply_fleets,
            on_error=self._fail,
        )

    def _apply_fleets(self, fleets: Sequence[FleetAttributes]) -> None:
        self._fleets = tuple(fleets)
        if self._selected is not None:
            fresh = next((f for f in self._fleets if f.fleet_id == self._selected.fleet_id), None)
            if fresh is not None:
                self._selected = fresh
        self.last_error = None
        self.fleets_changed.emit()

    def _find(self, key: str) -> FleetAttributes | None:
        by_id = next((f for f in self._fleets if f.fleet_id == key), None)
        return by_id or next((f for f in self._fleets if f.name == key), None)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def create_fleet(self, name: str) -> bool:
        """Create a fleet named name and select it.

        Only available while the create form is shown. On provider failure
        the machine stays in CREATING so the user can resubmit.
        """
        if self._state not in (FleetConnectionState.NOT_CREATED, FleetConnectionState.CREATING):
            logger.debug(f"Fleet creation not available in state {self._state.name}")
            return False
        name = name.strip()
        if not name:
            raise ValidationError("Fleet name must not be empty")
        if name in self.fleet_names:
            raise ValidationError(f"Fleet '{name}' already exists")

        profile = self._registry.require_active()
        self._commit(FleetConnectionState.CREATING)

        try:
            fleet = await self._provider.create_fleet(profile, name)
        except ProviderError as e:
            logger.warning(f"Creating fleet '{name}' failed: {e}")
            self._fail(e)
            return False

        if self._registry.active_name != profile.name:
            logger.debug(f"Profile changed while creating fleet '{name}', result not applied")
            return True

        logger.info(f"Fleet '{fleet.name}' ({fleet.fleet_id}) created")
        # An older list refresh still in flight does not know the new fleet
        self._scheduler.invalidate(Stream.FLEETS)
        self._fleets = (*(f for f in self._fleets if f.fleet_id != fleet.fleet_id), fleet)
        self._draft_name = ""
        self.last_error = None
        self.fleets_changed.emit()
        self._select(fleet)
        return True

    async def request_new_fleet(self) -> bool:
        """Leave selection and show the create form, with a fresh fleet list."""
        if self._state not in (FleetConnectionState.SELECTING, FleetConnectionState.SELECTED):
            return False
        await self.refresh_fleets()
        if self._state not in (FleetConnectionState.SELECTING, FleetConnectionState.SELECTED):
            return False
        self._commit(FleetConnectionState.CREATING)
        return True

    def cancel_create(self) -> bool:
        """Return to the previously selected fleet. No-op without one."""
        if not self.can_cancel:
            return False
        self._commit(FleetConnectionState.SELECTED)
        return True

    def select_fleet(self, name: str) -> bool:
        """Pick a fleet from the list by id or name. Legal from any state."""
        fleet = self._find(name)
        if fleet is None:
            logger.debug(f"Fleet '{name}' is not in the fleet list")
            return False
        self._select(fleet)
        return True

    def _select(self, fleet: FleetAttributes) -> None:
        self._selected = fleet
        profile = self._registry.active_profile
        if profile is not None:
            self._settings.put(SettingsKeys.fleet_for(profile.name), fleet.name)
        self._settings.put(SettingsKeys.FLEET_NAME, fleet.name)
        self._commit(FleetConnectionState.SELECTED)

    def close(self) -> None:
        self._subscription.unsubscribe()


__all__ = [
    "FleetConnection",
    "FleetElement",
    "visible_elements",
]
