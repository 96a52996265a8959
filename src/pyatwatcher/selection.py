"""Four-step selection of building, level and device."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
import inspect
import logging

from .const import (
    STEP_BUILDING,
    STEP_CONFIRM,
    STEP_DEVICE,
    STEP_HIDDEN,
    STEP_LEVEL,
)
from .feedback import FeedbackScheduler
from .models import Catalog

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionState:
    """Snapshot of the user's selection.

    Only keys are stored, never model objects, because the catalog they
    point into may be replaced at any time.
    """

    selected_building: str | None = None
    selected_level: int | None = None
    selected_device_id: str | None = None
    step: int = STEP_BUILDING
    blinking_step: int | None = None

    @property
    def is_hidden(self) -> bool:
        """Return True while the feedback animation hides the current step."""
        return self.step == STEP_HIDDEN


@dataclass(frozen=True)
class ConfirmationToken:
    """The (building, level, device) tuple confirmed for unlocking."""

    building: str
    level: int
    device_id: str

    @property
    def label(self) -> str:
        """Return the short label shown on the confirmation screen."""
        return f"{self.building}.{self.level}.{self.device_id}"


SelectionListener = Callable[[SelectionState], None]
UnlockHandler = Callable[[ConfirmationToken], Awaitable[None]]


class SelectionEngine:
    """Owns the selection state and applies user intents to it.

    Intents that would break the cascading rules are rejected and the
    method returns False (or None for confirm).
    While the feedback animation runs every intent is rejected, so the
    animation is the only writer until it resets the state.
    """

    def __init__(
        self,
        catalog_provider: Callable[[], Catalog],
        unlock_handler: UnlockHandler,
        scheduler: FeedbackScheduler | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            catalog_provider: Returns the current catalog, e.g.
                ``lambda: client.catalog``.
            unlock_handler: Async function submitting the unlock request.
            scheduler: Feedback animation scheduler. A default one is
                created when omitted.

        Raises:
            TypeError: If `unlock_handler` is not an async function.

        """
        if not inspect.iscoroutinefunction(unlock_handler):
            err_msg = "unlock_handler must be an async function"
            raise TypeError(err_msg)
        self._catalog_provider = catalog_provider
        self._unlock_handler = unlock_handler
        self._scheduler = scheduler or FeedbackScheduler()
        self._state = SelectionState()
        self._listeners: list[SelectionListener] = []
        self._unlock_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> SelectionState:
        """Return the current selection state."""
        return self._state

    @property
    def is_busy(self) -> bool:
        """Return True while the feedback animation runs."""
        return self._scheduler.is_running

    def add_listener(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a callback run after each state change.

        Returns:
            A callable removing the listener again.

        """
        self._listeners.append(listener)

        def remove_listener() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove_listener

    def _set_state(self, **changes) -> None:
        self._apply(replace(self._state, **changes))

    def _apply(self, new_state: SelectionState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                _LOGGER.exception("Error in selection listener")

    def _accepts_intents(self, intent: str) -> bool:
        if self.is_busy:
            _LOGGER.debug("Ignoring %s while feedback animation runs", intent)
            return False
        return True

    def set_building(self, name: str) -> bool:
        """Select a building; a different building clears level and device."""
        if not self._accepts_intents("set_building"):
            return False
        if name == self._state.selected_building:
            return True
        self._set_state(
            selected_building=name, selected_level=None, selected_device_id=None
        )
        return True

    def set_level(self, value: int) -> bool:
        """Select a level of the selected building and clear the device."""
        if not self._accepts_intents("set_level"):
            return False
        if self._state.selected_building is None:
            _LOGGER.debug("Ignoring level %s without a selected building", value)
            return False
        self._set_state(selected_level=value, selected_device_id=None)
        return True

    def set_device(self, device_id: str) -> bool:
        """Select a device on the selected level of the current catalog.

        An id that does not resolve under the selected building and level
        is rejected and leaves no device selected.
        """
        if not self._accepts_intents("set_device"):
            return False
        state = self._state
        if state.selected_building is None or state.selected_level is None:
            _LOGGER.debug("Ignoring device %s without a selected level", device_id)
            return False
        device = self._catalog_provider().find_device(
            state.selected_building, state.selected_level, device_id
        )
        if device is None:
            _LOGGER.warning(
                "Device %s not found in %s.%s",
                device_id,
                state.selected_building,
                state.selected_level,
            )
            self._set_state(selected_device_id=None)
            return False
        self._set_state(selected_device_id=device_id)
        return True

    def _requirements_met(self, step: int) -> bool:
        """Return True if the selections needed up to and including step are set."""
        state = self._state
        if step >= STEP_BUILDING and state.selected_building is None:
            return False
        if step >= STEP_LEVEL and state.selected_level is None:
            return False
        if step >= STEP_DEVICE and state.selected_device_id is None:
            return False
        return True

    def can_advance(self) -> bool:
        """Return True if advance() would move to the next step."""
        step = self._state.step
        return (
            not self.is_busy
            and STEP_BUILDING <= step < STEP_CONFIRM
            and self._requirements_met(step)
        )

    def advance(self) -> bool:
        """Move to the next step when the current step's selection is made."""
        if not self.can_advance():
            _LOGGER.debug("Rejecting advance from step %s", self._state.step)
            return False
        self._set_state(step=min(self._state.step + 1, STEP_CONFIRM))
        return True

    def retreat(self) -> bool:
        """Move back one step."""
        if not self._accepts_intents("retreat"):
            return False
        self._set_state(step=max(self._state.step - 1, STEP_BUILDING))
        return True

    def confirm(self) -> ConfirmationToken | None:
        """Confirm the selection, submit the unlock and start the feedback.

        Must be called from a running event loop; otherwise it returns None
        and the state is left untouched. Returns None, without side
        effects, unless the engine is on the confirmation step with a
        building, level and device that still resolve in the current catalog.
        """
        if not self._accepts_intents("confirm"):
            return None
        state = self._state
        if state.step != STEP_CONFIRM or not self._requirements_met(STEP_CONFIRM):
            _LOGGER.debug("Rejecting confirm at step %s", state.step)
            return None
        device = self._catalog_provider().find_device(
            state.selected_building, state.selected_level, state.selected_device_id
        )
        if device is None:
            _LOGGER.warning(
                "Selected device %s is no longer available, not confirming",
                state.selected_device_id,
            )
            return None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            _LOGGER.error("Cannot confirm without a running event loop")
            return None

        token = ConfirmationToken(
            building=state.selected_building,
            level=state.selected_level,
            device_id=state.selected_device_id,
        )
        _LOGGER.info("Unlock confirmed for %s (%s)", token.label, device.name)

        self._scheduler.start(self._set_blinking_step, self._finish_feedback)
        self._set_state(step=STEP_HIDDEN, blinking_step=None)

        task = asyncio.create_task(self._submit_unlock(token))
        self._unlock_tasks.add(task)
        task.add_done_callback(self._unlock_tasks.discard)
        return token

    async def _submit_unlock(self, token: ConfirmationToken) -> None:
        try:
            await self._unlock_handler(token)
        except Exception:
            _LOGGER.exception("Unlock submission for %s failed", token.label)

    def _set_blinking_step(self, index: int | None) -> None:
        self._set_state(blinking_step=index)

    def _finish_feedback(self) -> None:
        self._apply(SelectionState())

    def reset(self) -> bool:
        """Return to the initial state (rejected while the animation runs)."""
        if not self._accepts_intents("reset"):
            return False
        self._apply(SelectionState())
        return True

    async def async_wait_idle(self) -> None:
        """Wait for the feedback animation and pending unlock submissions."""
        await self._scheduler.wait()
        if self._unlock_tasks:
            await asyncio.gather(*self._unlock_tasks)
