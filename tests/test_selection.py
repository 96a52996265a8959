"""Test the selection engine."""

import json
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from pyatwatcher.const import STEP_CONFIRM, STEP_HIDDEN
from pyatwatcher.feedback import FeedbackScheduler
from pyatwatcher.models import Catalog
from pyatwatcher.selection import ConfirmationToken, SelectionEngine, SelectionState

from .const import MOCK_PAYLOAD


class CatalogHolder:
    """Stands in for the client: holds the current catalog."""

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog


@pytest.fixture
def holder(catalog: Catalog) -> CatalogHolder:
    """Return a holder for the mock catalog."""
    return CatalogHolder(catalog)


@pytest.fixture
def unlock() -> AsyncMock:
    """Return the unlock submission stub."""
    return AsyncMock()


@pytest.fixture
def engine(holder: CatalogHolder, unlock: AsyncMock) -> SelectionEngine:
    """Return an engine with an instant feedback animation."""
    scheduler = FeedbackScheduler(on_duration=0, off_duration=0)
    return SelectionEngine(lambda: holder.catalog, unlock, scheduler)


def walk_to_confirm(engine: SelectionEngine, building="A", level=0, device="u1") -> None:
    assert engine.set_building(building)
    assert engine.advance()
    assert engine.set_level(level)
    assert engine.advance()
    assert engine.set_device(device)
    assert engine.advance()
    assert engine.state.step == STEP_CONFIRM


def assert_hierarchy(state: SelectionState) -> None:
    if state.selected_level is not None:
        assert state.selected_building is not None
    if state.selected_device_id is not None:
        assert state.selected_level is not None


def test_requires_async_unlock_handler(holder: CatalogHolder) -> None:
    """Test a synchronous unlock handler is refused."""
    with pytest.raises(TypeError):
        SelectionEngine(lambda: holder.catalog, MagicMock())


def test_initial_state(engine: SelectionEngine) -> None:
    """Test the engine starts with nothing selected on step 0."""
    assert engine.state == SelectionState()
    assert engine.state.step == 0
    assert not engine.can_advance()


async def test_concrete_scenario(engine: SelectionEngine, unlock: AsyncMock) -> None:
    """Test the full walk through all four steps."""
    walk_to_confirm(engine)

    token = engine.confirm()

    assert token == ConfirmationToken(building="A", level=0, device_id="u1")
    assert token.label == "A.0.u1"
    await engine.async_wait_idle()
    unlock.assert_awaited_once_with(token)


def test_changing_building_clears_level_and_device(engine: SelectionEngine) -> None:
    """Test switching buildings cascades."""
    engine.set_building("A")
    engine.set_level(0)
    engine.set_device("u1")

    assert engine.set_building("B")

    assert engine.state.selected_building == "B"
    assert engine.state.selected_level is None
    assert engine.state.selected_device_id is None


def test_same_building_keeps_selection(engine: SelectionEngine) -> None:
    """Test reselecting the current building keeps level and device."""
    engine.set_building("A")
    engine.set_level(0)
    engine.set_device("u1")

    assert engine.set_building("A")
    assert engine.state.selected_level == 0
    assert engine.state.selected_device_id == "u1"


def test_set_level_clears_device(engine: SelectionEngine) -> None:
    """Test selecting a level, even the same one, clears the device."""
    engine.set_building("A")
    engine.set_level(0)
    engine.set_device("u1")

    assert engine.set_level(0)
    assert engine.state.selected_device_id is None


def test_set_level_without_building(engine: SelectionEngine) -> None:
    """Test a level without building is ignored."""
    assert not engine.set_level(0)
    assert engine.state.selected_level is None


def test_set_device_requires_level(engine: SelectionEngine) -> None:
    """Test a device without level is ignored."""
    engine.set_building("A")
    assert not engine.set_device("u1")
    assert engine.state.selected_device_id is None


def test_set_device_outside_selected_level(engine: SelectionEngine) -> None:
    """Test devices from another level or building are rejected."""
    engine.set_building("A")
    engine.set_level(-1)
    assert not engine.set_device("u1")
    assert not engine.set_device("b-20")
    assert engine.state.selected_device_id is None


def test_set_device_invalid_clears_previous(engine: SelectionEngine) -> None:
    """Test a rejected device leaves no device selected."""
    engine.set_building("A")
    engine.set_level(0)
    engine.set_device("u1")
    assert not engine.set_device("nope")
    assert engine.state.selected_device_id is None


def test_random_intents_keep_hierarchy(engine: SelectionEngine) -> None:
    """Test the key hierarchy holds after every intent."""
    rng = random.Random(1234)
    buildings = ["A", "B", "Z"]
    levels = [-1, 0, 1, 2, 5]
    devices = ["u1", "u2", "a-1", "b-20", "x"]
    for _ in range(500):
        choice = rng.randrange(5)
        if choice == 0:
            engine.set_building(rng.choice(buildings))
        elif choice == 1:
            engine.set_level(rng.choice(levels))
        elif choice == 2:
            engine.set_device(rng.choice(devices))
        elif choice == 3:
            engine.advance()
        else:
            engine.retreat()
        assert_hierarchy(engine.state)
        assert 0 <= engine.state.step <= STEP_CONFIRM


def test_advance_gating(engine: SelectionEngine) -> None:
    """Test each step needs its selection before advancing."""
    assert not engine.advance()
    assert engine.state.step == 0

    engine.set_building("A")
    assert engine.advance()
    assert not engine.advance()
    assert engine.state.step == 1

    engine.set_level(0)
    assert engine.advance()
    assert not engine.advance()
    assert engine.state.step == 2

    engine.set_device("u1")
    assert engine.advance()
    assert engine.state.step == 3

    assert not engine.can_advance()
    assert not engine.advance()
    assert engine.state.step == 3


def test_advance_rechecks_upstream(engine: SelectionEngine) -> None:
    """Test changing the building on a later step blocks advancing."""
    engine.set_building("A")
    engine.advance()
    engine.set_level(0)
    engine.advance()
    engine.set_building("B")
    assert engine.state.step == 2
    assert not engine.advance()


def test_retreat(engine: SelectionEngine) -> None:
    """Test retreat moves back and stops at step 0."""
    walk_to_confirm(engine)
    for expected in (2, 1, 0, 0):
        assert engine.retreat()
        assert engine.state.step == expected
    assert engine.state.selected_device_id == "u1"


async def test_confirm_requires_confirmation_step(
    engine: SelectionEngine, unlock: AsyncMock
) -> None:
    """Test confirm is rejected before step 3."""
    engine.set_building("A")
    engine.set_level(0)
    engine.set_device("u1")
    assert engine.confirm() is None
    await engine.async_wait_idle()
    unlock.assert_not_awaited()


async def test_confirm_requires_all_selections(
    engine: SelectionEngine, unlock: AsyncMock
) -> None:
    """Test confirm is rejected when an upstream selection was cleared."""
    walk_to_confirm(engine)
    engine.set_level(0)
    assert engine.confirm() is None
    unlock.assert_not_awaited()


async def test_confirm_rejects_stale_device(
    engine: SelectionEngine, holder: CatalogHolder, unlock: AsyncMock
) -> None:
    """Test a device gone from the reloaded catalog cannot be confirmed."""
    walk_to_confirm(engine)
    payload = json.loads(json.dumps(MOCK_PAYLOAD))
    payload["devices"][0]["levels"][1]["devices"].pop(0)
    holder.catalog = Catalog.from_dict(payload)

    assert engine.state.selected_device_id == "u1"
    assert engine.state.step == STEP_CONFIRM
    assert engine.confirm() is None
    assert engine.state.step == STEP_CONFIRM
    await engine.async_wait_idle()
    unlock.assert_not_awaited()


def test_reload_does_not_reset_selection(
    engine: SelectionEngine, holder: CatalogHolder
) -> None:
    """Test stale selections are only detected when used."""
    engine.set_building("A")
    engine.advance()
    engine.set_level(0)
    holder.catalog = Catalog.empty()

    assert engine.state.selected_level == 0
    assert engine.state.step == 1
    assert not engine.set_device("u1")


async def test_confirm_hides_step_and_resets(engine: SelectionEngine) -> None:
    """Test the animation hides the step, blocks intents and resets after."""
    walk_to_confirm(engine)
    token = engine.confirm()
    assert token is not None

    assert engine.is_busy
    assert engine.state.step == STEP_HIDDEN
    assert engine.state.is_hidden
    assert not engine.set_building("B")
    assert not engine.retreat()
    assert not engine.advance()
    assert not engine.reset()
    assert engine.confirm() is None

    await engine.async_wait_idle()

    assert not engine.is_busy
    assert engine.state == SelectionState()


async def test_token_is_a_snapshot(engine: SelectionEngine, holder: CatalogHolder) -> None:
    """Test the token is unaffected by later catalog or state changes."""
    walk_to_confirm(engine)
    token = engine.confirm()
    holder.catalog = Catalog.empty()
    await engine.async_wait_idle()

    assert token == ConfirmationToken("A", 0, "u1")
    with pytest.raises(AttributeError):
        token.device_id = "u2"


async def test_unlock_failure_is_contained(
    engine: SelectionEngine, unlock: AsyncMock
) -> None:
    """Test a failing unlock submission does not break the engine."""
    unlock.side_effect = RuntimeError("backend down")
    walk_to_confirm(engine)
    assert engine.confirm() is not None
    await engine.async_wait_idle()
    assert engine.state == SelectionState()


async def test_listeners(engine: SelectionEngine) -> None:
    """Test listeners see every change and can be removed."""
    seen: list[SelectionState] = []
    remove = engine.add_listener(seen.append)
    engine.add_listener(MagicMock(side_effect=RuntimeError("boom")))

    engine.set_building("A")
    engine.set_building("A")
    engine.advance()

    assert [state.selected_building for state in seen] == ["A", "A"]
    assert [state.step for state in seen] == [0, 1]

    remove()
    engine.retreat()
    assert len(seen) == 2


async def test_animation_blinks_through_listeners(engine: SelectionEngine) -> None:
    """Test listeners observe 16 blinks while the step is hidden."""
    walk_to_confirm(engine)
    seen: list[SelectionState] = []
    engine.add_listener(seen.append)

    engine.confirm()
    await engine.async_wait_idle()

    blinks = [state.blinking_step for state in seen if state.blinking_step is not None]
    assert len(blinks) == 16
    assert all(state.step == STEP_HIDDEN for state in seen[:-1])
    assert seen[-1] == SelectionState()


def test_reset(engine: SelectionEngine) -> None:
    """Test reset returns to the initial state."""
    walk_to_confirm(engine)
    assert engine.reset()
    assert engine.state == SelectionState()


async def test_reset_listener_can_issue_intents(engine: SelectionEngine) -> None:
    """Test a listener reacting to the final reset may select again."""
    walk_to_confirm(engine)
    accepted: list[bool] = []

    def on_change(state: SelectionState) -> None:
        if state == SelectionState() and not accepted:
            accepted.append(engine.set_building("B"))

    engine.add_listener(on_change)
    assert engine.confirm() is not None
    await engine.async_wait_idle()

    assert accepted == [True]
    assert engine.state.selected_building == "B"
    assert not engine.is_busy


def test_confirm_without_event_loop(engine: SelectionEngine, unlock: AsyncMock) -> None:
    """Test confirm outside an event loop is refused and keeps the state."""
    walk_to_confirm(engine)
    before = engine.state
    seen: list[SelectionState] = []
    engine.add_listener(seen.append)

    assert engine.confirm() is None

    assert engine.state == before
    assert engine.state.step == STEP_CONFIRM
    assert not engine.is_busy
    assert seen == []
    unlock.assert_not_called()
