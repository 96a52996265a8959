"""Timed "processing" animation run after an unlock is confirmed."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import random

from .const import (
    FEEDBACK_OFF_DURATION,
    FEEDBACK_ON_DURATION,
    FEEDBACK_ROUNDS,
    STEP_COUNT,
)
from .exceptions import FeedbackBusyError

_LOGGER = logging.getLogger(__name__)


class FeedbackScheduler:
    """Blinks the step indicators in random order, then reports completion.

    Each round shuffles the indices ``0..indices-1`` and marks them active
    one at a time for ``on_duration`` seconds, followed by ``off_duration``
    seconds with nothing active. The run cannot be cancelled by the user
    and a new run is refused while one is in flight.
    """

    def __init__(
        self,
        rounds: int = FEEDBACK_ROUNDS,
        on_duration: float = FEEDBACK_ON_DURATION,
        off_duration: float = FEEDBACK_OFF_DURATION,
        indices: int = STEP_COUNT,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the scheduler."""
        self._rounds = rounds
        self._on_duration = on_duration
        self._off_duration = off_duration
        self._indices = indices
        self._rng = rng or random.Random()
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Return True while an animation is in flight."""
        return self._running and self._task is not None and not self._task.done()

    @property
    def task(self) -> asyncio.Task[None] | None:
        """Return the task of the current (or last) run."""
        return self._task

    def start(
        self,
        on_blink: Callable[[int | None], None],
        on_finished: Callable[[], None],
    ) -> asyncio.Task[None]:
        """Start the animation on the running event loop.

        Args:
            on_blink: Called with the active index, or None between blinks.
            on_finished: Called once after the last round, when the
                scheduler no longer reports itself as running.

        Raises:
            FeedbackBusyError: If an animation is already running.

        """
        if self.is_running:
            raise FeedbackBusyError("Feedback animation already running")
        self._task = asyncio.create_task(self._run(on_blink, on_finished))
        self._running = True
        return self._task

    async def wait(self) -> None:
        """Wait until the current run (if any) has finished."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _run(
        self,
        on_blink: Callable[[int | None], None],
        on_finished: Callable[[], None],
    ) -> None:
        _LOGGER.debug("Starting feedback animation (%d rounds)", self._rounds)
        try:
            for _ in range(self._rounds):
                order = self._rng.sample(range(self._indices), self._indices)
                for index in order:
                    on_blink(index)
                    await asyncio.sleep(self._on_duration)
                    on_blink(None)
                    await asyncio.sleep(self._off_duration)
        finally:
            on_blink(None)
            self._running = False
            on_finished()
            _LOGGER.debug("Feedback animation finished")
