"""Cooperative task scheduler driven by a 100 us tick."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

TICK_US = 100

PERIOD_1MS = 1000 // TICK_US
PERIOD_10MS = 10000 // TICK_US
PERIOD_500MS = 500000 // TICK_US

# Staggered start values so the slower tasks do not fire on the same tick.
INIT_COUNT_1MS = PERIOD_1MS
INIT_COUNT_10MS = PERIOD_10MS - 3
INIT_COUNT_500MS = PERIOD_500MS - 7

_TICK_MASK = 0xFFFF


def _idle() -> None:
    """Task that does nothing."""


@dataclass
class TaskSet:
    """The callables the scheduler dispatches.

    ``always`` runs on every call to :meth:`Scheduler.run`; the others run
    when a new tick is seen and their period has elapsed.
    """

    always: Callable[[], None] = _idle
    every_100us: Callable[[], None] = _idle
    every_1ms: Callable[[], None] = _idle
    every_10ms: Callable[[], None] = _idle
    every_500ms: Callable[[], None] = _idle


class Scheduler:
    """Polls a tick counter and dispatches periodic tasks, one tick per run."""

    def __init__(self, tasks: TaskSet | None = None) -> None:
        self.tasks = tasks if tasks is not None else TaskSet()
        self.tick_count = 0
        self.reset()

    def reset(self) -> None:
        """Restore the staggered counters and resynchronise with the tick."""
        self._local_tick = 0
        self.tick_count = 0
        self._count_1ms = INIT_COUNT_1MS
        self._count_10ms = INIT_COUNT_10MS
        self._count_500ms = INIT_COUNT_500MS

    def tick(self) -> None:
        """Advance the 16-bit tick counter, as the timer interrupt does."""
        self.tick_count = (self.tick_count + 1) & _TICK_MASK

    def run(self) -> bool:
        """Run the always-on task and, if a new tick arrived, the periodic ones.

        Returns whether a tick was processed. At most one tick is processed
        per call, however many have elapsed.
        """
        self.tasks.always()

        tick = self.tick_count
        if tick == self._local_tick:
            return False
        self._local_tick = tick

        self.tasks.every_100us()

        self._count_1ms -= 1
        if self._count_1ms == 0:
            self._count_1ms = PERIOD_1MS
            self.tasks.every_1ms()

        self._count_10ms -= 1
        if self._count_10ms == 0:
            self._count_10ms = PERIOD_10MS
            self.tasks.every_10ms()

        self._count_500ms -= 1
        if self._count_500ms == 0:
            self._count_500ms = PERIOD_500MS
            self.tasks.every_500ms()

        return True