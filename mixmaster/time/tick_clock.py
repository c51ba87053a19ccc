# mixmaster/time/tick_clock.py
"""
Tick clock.

Fires the wake triggers of registered workers once per tick period. In
REALTIME the period is wall-clock seconds; in ACCELERATED it is divided
by the acceleration factor; in STEPPED nothing fires until step() is
called.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------
# Time modes
# ----------------------------------------------------------------
class TimeMode(Enum):
    """Tick clock operation modes."""

    REALTIME = "realtime"
    ACCELERATED = "accelerated"
    STEPPED = "stepped"


@dataclass
class TickState:
    """State container for tick tracking."""

    current_tick: int = 0
    wall_time_start: float = 0.0
    mode: TimeMode = TimeMode.REALTIME
    tick_period: float = 1.0
    acceleration: float = 1.0


# ----------------------------------------------------------------
# Tick clock
# ----------------------------------------------------------------
class TickClock:
    """Periodic wake signal shared by the scheduler and automation workers.

    Example:
        >>> clock = TickClock(tick_period=1.0)
        >>> clock.register(scheduler.trigger)
        >>> await clock.start()
        >>> clock.current_tick
        0
    """

    _MAX_ACCELERATION = 1000.0  # Safety limit

    def __init__(
        self,
        tick_period: float = 1.0,
        mode: TimeMode | str = TimeMode.REALTIME,
        acceleration: float = 1.0,
    ):
        self.state = TickState(mode=TimeMode(mode))
        self._triggers: list[asyncio.Event] = []
        self._running = False
        self._tick_task: asyncio.Task | None = None

        if tick_period <= 0:
            logger.warning(f"Invalid tick_period {tick_period}, using default 1.0")
            tick_period = 1.0
        self.state.tick_period = tick_period

        if acceleration <= 0:
            logger.warning(f"Invalid acceleration {acceleration}, using default 1.0")
            acceleration = 1.0
        elif acceleration > self._MAX_ACCELERATION:
            logger.warning(
                f"acceleration {acceleration} exceeds maximum {self._MAX_ACCELERATION}, capping"
            )
            acceleration = self._MAX_ACCELERATION
        self.state.acceleration = acceleration

    # ----------------------------------------------------------------
    # Wiring
    # ----------------------------------------------------------------
    def register(self, trigger: asyncio.Event) -> None:
        """Add a wake trigger to be set on every tick."""
        if trigger not in self._triggers:
            self._triggers.append(trigger)

    @property
    def current_tick(self) -> int:
        return self.state.current_tick

    @property
    def mode(self) -> TimeMode:
        return self.state.mode

    @property
    def interval(self) -> float:
        """Wall-clock seconds between ticks."""
        if self.state.mode == TimeMode.ACCELERATED:
            return self.state.tick_period / self.state.acceleration
        return self.state.tick_period

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------
    async def start(self) -> None:
        if self._running:
            logger.warning("TickClock already running")
            return

        self.state.wall_time_start = time.time()
        self._running = True

        if self.state.mode in (TimeMode.REALTIME, TimeMode.ACCELERATED):
            self._tick_task = asyncio.create_task(self._tick_loop(), name="tick-clock")

        logger.info(
            f"TickClock started in {self.state.mode.value} mode "
            f"(interval={self.interval}s)"
        )

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._tick_task:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None

        logger.info(f"TickClock stopped at tick {self.state.current_tick}")

    def is_running(self) -> bool:
        return self._running

    # ----------------------------------------------------------------
    # Ticking
    # ----------------------------------------------------------------
    def step(self, count: int = 1) -> int:
        """Fire ticks manually (STEPPED mode).

        Workers wake once per scheduling opportunity, so stepping several
        ticks without yielding between them coalesces into one wake.

        Raises:
            ValueError: If count is not positive
            RuntimeError: If not in STEPPED mode
        """
        if count < 1:
            raise ValueError(f"Cannot step {count} ticks")
        if self.state.mode != TimeMode.STEPPED:
            raise RuntimeError(
                f"step() only valid in STEPPED mode, current mode is {self.state.mode.value}"
            )

        for _ in range(count):
            self._fire()
        return self.state.current_tick

    def _fire(self) -> None:
        self.state.current_tick += 1
        for trigger in self._triggers:
            trigger.set()

    async def _tick_loop(self) -> None:
        logger.debug(f"Tick loop started with {self.interval}s interval")

        while self._running:
            await asyncio.sleep(self.interval)
            self._fire()

    def get_status(self) -> dict[str, Any]:
        return {
            "current_tick": self.state.current_tick,
            "mode": self.state.mode.value,
            "tick_period": self.state.tick_period,
            "acceleration": self.state.acceleration,
            "interval": self.interval,
            "wall_time_elapsed": (
                time.time() - self.state.wall_time_start if self._running else 0.0
            ),
            "running": self._running,
        }
