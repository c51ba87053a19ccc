# mixmaster/processing/tick_worker.py
"""
Abstract base class for tick-driven workers.

A worker is an asyncio task parked on its wake trigger. Each wake runs
exactly one tick(). Stopping is cooperative: a stop flag plus a shutdown
event release a parked worker, and a tick that is already running always
completes.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from mixmaster.logging_system import get_logger


class TickWorker(ABC):
    """
    Base for the acquisition scheduler and the automation controller.

    Subclasses must implement:
    - tick(): One pass of work

    Example:
        >>> worker = AcquisitionScheduler(configuration, dispatcher)
        >>> clock.register(worker.trigger)
        >>> await worker.start()
        >>> await worker.stop()
    """

    def __init__(self, name: str, station_name: str = ""):
        """
        Initialise worker.

        Args:
            name: Worker name used for the task and in logs
            station_name: Owning station name for log context
        """
        self.name = name
        self.logger = get_logger(self.__class__.__name__, device=station_name)

        self.trigger = asyncio.Event()
        self._shutdown = asyncio.Event()
        self._stop_requested = False
        self._task: asyncio.Task | None = None

        self.metadata: dict[str, Any] = {
            "scan_count": 0,
            "error_count": 0,
            "last_tick_time": None,
        }

    @abstractmethod
    async def tick(self) -> None:
        """Perform one pass. Callable directly, without start()."""
        pass

    # ----------------------------------------------------------------
    # Lifecycle management
    # ----------------------------------------------------------------

    def wake(self) -> None:
        """Release the worker for one tick."""
        self.trigger.set()

    async def start(self) -> None:
        if self.is_running():
            self.logger.warning(f"Worker '{self.name}' already running")
            return

        self._stop_requested = False
        self._shutdown.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)
        self.logger.info(f"Worker '{self.name}' started")

    async def stop(self, timeout: float | None = None) -> None:
        """
        Request a cooperative stop and wait for the worker to exit.

        Args:
            timeout: Seconds after which a warning is logged; waiting
                continues regardless
        """
        if self._task is None:
            return

        self._stop_requested = True
        self._shutdown.set()

        if timeout is not None:
            done, _ = await asyncio.wait({self._task}, timeout=timeout)
            if not done:
                self.logger.warning(
                    f"Worker '{self.name}' did not stop within {timeout}s, still waiting"
                )
        await self._task
        self._task = None

        await self._on_stopped()
        self.logger.info(
            f"Worker '{self.name}' stopped after {self.metadata['scan_count']} ticks"
        )

    async def _on_stopped(self) -> None:
        """Hook run once the worker task has exited."""
        pass

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ----------------------------------------------------------------
    # Tick loop
    # ----------------------------------------------------------------

    async def _run(self) -> None:
        while not self._stop_requested:
            await self._wait_for_wake()
            if self._stop_requested:
                break

            try:
                await self.tick()
                self.metadata["scan_count"] += 1
                self.metadata["last_tick_time"] = datetime.now()
            except Exception as e:
                self.metadata["error_count"] += 1
                self.logger.error(f"Error in tick for '{self.name}': {e}", exc_info=True)

    async def _wait_for_wake(self) -> None:
        wake = asyncio.ensure_future(self.trigger.wait())
        shutdown = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({wake, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            wake.cancel()
            shutdown.cancel()
        # Auto-reset
        self.trigger.clear()

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "running": self.is_running(),
            "scan_count": self.metadata["scan_count"],
            "error_count": self.metadata["error_count"],
            "last_tick_time": self.metadata["last_tick_time"],
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', running={self.is_running()})"
