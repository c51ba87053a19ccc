# mixmaster/runtime.py
"""
Master station orchestrator.

Wires configuration, point store, executor, dispatcher and the two tick
workers together and owns their lifecycle:

- ConfigLoader for YAML settings, Configuration for the points file
- PointStore seeded with every item's default value
- LoopbackExecutor (SimulatedOutstation served on localhost) or TcpExecutor
- CommandDispatcher as the executor's single update handler
- AcquisitionScheduler and AutomationController driven by a TickClock
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any

from mixmaster.config.config_loader import ConfigLoader
from mixmaster.config.configuration import Configuration
from mixmaster.logging_system import configure_logging
from mixmaster.processing.acquisition_scheduler import AcquisitionScheduler
from mixmaster.processing.automation_controller import (
    AutomationController,
    MixerParameters,
)
from mixmaster.processing.command_dispatcher import CommandDispatcher
from mixmaster.protocols.modbus.executor import FunctionExecutor
from mixmaster.protocols.modbus.outstation import SimulatedOutstation
from mixmaster.protocols.modbus.tcp_executor import LoopbackExecutor, TcpExecutor
from mixmaster.state.point_store import PointStore
from mixmaster.state.points import PointType
from mixmaster.time.tick_clock import TickClock, TimeMode

logger = logging.getLogger(__name__)


def seed_outstation(outstation: SimulatedOutstation, configuration: Configuration) -> None:
    """Load every configured item's default value into outstation memory."""
    setters = {
        PointType.DIGITAL_OUTPUT: outstation.set_coil,
        PointType.DIGITAL_INPUT: outstation.set_discrete_input,
        PointType.ANALOG_INPUT: outstation.set_input_register,
        PointType.ANALOG_OUTPUT: outstation.set_holding_register,
        PointType.HR_LONG: outstation.set_holding_register,
    }
    for item in configuration.get_configuration_items():
        setter = setters[item.registry_type]
        for address in item.addresses():
            setter(address, item.default_value)


class MasterStation:
    """
    Main orchestrator for the master station.

    Example:
        >>> station = MasterStation(config_dir="config")
        >>> await station.initialise()
        >>> await station.start()
        >>> # Station polls and automates...
        >>> await station.stop()
    """

    def __init__(self, config_dir: str | Path = "config"):
        """Initialise master station.

        Args:
            config_dir: Directory containing master.yml and the points file
        """
        self.config_dir = Path(config_dir)
        self.config_loader = ConfigLoader(config_dir=self.config_dir)
        self.settings: dict[str, Any] = {}

        self.configuration: Configuration | None = None
        self.point_store = PointStore()
        self.outstation: SimulatedOutstation | None = None
        self.executor: FunctionExecutor | None = None
        self.dispatcher: CommandDispatcher | None = None
        self.scheduler: AcquisitionScheduler | None = None
        self.automation: AutomationController | None = None
        self.clock: TickClock | None = None

        self.name = "master"
        self._initialised = False
        self._running = False
        self._shutdown_event = asyncio.Event()

    # ----------------------------------------------------------------
    # Initialisation
    # ----------------------------------------------------------------

    async def initialise(self) -> None:
        """Build every component from configuration.

        Raises:
            RuntimeError: If initialisation fails
        """
        if self._initialised:
            logger.warning("Master station already initialised")
            return

        try:
            logger.info("=== Starting Master Station Initialisation ===")

            self.settings = self.config_loader.load_all()
            master = self.settings["master"]
            self.name = master["name"]

            self.clock = TickClock(
                tick_period=master["tick_period"],
                mode=TimeMode(master["time_mode"]),
                acceleration=master["time_acceleration"],
            )

            log_settings = self.settings["logging"]
            configure_logging(
                log_dir=log_settings["log_dir"],
                level=log_settings["level"],
                tick_source=lambda: self.clock.current_tick,
            )

            executor_settings = self.settings["executor"]
            self.configuration = Configuration.from_file(
                self.settings["points_path"],
                unit_address=master["unit_address"],
                tcp_port=executor_settings["port"],
            )
            self.point_store.create_points(self.configuration)

            self.executor = self._create_executor(executor_settings)
            self.dispatcher = CommandDispatcher(
                self.point_store, self.executor, station_name=self.name
            )
            self._initialise_points()

            self.scheduler = AcquisitionScheduler(
                self.configuration, self.dispatcher, station_name=self.name
            )
            self.clock.register(self.scheduler.trigger)

            automation_settings = self.settings["automation"]
            if automation_settings.get("enabled", True):
                self.automation = AutomationController(
                    self.point_store,
                    self.dispatcher,
                    self.configuration,
                    params=MixerParameters.from_settings(automation_settings),
                    station_name=self.name,
                )
                self.clock.register(self.automation.trigger)

            self._initialised = True
            logger.info("=== Initialisation Complete ===")
            self._log_summary()

        except Exception as e:
            logger.error(f"Initialisation failed: {e}", exc_info=True)
            raise RuntimeError(f"Failed to initialise master station: {e}") from e

    def _create_executor(self, executor_settings: dict[str, Any]) -> FunctionExecutor:
        if executor_settings["kind"] == "tcp":
            return TcpExecutor(
                host=executor_settings["host"],
                port=self.configuration.tcp_port,
                timeout=executor_settings["timeout"],
            )

        self.outstation = SimulatedOutstation(unit_id=self.configuration.unit_address)
        seed_outstation(self.outstation, self.configuration)
        return LoopbackExecutor(self.outstation)

    def _initialise_points(self) -> None:
        for point in self.point_store.all_points():
            self.dispatcher.initialise_point(
                point.point_type, point.address, point.config_item.default_value
            )

    def _log_summary(self) -> None:
        logger.info("--- Master Station Summary ---")
        logger.info(f"Station: {self.name}")
        logger.info(f"Unit address: {self.configuration.unit_address}")
        logger.info(f"Executor: {self.executor.name}")
        logger.info(f"Configured items: {len(self.configuration.get_configuration_items())}")
        logger.info(f"Points: {len(self.point_store)}")
        logger.info(f"Automation: {'enabled' if self.automation else 'disabled'}")
        logger.info(f"Tick clock: {self.clock.mode.value}, every {self.clock.interval}s")
        logger.info("------------------------------")

    def _workers(self) -> list:
        return [w for w in (self.scheduler, self.automation) if w is not None]

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def start(self) -> None:
        """Start executor, workers and tick clock.

        Raises:
            RuntimeError: If not initialised
        """
        if not self._initialised:
            raise RuntimeError("Cannot start: master station not initialised")

        if self._running:
            logger.warning("Master station already running")
            return

        logger.info("=== Starting Master Station ===")

        await self.executor.start()
        for worker in self._workers():
            await worker.start()
        await self.clock.start()

        self._running = True
        logger.info("Master station started")

    async def stop(self) -> None:
        """Stop the clock, then the workers, then drain the executor."""
        executor_running = self.executor is not None and self.executor.is_running()
        if not self._running and not executor_running:
            logger.warning("Master station not running")
            return

        logger.info("=== Stopping Master Station ===")

        # Stepped mode: no automation task, no stop hook
        stepped_automation = self.automation is not None and not self.automation.is_running()

        await self.clock.stop()
        for worker in reversed(self._workers()):
            try:
                await worker.stop(timeout=self.clock.interval * 2)
            except Exception as e:
                logger.error(f"Error stopping worker {worker.name}: {e}")

        if stepped_automation:
            self.automation.force_outputs_off()

        await self.executor.stop()
        self._running = False

        self._log_final_statistics()
        logger.info("Master station stopped")

    async def step(self) -> None:
        """Run one tick inline and wait for its commands to complete.

        Intended for stepped operation when the workers are not running.
        Starts the executor on first use; stop() shuts it down.

        Raises:
            RuntimeError: If not initialised or the workers are running
        """
        if not self._initialised:
            raise RuntimeError("Cannot step: master station not initialised")
        if any(worker.is_running() for worker in self._workers()):
            raise RuntimeError("Cannot step while workers are running")

        if not self.executor.is_running():
            await self.executor.start()

        self.clock.state.current_tick += 1
        for worker in self._workers():
            await worker.tick()
        await self.executor.join()

    # ----------------------------------------------------------------
    # Status and monitoring
    # ----------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "running": self._running,
            "initialised": self._initialised,
            "clock": self.clock.get_status() if self.clock else None,
            "executor": self.executor.get_statistics() if self.executor else None,
            "acquisition": self.scheduler.get_status() if self.scheduler else None,
            "automation": self.automation.get_status() if self.automation else None,
            "points": len(self.point_store),
        }

    def _log_final_statistics(self) -> None:
        status = self.get_status()
        executor = status["executor"]

        logger.info("--- Final Statistics ---")
        logger.info(f"Ticks: {status['clock']['current_tick']}")
        logger.info(
            f"Commands executed: {executor['commands_executed']}, "
            f"failed: {executor['commands_failed']}"
        )
        if status["automation"]:
            logger.info(
                f"Batches completed: {status['automation']['batches_completed']}, "
                f"emergency stops: {status['automation']['emergency_stop_count']}"
            )
        logger.info("------------------------")

    # ----------------------------------------------------------------
    # Signal handling
    # ----------------------------------------------------------------

    def setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}")
            self._shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info("Signal handlers configured")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()

    # ----------------------------------------------------------------
    # Main run method
    # ----------------------------------------------------------------

    async def run(self) -> None:
        """Initialise, start, and run until interrupted."""
        try:
            self.setup_signal_handlers()
            await self.initialise()
            await self.start()

            logger.info("Master station running. Press Ctrl+C to stop.")
            await self.wait_for_shutdown()

        except KeyboardInterrupt:
            logger.info("KeyboardInterrupt received")
        finally:
            if self._running:
                await self.stop()
