# mixmaster/processing/acquisition_scheduler.py
"""
Periodic acquisition.

On every tick, each configured item whose elapsed-tick counter has
reached its acquisition interval gets a read command covering all of its
registers. Counters are private to the scheduler and keyed by item
identity.
"""

from typing import Any

from mixmaster.config.config_item import ConfigItem
from mixmaster.config.configuration import Configuration
from mixmaster.processing.command_dispatcher import CommandDispatcher
from mixmaster.processing.tick_worker import TickWorker


class AcquisitionScheduler(TickWorker):
    """
    Polls configured items on their acquisition intervals.

    Every counter starts at 0, so an item with interval N is read on the
    (N+1)th tick and every N+1 ticks after that (counter reaches N, read,
    reset to 0).
    """

    def __init__(
        self,
        configuration: Configuration,
        dispatcher: CommandDispatcher,
        station_name: str = "",
    ):
        super().__init__(name="acquisition", station_name=station_name)
        self.configuration = configuration
        self.dispatcher = dispatcher

        self._elapsed: dict[ConfigItem, int] = {}
        self.commands_issued = 0

    def elapsed(self, item: ConfigItem) -> int:
        return self._elapsed.get(item, 0)

    async def tick(self) -> None:
        for item in self.configuration.get_configuration_items():
            elapsed = self._elapsed.get(item, 0)
            if elapsed < item.acquisition_interval:
                self._elapsed[item] = elapsed + 1
                continue

            self._elapsed[item] = 0
            try:
                self.dispatcher.execute_read_command(
                    item,
                    self.configuration.get_transaction_id(),
                    self.configuration.unit_address,
                    item.start_address,
                    item.number_of_registers,
                )
                self.commands_issued += 1
            except Exception as e:
                self.metadata["error_count"] += 1
                self.logger.error(f"Acquisition failed for {item!r}: {e}")

    def get_status(self) -> dict[str, Any]:
        status = super().get_status()
        status["commands_issued"] = self.commands_issued
        status["items"] = len(self.configuration.get_configuration_items())
        return status
