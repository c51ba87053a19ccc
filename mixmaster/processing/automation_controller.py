# mixmaster/processing/automation_controller.py
"""
Mixing vessel automation.

A safety-interlocked state machine stepped once per tick. It fills the
vessel with chocolate, milk and water in turn, mixes, then drains. Valve
and motor states are observed from the point store and driven only
through the command dispatcher, the same path an operator would use.

Addresses (defaults):
- start signal: DO 3000
- mixer motor: DO 3001
- valves V1 (chocolate), V2 (milk), V3 (water), V4 (drain): DO 4000..4003
- mixer contents: AO 1000
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from mixmaster.config.configuration import Configuration
from mixmaster.logging_system import EventCategory, EventSeverity
from mixmaster.processing.command_dispatcher import CommandDispatcher
from mixmaster.processing.tick_worker import TickWorker
from mixmaster.processing.unit_converter import UnitConverter
from mixmaster.state.point_store import PointStore
from mixmaster.state.points import PointIdentifier, PointType

DIGITAL_WRITE_TYPES = (PointType.DIGITAL_OUTPUT, PointType.DIGITAL_INPUT)


class MixerState(Enum):
    """Mixer process states."""

    IDLE = "idle"
    FILLING_CHOCOLATE = "filling_chocolate"
    FILLING_MILK = "filling_milk"
    FILLING_WATER = "filling_water"
    MIXING = "mixing"
    EMPTYING = "emptying"
    ERROR = "error"  # Reserved for manual reset, never entered automatically


@dataclass
class MixerParameters:
    """Mixer addressing and recipe.

    Attributes:
        start_address: Start signal coil
        motor_address: Mixer motor coil
        valve_addresses: V1 (chocolate), V2 (milk), V3 (water), V4 (drain)
        contents_address: Holding register publishing vessel contents
        chocolate_rate: Chocolate inflow per tick
        milk_rate: Milk inflow per tick
        water_rate: Water inflow per tick
        drain_rate: Outflow per tick while emptying
        chocolate_amount: Chocolate per batch
        milk_amount: Milk per batch
        water_amount: Water per batch
        mixing_ticks: Ticks the motor runs before draining
    """

    start_address: int = 3000
    motor_address: int = 3001
    valve_addresses: tuple[int, int, int, int] = (4000, 4001, 4002, 4003)
    contents_address: int = 1000
    chocolate_rate: float = 50.0
    milk_rate: float = 50.0
    water_rate: float = 30.0
    drain_rate: float = 100.0
    chocolate_amount: float = 100.0
    milk_amount: float = 150.0
    water_amount: float = 120.0
    mixing_ticks: int = 10

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> "MixerParameters":
        """Build parameters from the YAML automation section."""
        addresses = settings.get("addresses", {})
        rates = settings.get("rates", {})
        targets = settings.get("targets", {})
        defaults = cls()

        return cls(
            start_address=int(addresses.get("start", defaults.start_address)),
            motor_address=int(addresses.get("motor", defaults.motor_address)),
            valve_addresses=tuple(
                int(addresses.get(f"valve_v{n}", default))
                for n, default in enumerate(defaults.valve_addresses, start=1)
            ),
            contents_address=int(
                addresses.get("mixer_contents", defaults.contents_address)
            ),
            chocolate_rate=float(rates.get("chocolate", defaults.chocolate_rate)),
            milk_rate=float(rates.get("milk", defaults.milk_rate)),
            water_rate=float(rates.get("water", defaults.water_rate)),
            drain_rate=float(rates.get("drain", defaults.drain_rate)),
            chocolate_amount=float(targets.get("chocolate", defaults.chocolate_amount)),
            milk_amount=float(targets.get("milk", defaults.milk_amount)),
            water_amount=float(targets.get("water", defaults.water_amount)),
            mixing_ticks=int(targets.get("mixing_ticks", defaults.mixing_ticks)),
        )


class AutomationController(TickWorker):
    """
    Mixer state machine.

    Per tick: read start and valve signals, run the safety interlock,
    step the current state, publish the contents register.

    Safety interlock: while MIXING, any of V1..V3 observed open triggers
    an emergency stop on the same tick, ahead of the mixing timer.

    Example:
        >>> controller = AutomationController(store, dispatcher, configuration)
        >>> await controller.tick()
        >>> controller.state
        <MixerState.FILLING_CHOCOLATE: 'filling_chocolate'>
    """

    def __init__(
        self,
        point_store: PointStore,
        dispatcher: CommandDispatcher,
        configuration: Configuration,
        params: MixerParameters | None = None,
        station_name: str = "",
    ):
        super().__init__(name="automation", station_name=station_name)
        self.point_store = point_store
        self.dispatcher = dispatcher
        self.configuration = configuration
        self.params = params or MixerParameters()
        self.converter = UnitConverter()

        self.state = MixerState.IDLE
        self.state_timer = 0
        self.contents = 0.0

        self.emergency_stop_count = 0
        self.batches_completed = 0

        p = self.params
        self._v1, self._v2, self._v3, self._v4 = p.valve_addresses
        self._chocolate_target = p.chocolate_amount
        self._milk_target = p.chocolate_amount + p.milk_amount
        self._water_target = p.chocolate_amount + p.milk_amount + p.water_amount

    # ----------------------------------------------------------------
    # Tick
    # ----------------------------------------------------------------

    async def tick(self) -> None:
        start_signal = self._read_digital(self.params.start_address)
        v1 = self._read_digital(self._v1)
        v2 = self._read_digital(self._v2)
        v3 = self._read_digital(self._v3)

        if self.state == MixerState.MIXING and (v1 or v2 or v3):
            self.emergency_stop()
            return

        if self.state == MixerState.IDLE:
            self._handle_idle(start_signal)
        elif self.state == MixerState.FILLING_CHOCOLATE:
            self._handle_filling_chocolate()
        elif self.state == MixerState.FILLING_MILK:
            self._handle_filling_milk()
        elif self.state == MixerState.FILLING_WATER:
            self._handle_filling_water()
        elif self.state == MixerState.MIXING:
            self._handle_mixing()
        elif self.state == MixerState.EMPTYING:
            self._handle_emptying()
        # ERROR: hold outputs until reset

        self.update_mixer_contents()

    # ----------------------------------------------------------------
    # State handlers
    # ----------------------------------------------------------------

    def _handle_idle(self, start_signal: int) -> None:
        if start_signal == 1 and self.contents == 0:
            self._transition(MixerState.FILLING_CHOCOLATE)
            self._set_digital(self._v1, 1)
            self._set_digital(self._v2, 0)
            self._set_digital(self._v3, 0)
            self._set_digital(self._v4, 0)
            self._set_digital(self.params.motor_address, 0)

    def _handle_filling_chocolate(self) -> None:
        self.state_timer += 1
        self.contents += self.params.chocolate_rate
        if self.contents >= self._chocolate_target:
            self.contents = self._chocolate_target
            self._set_digital(self._v1, 0)
            self._set_digital(self._v2, 1)
            self._transition(MixerState.FILLING_MILK)

    def _handle_filling_milk(self) -> None:
        self.state_timer += 1
        self.contents += self.params.milk_rate
        if self.contents >= self._milk_target:
            self.contents = self._milk_target
            self._set_digital(self._v2, 0)
            self._set_digital(self._v3, 1)
            self._transition(MixerState.FILLING_WATER)

    def _handle_filling_water(self) -> None:
        self.state_timer += 1
        self.contents += self.params.water_rate
        if self.contents >= self._water_target:
            self.contents = self._water_target
            self._set_digital(self._v3, 0)
            self._set_digital(self.params.motor_address, 1)
            self._transition(MixerState.MIXING)

    def _handle_mixing(self) -> None:
        self.state_timer += 1
        if self.state_timer >= self.params.mixing_ticks:
            self._set_digital(self.params.motor_address, 0)
            self._set_digital(self._v4, 1)
            self._transition(MixerState.EMPTYING)

    def _handle_emptying(self) -> None:
        self.state_timer += 1
        self.contents -= self.params.drain_rate
        if self.contents <= 0:
            self.contents = 0.0
            self._set_digital(self._v4, 0)
            self._set_digital(self.params.start_address, 0)
            self._transition(MixerState.IDLE)
            self.batches_completed += 1

    def _transition(self, new_state: MixerState) -> None:
        old_state = self.state
        self.state = new_state
        self.state_timer = 0
        self.logger.log_event(
            EventSeverity.INFO,
            EventCategory.PROCESS,
            f"Mixer {old_state.value} -> {new_state.value} (contents={self.contents:.1f})",
            component="mixer",
            data={"from": old_state.value, "to": new_state.value, "contents": self.contents},
        )

    # ----------------------------------------------------------------
    # Safety
    # ----------------------------------------------------------------

    def emergency_stop(self) -> None:
        """Stop the motor, close the inlets and drain the vessel."""
        self._set_digital(self.params.motor_address, 0)
        self._set_digital(self._v1, 0)
        self._set_digital(self._v2, 0)
        self._set_digital(self._v3, 0)
        self._set_digital(self._v4, 1)

        previous = self.state
        self.state = MixerState.EMPTYING
        self.state_timer = 0
        self.emergency_stop_count += 1

        self.logger.log_safety(
            f"EMERGENCY STOP: inlet valve open while {previous.value}, draining "
            f"{self.contents:.1f}",
            component="mixer",
            data={"previous_state": previous.value, "contents": self.contents},
        )

    def force_outputs_off(self) -> None:
        """Queue writes closing every valve and stopping the motor."""
        for address in (self._v1, self._v2, self._v3, self._v4, self.params.motor_address):
            self._set_digital(address, 0)
        self.logger.info("Mixer outputs forced off")

    async def _on_stopped(self) -> None:
        self.force_outputs_off()

    # ----------------------------------------------------------------
    # Point access
    # ----------------------------------------------------------------

    def _read_digital(self, address: int) -> int:
        point = self.point_store.get_point(
            PointIdentifier(PointType.DIGITAL_OUTPUT, address)
        )
        return point.raw_value if point is not None else 0

    def _set_digital(self, address: int, value: int) -> None:
        item = self.configuration.find_item(address, DIGITAL_WRITE_TYPES)
        if item is None:
            self.logger.warning(f"No digital item configured for address {address}")
            return
        try:
            self.dispatcher.execute_write_command(
                item,
                self.configuration.get_transaction_id(),
                self.configuration.unit_address,
                address,
                value,
            )
        except Exception as e:
            self.logger.error(f"Error writing point {address}: {e}")

    def update_mixer_contents(self) -> None:
        """Publish the current contents to the contents register."""
        address = self.params.contents_address
        item = self.configuration.find_item(address, (PointType.ANALOG_OUTPUT,))
        if item is None:
            return
        try:
            raw_value = self.converter.convert_to_raw(
                item.scale_factor, item.deviation, self.contents
            )
            self.dispatcher.write_raw(
                item,
                self.configuration.get_transaction_id(),
                self.configuration.unit_address,
                address,
                raw_value,
            )
        except Exception as e:
            self.logger.error(f"Error updating mixer contents: {e}")

    def get_status(self) -> dict[str, Any]:
        status = super().get_status()
        status.update(
            {
                "state": self.state.value,
                "state_timer": self.state_timer,
                "contents": self.contents,
                "emergency_stop_count": self.emergency_stop_count,
                "batches_completed": self.batches_completed,
            }
        )
        return status
