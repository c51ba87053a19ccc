# mixmaster/processing/command_dispatcher.py
"""
Command dispatcher.

Turns typed read/write intents into Modbus functions, submits them to the
executor, and folds decoded updates back into point state with unit
conversion and alarm evaluation.

Faults while building a command propagate to the caller. Faults while
applying an update are logged and force an alarm classification; they
never propagate into the executor.
"""

from datetime import datetime
from typing import Protocol

from mixmaster.config.config_item import ConfigItem
from mixmaster.errors import InvalidArgumentError
from mixmaster.logging_system import get_logger
from mixmaster.processing.alarm_processor import AlarmProcessor
from mixmaster.processing.unit_converter import UnitConverter
from mixmaster.protocols.modbus.command_parameters import (
    REQUEST_LENGTH,
    ModbusFunctionCode,
    ModbusReadCommandParameters,
    ModbusWriteCommandParameters,
)
from mixmaster.protocols.modbus.executor import UpdateHandler
from mixmaster.protocols.modbus.function_factory import create_modbus_function
from mixmaster.protocols.modbus.functions import ModbusFunction
from mixmaster.state.point_store import PointStore
from mixmaster.state.points import (
    AlarmType,
    AnalogPoint,
    DigitalPoint,
    DState,
    Point,
    PointIdentifier,
    PointType,
)

RAW_MAX = 0xFFFF
EGU_HEURISTIC_THRESHOLD = 1000

READ_FUNCTION_CODES = {
    PointType.DIGITAL_OUTPUT: ModbusFunctionCode.READ_COILS,
    PointType.DIGITAL_INPUT: ModbusFunctionCode.READ_DISCRETE_INPUTS,
    PointType.ANALOG_INPUT: ModbusFunctionCode.READ_INPUT_REGISTERS,
    PointType.ANALOG_OUTPUT: ModbusFunctionCode.READ_HOLDING_REGISTERS,
    PointType.HR_LONG: ModbusFunctionCode.READ_HOLDING_REGISTERS,
}

ANALOG_OUTPUT_TYPES = (PointType.ANALOG_OUTPUT, PointType.HR_LONG)


class CommandExecutor(Protocol):
    def set_update_handler(self, handler: UpdateHandler) -> None: ...

    def enqueue_command(self, function: ModbusFunction) -> None: ...


class AlarmPolicy(Protocol):
    def get_alarm_for_analog_point(self, egu_value: float, config_item: ConfigItem) -> AlarmType: ...

    def get_alarm_for_digital_point(self, raw_value: int, config_item: ConfigItem) -> AlarmType: ...


def _clamp_raw(value: float) -> int:
    return int(max(0, min(RAW_MAX, value)))


class CommandDispatcher:
    """
    Builds and submits commands; applies decoded updates to points.

    Registers itself as the executor's single update handler at
    construction.

    Example:
        >>> dispatcher = CommandDispatcher(store, executor)
        >>> dispatcher.execute_read_command(item, 1, 1, item.start_address, 4)
        >>> dispatcher.execute_write_command(item, 2, 1, 4000, 1)
    """

    def __init__(
        self,
        point_store: PointStore,
        executor: CommandExecutor,
        alarm_policy: AlarmPolicy | None = None,
        station_name: str = "",
    ):
        self.point_store = point_store
        self.executor = executor
        self.alarm_policy = alarm_policy or AlarmProcessor()
        self.converter = UnitConverter()

        self.logger = get_logger(self.__class__.__name__, device=station_name)

        self.commands_submitted = 0
        self.updates_applied = 0
        self.updates_ignored = 0
        self.processing_errors = 0

        self.executor.set_update_handler(self.handle_point_update)

    # ----------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------

    def execute_read_command(
        self,
        config_item: ConfigItem,
        transaction_id: int,
        unit_address: int,
        start_address: int,
        quantity: int,
    ) -> None:
        """
        Submit a read of quantity points starting at start_address.

        Raises:
            InvalidArgumentError: Unmapped registry type or invalid parameters
        """
        try:
            function_code = READ_FUNCTION_CODES.get(config_item.registry_type)
            if function_code is None:
                raise InvalidArgumentError(
                    f"Unsupported registry type for reading: {config_item.registry_type}"
                )

            parameters = ModbusReadCommandParameters(
                length=REQUEST_LENGTH,
                function_code=function_code,
                transaction_id=transaction_id,
                unit_id=unit_address,
                start_address=start_address,
                quantity=quantity,
            )
            self._submit(create_modbus_function(parameters))
        except Exception as e:
            self.logger.error(f"Error executing read command: {e}")
            raise

    # ----------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------

    def execute_write_command(
        self,
        config_item: ConfigItem,
        transaction_id: int,
        unit_address: int,
        address: int,
        value: float,
    ) -> None:
        """
        Submit a single write.

        Digital outputs take any value and write 0/1. For analog outputs
        the value is treated as engineering units (and converted) when
        |value| > 65535, or when value > 1000 and the item has a non-unit
        scale factor; otherwise it is clamped and written as raw.

        Raises:
            InvalidArgumentError: Registry type cannot be written or invalid parameters
        """
        try:
            registry_type = config_item.registry_type
            if registry_type == PointType.DIGITAL_OUTPUT:
                self._write_coil(transaction_id, unit_address, address, value)
            elif registry_type in ANALOG_OUTPUT_TYPES:
                if abs(value) > RAW_MAX or (
                    value > EGU_HEURISTIC_THRESHOLD and config_item.scale_factor != 1.0
                ):
                    raw_value = self.converter.convert_to_raw(
                        config_item.scale_factor, config_item.deviation, value
                    )
                else:
                    raw_value = _clamp_raw(value)
                self._write_register(transaction_id, unit_address, address, raw_value)
            else:
                raise InvalidArgumentError(f"Cannot write to registry type: {registry_type}")
        except Exception as e:
            self.logger.error(f"Error executing write command: {e}")
            raise

    def write_raw(
        self,
        config_item: ConfigItem,
        transaction_id: int,
        unit_address: int,
        address: int,
        raw_value: int,
    ) -> None:
        """Write a register value as-is (clamped to 16 bits)."""
        self._require_analog_output(config_item)
        self._write_register(transaction_id, unit_address, address, _clamp_raw(raw_value))

    def write_engineering_units(
        self,
        config_item: ConfigItem,
        transaction_id: int,
        unit_address: int,
        address: int,
        egu_value: float,
    ) -> None:
        """Convert an EGU value with the item's scaling and write it."""
        self._require_analog_output(config_item)
        raw_value = (egu_value - config_item.deviation) / config_item.scale_factor
        self._write_register(transaction_id, unit_address, address, _clamp_raw(raw_value))

    def _require_analog_output(self, config_item: ConfigItem) -> None:
        if config_item.registry_type not in ANALOG_OUTPUT_TYPES:
            raise InvalidArgumentError(
                f"Register write needs an analog output item, got {config_item.registry_type}"
            )

    def _write_coil(self, transaction_id: int, unit_address: int, address: int, value: float) -> None:
        parameters = ModbusWriteCommandParameters(
            length=REQUEST_LENGTH,
            function_code=ModbusFunctionCode.WRITE_SINGLE_COIL,
            transaction_id=transaction_id,
            unit_id=unit_address,
            output_address=address,
            value=1 if value != 0 else 0,
        )
        self._submit(create_modbus_function(parameters))

    def _write_register(self, transaction_id: int, unit_address: int, address: int, raw_value: int) -> None:
        parameters = ModbusWriteCommandParameters(
            length=REQUEST_LENGTH,
            function_code=ModbusFunctionCode.WRITE_SINGLE_REGISTER,
            transaction_id=transaction_id,
            unit_id=unit_address,
            output_address=address,
            value=raw_value,
        )
        self._submit(create_modbus_function(parameters))

    def _submit(self, function: ModbusFunction) -> None:
        self.executor.enqueue_command(function)
        self.commands_submitted += 1
        self.logger.debug(f"Submitted {function!r}")

    # ----------------------------------------------------------------
    # Update intake
    # ----------------------------------------------------------------

    def handle_point_update(self, point_type: PointType, address: int, raw_value: int) -> None:
        """Apply one decoded (type, address, raw) update. Never raises."""
        try:
            points = self.point_store.get_points([PointIdentifier(point_type, address)])
            if not points:
                self.updates_ignored += 1
                self.logger.debug(f"No point for {point_type.name}[{address}], update ignored")
                return

            self._process_point(points[0], raw_value)
            self.updates_applied += 1
        except Exception as e:
            self.processing_errors += 1
            self.logger.error(f"Error processing point update for address {address}: {e}")

    def initialise_point(self, point_type: PointType, address: int, default_value: int) -> None:
        """Seed a point through the regular update logic."""
        self.handle_point_update(point_type, address, default_value)

    def _process_point(self, point: Point, raw_value: int) -> None:
        previous_alarm = point.alarm

        if isinstance(point, AnalogPoint):
            self._process_analog_point(point, raw_value)
        else:
            self._process_digital_point(point, raw_value)

        if point.alarm != previous_alarm and point.alarm != AlarmType.NO_ALARM:
            self.logger.log_alarm(
                f"{point.identifier} {point.alarm.name} (raw={point.raw_value})",
                component="alarms",
                data={
                    "point": str(point.identifier),
                    "alarm": point.alarm.value,
                    "raw_value": point.raw_value,
                },
            )

    def _process_analog_point(self, point: AnalogPoint, raw_value: int) -> None:
        try:
            point.raw_value = raw_value
            point.timestamp = datetime.now()

            item = point.config_item
            egu_value = self.converter.convert_to_egu(item.scale_factor, item.deviation, raw_value)
            point.egu_value = egu_value
            point.alarm = self.alarm_policy.get_alarm_for_analog_point(egu_value, item)
        except Exception as e:
            self.processing_errors += 1
            self.logger.error(f"Error processing analog point {point.identifier}: {e}")
            point.alarm = AlarmType.REASONABILITY_FAILURE

    def _process_digital_point(self, point: DigitalPoint, raw_value: int) -> None:
        try:
            point.raw_value = raw_value
            point.timestamp = datetime.now()
            point.state = DState.ON if raw_value != 0 else DState.OFF
            point.alarm = self.alarm_policy.get_alarm_for_digital_point(
                raw_value, point.config_item
            )
        except Exception as e:
            self.processing_errors += 1
            self.logger.error(f"Error processing digital point {point.identifier}: {e}")
            point.alarm = AlarmType.ABNORMAL_VALUE
