"""Modbus TCP function codecs, executors and a simulated outstation."""

from mixmaster.protocols.modbus.command_parameters import (
    ModbusCommandParameters,
    ModbusFunctionCode,
    ModbusReadCommandParameters,
    ModbusWriteCommandParameters,
)
from mixmaster.protocols.modbus.function_factory import create_modbus_function
from mixmaster.protocols.modbus.functions import ModbusFunction, ParsedResponse

__all__ = [
    "ModbusCommandParameters",
    "ModbusFunction",
    "ModbusFunctionCode",
    "ModbusReadCommandParameters",
    "ModbusWriteCommandParameters",
    "ParsedResponse",
    "create_modbus_function",
]
