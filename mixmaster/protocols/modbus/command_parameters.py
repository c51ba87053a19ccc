# mixmaster/protocols/modbus/command_parameters.py
"""
Modbus command parameters.

One value object per request: MBAP header fields plus either a read
shape (start address, quantity) or a write shape (output address, value).
Constructed per request, consumed once by a Modbus function, then dropped.
"""

from dataclasses import dataclass
from enum import IntEnum

from mixmaster.errors import InvalidArgumentError

MBAP_PROTOCOL_ID = 0
REQUEST_LENGTH = 6  # unit id + function code + 4 bytes of payload
ADDRESS_SPACE = 0x10000


class ModbusFunctionCode(IntEnum):
    """Function codes known to the master."""

    READ_COILS = 0x01
    READ_DISCRETE_INPUTS = 0x02
    READ_HOLDING_REGISTERS = 0x03
    READ_INPUT_REGISTERS = 0x04
    WRITE_SINGLE_COIL = 0x05
    WRITE_SINGLE_REGISTER = 0x06


def _check_range(name: str, value: int, upper: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= upper:
        raise InvalidArgumentError(f"{name} {value} out of range [0, {upper}]")


@dataclass(frozen=True)
class ModbusCommandParameters:
    """MBAP header fields shared by every request."""

    length: int
    function_code: int
    transaction_id: int
    unit_id: int
    protocol_id: int = MBAP_PROTOCOL_ID

    def __post_init__(self):
        _check_range("length", self.length, 0xFFFF)
        _check_range("function_code", self.function_code, 0xFF)
        _check_range("transaction_id", self.transaction_id, 0xFFFF)
        _check_range("unit_id", self.unit_id, 0xFF)
        if self.protocol_id != MBAP_PROTOCOL_ID:
            raise InvalidArgumentError(
                f"protocol_id must be {MBAP_PROTOCOL_ID}, got {self.protocol_id}"
            )


@dataclass(frozen=True)
class ModbusReadCommandParameters(ModbusCommandParameters):
    """Read request: a contiguous range starting at start_address."""

    start_address: int = 0
    quantity: int = 1

    def __post_init__(self):
        super().__post_init__()
        _check_range("start_address", self.start_address, 0xFFFF)
        _check_range("quantity", self.quantity, 0xFFFF)
        if self.quantity == 0:
            raise InvalidArgumentError("quantity must be at least 1")
        if self.start_address + self.quantity > ADDRESS_SPACE:
            raise InvalidArgumentError(
                f"Range {self.start_address}+{self.quantity} exceeds the 16-bit address space"
            )


@dataclass(frozen=True)
class ModbusWriteCommandParameters(ModbusCommandParameters):
    """Single write request."""

    output_address: int = 0
    value: int = 0

    def __post_init__(self):
        super().__post_init__()
        _check_range("output_address", self.output_address, 0xFFFF)
        _check_range("value", self.value, 0xFFFF)
