# mixmaster/protocols/modbus/functions.py
"""
Modbus TCP function codecs.

Bit-exact translation between command parameters and the wire form of
one Modbus TCP function, and the inverse for responses.

Request layout (all multi-byte fields big-endian):

    [0:2) transaction id
    [2:4) protocol id (0)
    [4:6) length (bytes following this field)
    [6]   unit id
    [7]   function code
    [8:12) function-specific tail

Read responses carry the payload byte count at offset 8 and data from
offset 9. Write responses are not parsed: the update is synthesized from
the request as an echo.
"""

import struct
from abc import ABC, abstractmethod
from typing import NamedTuple

from pymodbus.pdu import ExceptionResponse

from mixmaster.errors import InvalidArgumentError, ModbusExceptionError, ProtocolError
from mixmaster.protocols.modbus.command_parameters import (
    ModbusCommandParameters,
    ModbusFunctionCode,
    ModbusReadCommandParameters,
    ModbusWriteCommandParameters,
)
from mixmaster.state.points import PointIdentifier, PointType

__all__ = [
    "MBAP_HEADER",
    "MBAPHeader",
    "ParsedResponse",
    "ModbusFunction",
    "ReadCoilsFunction",
    "ReadDiscreteInputsFunction",
    "ReadHoldingRegistersFunction",
    "ReadInputRegistersFunction",
    "WriteSingleCoilFunction",
    "WriteSingleRegisterFunction",
    "unpack_header",
    "raise_for_exception",
]

MBAP_HEADER = struct.Struct(">HHHB")
REQUEST = struct.Struct(">HHHBBHH")

BYTE_COUNT_OFFSET = 8
DATA_OFFSET = 9
EXCEPTION_FLAG = 0x80

COIL_ON = 0xFF00
COIL_OFF = 0x0000

EXCEPTION_NAMES = {
    ExceptionResponse.ILLEGAL_FUNCTION: "ILLEGAL_FUNCTION",
    ExceptionResponse.ILLEGAL_ADDRESS: "ILLEGAL_DATA_ADDRESS",
    ExceptionResponse.ILLEGAL_VALUE: "ILLEGAL_DATA_VALUE",
    ExceptionResponse.GATEWAY_NO_RESPONSE: "GATEWAY_TARGET_NO_RESPONSE",
}

ParsedResponse = dict[PointIdentifier, int]


class MBAPHeader(NamedTuple):
    transaction_id: int
    protocol_id: int
    length: int
    unit_id: int


def unpack_header(frame: bytes) -> MBAPHeader:
    """Decode the 7-byte MBAP header of a frame.

    Raises:
        ProtocolError: If the frame is shorter than a header
    """
    if len(frame) < MBAP_HEADER.size:
        raise ProtocolError(f"Frame too short for MBAP header: {len(frame)} bytes")
    return MBAPHeader(*MBAP_HEADER.unpack_from(frame))


def raise_for_exception(frame: bytes) -> None:
    """Raise ModbusExceptionError if the frame is an exception response."""
    if len(frame) < BYTE_COUNT_OFFSET:
        raise ProtocolError(f"Frame too short for function code: {len(frame)} bytes")
    function_byte = frame[7]
    if function_byte & EXCEPTION_FLAG:
        exception_code = frame[8] if len(frame) > 8 else 0
        raise ModbusExceptionError(
            function_byte & ~EXCEPTION_FLAG,
            exception_code,
            EXCEPTION_NAMES.get(exception_code, "UNKNOWN"),
        )


# ----------------------------------------------------------------
# Base function
# ----------------------------------------------------------------


class ModbusFunction(ABC):
    """
    One Modbus request/response pair.

    Subclasses declare the function code they implement and the command
    parameter shape they accept; both are checked at construction.
    """

    function_code: ModbusFunctionCode
    parameters_type: type[ModbusCommandParameters]

    def __init__(self, command_parameters: ModbusCommandParameters):
        if not isinstance(command_parameters, self.parameters_type):
            raise InvalidArgumentError(
                f"{type(self).__name__} requires {self.parameters_type.__name__}, "
                f"got {type(command_parameters).__name__}"
            )
        if command_parameters.function_code != self.function_code:
            raise InvalidArgumentError(
                f"{type(self).__name__} handles function code {int(self.function_code)}, "
                f"got {command_parameters.function_code}"
            )
        self.command_parameters = command_parameters

    def _pack(self, first: int, second: int) -> bytes:
        p = self.command_parameters
        return REQUEST.pack(
            p.transaction_id,
            p.protocol_id,
            p.length,
            p.unit_id,
            p.function_code,
            first,
            second,
        )

    @abstractmethod
    def pack_request(self) -> bytes:
        """Encode the request ADU."""

    @abstractmethod
    def parse_response(self, response: bytes) -> ParsedResponse:
        """Decode a response ADU into point updates."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.command_parameters}>"


# ----------------------------------------------------------------
# Reads
# ----------------------------------------------------------------


class _ReadFunction(ModbusFunction):
    parameters_type = ModbusReadCommandParameters

    def pack_request(self) -> bytes:
        p = self.command_parameters
        return self._pack(p.start_address, p.quantity)

    def _payload(self, response: bytes) -> bytes:
        if len(response) <= BYTE_COUNT_OFFSET:
            raise ProtocolError(f"Response too short: {len(response)} bytes")
        byte_count = response[BYTE_COUNT_OFFSET]
        end = DATA_OFFSET + byte_count
        if len(response) < end:
            raise ProtocolError(
                f"Response declares {byte_count} data bytes, "
                f"only {len(response) - DATA_OFFSET} present"
            )
        return response[DATA_OFFSET:end]


class _ReadBitsFunction(_ReadFunction):
    point_type: PointType

    def parse_response(self, response: bytes) -> ParsedResponse:
        p = self.command_parameters
        result: ParsedResponse = {}

        for i, data in enumerate(self._payload(response)):
            for j in range(8):
                offset = j + i * 8
                if offset >= p.quantity:
                    break
                result[PointIdentifier(self.point_type, p.start_address + offset)] = (
                    data >> j
                ) & 0x01

        return result


class ReadCoilsFunction(_ReadBitsFunction):
    function_code = ModbusFunctionCode.READ_COILS
    point_type = PointType.DIGITAL_OUTPUT


class ReadDiscreteInputsFunction(_ReadBitsFunction):
    function_code = ModbusFunctionCode.READ_DISCRETE_INPUTS
    point_type = PointType.DIGITAL_INPUT


class ReadHoldingRegistersFunction(_ReadFunction):
    function_code = ModbusFunctionCode.READ_HOLDING_REGISTERS

    def parse_response(self, response: bytes) -> ParsedResponse:
        p = self.command_parameters
        payload = self._payload(response)
        result: ParsedResponse = {}

        for i in range(len(payload) // 2):
            (value,) = struct.unpack_from(">H", payload, 2 * i)
            result[PointIdentifier(PointType.ANALOG_OUTPUT, p.start_address + i)] = value

        return result


class ReadInputRegistersFunction(_ReadFunction):
    """Declared for factory completeness; no encoder exists yet."""

    function_code = ModbusFunctionCode.READ_INPUT_REGISTERS

    def pack_request(self) -> bytes:
        raise NotImplementedError("Read Input Registers is not implemented")

    def parse_response(self, response: bytes) -> ParsedResponse:
        raise NotImplementedError("Read Input Registers is not implemented")


# ----------------------------------------------------------------
# Writes
# ----------------------------------------------------------------


class WriteSingleCoilFunction(ModbusFunction):
    function_code = ModbusFunctionCode.WRITE_SINGLE_COIL
    parameters_type = ModbusWriteCommandParameters

    def pack_request(self) -> bytes:
        p = self.command_parameters
        return self._pack(p.output_address, COIL_ON if p.value != 0 else COIL_OFF)

    def parse_response(self, response: bytes) -> ParsedResponse:
        p = self.command_parameters
        return {
            PointIdentifier(PointType.DIGITAL_OUTPUT, p.output_address): int(p.value != 0)
        }


class WriteSingleRegisterFunction(ModbusFunction):
    function_code = ModbusFunctionCode.WRITE_SINGLE_REGISTER
    parameters_type = ModbusWriteCommandParameters

    def pack_request(self) -> bytes:
        p = self.command_parameters
        return self._pack(p.output_address, p.value)

    def parse_response(self, response: bytes) -> ParsedResponse:
        p = self.command_parameters
        return {PointIdentifier(PointType.ANALOG_OUTPUT, p.output_address): p.value}
