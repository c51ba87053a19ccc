# mixmaster/errors.py
"""
Exception hierarchy for the master station.

Only faults raised while building a command's parameters propagate to the
direct caller. Everything raised in the update path or inside a tick loop
is logged and absorbed by the component that owns the loop.
"""

__all__ = [
    "MixMasterError",
    "InvalidArgumentError",
    "UnsupportedFunctionError",
    "ProtocolError",
    "ModbusExceptionError",
    "ConfigParseError",
]


class MixMasterError(Exception):
    """Base class for all master station errors."""


class InvalidArgumentError(MixMasterError, ValueError):
    """Command parameters or registry types that cannot be turned into a request."""


class UnsupportedFunctionError(InvalidArgumentError):
    """Function code with no registered Modbus function."""

    def __init__(self, function_code: int):
        super().__init__(f"Unsupported function code: {function_code}")
        self.function_code = function_code


class ProtocolError(MixMasterError):
    """Malformed or truncated Modbus frame. Fails a single command."""


class ModbusExceptionError(ProtocolError):
    """Remote unit answered with a Modbus exception response."""

    def __init__(self, function_code: int, exception_code: int, exception_name: str = "UNKNOWN"):
        super().__init__(
            f"Modbus exception 0x{exception_code:02X} ({exception_name}) for function {function_code}"
        )
        self.function_code = function_code
        self.exception_code = exception_code
        self.exception_name = exception_name


class ConfigParseError(MixMasterError):
    """Malformed configuration token or unreadable configuration file."""
