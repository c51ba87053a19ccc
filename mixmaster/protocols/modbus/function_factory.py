# mixmaster/protocols/modbus/function_factory.py
"""
Factory for Modbus functions keyed on function code.
"""

from mixmaster.errors import UnsupportedFunctionError
from mixmaster.protocols.modbus.command_parameters import ModbusCommandParameters
from mixmaster.protocols.modbus.functions import (
    ModbusFunction,
    ReadCoilsFunction,
    ReadDiscreteInputsFunction,
    ReadHoldingRegistersFunction,
    ReadInputRegistersFunction,
    WriteSingleCoilFunction,
    WriteSingleRegisterFunction,
)

FUNCTION_REGISTRY: dict[int, type[ModbusFunction]] = {
    cls.function_code: cls
    for cls in (
        ReadCoilsFunction,
        ReadDiscreteInputsFunction,
        ReadHoldingRegistersFunction,
        ReadInputRegistersFunction,
        WriteSingleCoilFunction,
        WriteSingleRegisterFunction,
    )
}


def create_modbus_function(command_parameters: ModbusCommandParameters) -> ModbusFunction:
    """Create the Modbus function matching the parameters' function code.

    Raises:
        UnsupportedFunctionError: If no function is registered for the code
        InvalidArgumentError: If the parameters have the wrong shape
    """
    function_cls = FUNCTION_REGISTRY.get(command_parameters.function_code)
    if function_cls is None:
        raise UnsupportedFunctionError(command_parameters.function_code)
    return function_cls(command_parameters)
