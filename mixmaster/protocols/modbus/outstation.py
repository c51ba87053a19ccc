# mixmaster/protocols/modbus/outstation.py
"""
Simulated Modbus TCP outstation.

Coil, discrete input, holding register and input register tables live
in a pymodbus device context. The process side reads and writes them
directly; OutstationServer serves the same context over TCP through a
pymodbus ModbusTcpServer, which does all request decoding, range
checking and exception responses.
"""

import asyncio
import logging
import socket

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.datastore import (
    ModbusDeviceContext,
    ModbusSequentialDataBlock,
    ModbusServerContext,
)
from pymodbus.server import ModbusTcpServer

from mixmaster.protocols.modbus.command_parameters import (
    ADDRESS_SPACE,
    ModbusFunctionCode,
)

logger = logging.getLogger(__name__)

START_ATTEMPTS = 20
START_RETRY_DELAY = 0.05
STOP_TIMEOUT = 2.0


class SimulatedOutstation:
    """
    In-memory Modbus slave backed by pymodbus data blocks.

    Example:
        >>> outstation = SimulatedOutstation(unit_id=1)
        >>> outstation.set_coil(3000, True)
        >>> server = OutstationServer(outstation, port=1502)
    """

    def __init__(self, unit_id: int = 1, size: int = ADDRESS_SPACE):
        """
        Initialise outstation memory.

        Args:
            unit_id: The only unit id served; requests for any other unit
                get a GATEWAY_NO_RESPONSE exception
            size: Number of addresses in each table
        """
        self.unit_id = unit_id
        self.size = size

        # Device context addressing is one-based inside the blocks
        self.device = ModbusDeviceContext(
            co=ModbusSequentialDataBlock(0, [0] * (size + 1)),
            di=ModbusSequentialDataBlock(0, [0] * (size + 1)),
            hr=ModbusSequentialDataBlock(0, [0] * (size + 1)),
            ir=ModbusSequentialDataBlock(0, [0] * (size + 1)),
        )
        self.context = ModbusServerContext({unit_id: self.device}, single=False)

    # ----------------------------------------------------------------
    # Direct memory access (process side)
    # ----------------------------------------------------------------

    def set_coil(self, address: int, value: bool) -> None:
        self._set(ModbusFunctionCode.READ_COILS, address, bool(value))

    def get_coil(self, address: int) -> int:
        return int(bool(self._get(ModbusFunctionCode.READ_COILS, address)))

    def set_discrete_input(self, address: int, value: bool) -> None:
        self._set(ModbusFunctionCode.READ_DISCRETE_INPUTS, address, bool(value))

    def get_discrete_input(self, address: int) -> int:
        return int(bool(self._get(ModbusFunctionCode.READ_DISCRETE_INPUTS, address)))

    def set_holding_register(self, address: int, value: int) -> None:
        self._set(ModbusFunctionCode.READ_HOLDING_REGISTERS, address, value & 0xFFFF)

    def get_holding_register(self, address: int) -> int:
        return int(self._get(ModbusFunctionCode.READ_HOLDING_REGISTERS, address))

    def set_input_register(self, address: int, value: int) -> None:
        self._set(ModbusFunctionCode.READ_INPUT_REGISTERS, address, value & 0xFFFF)

    def get_input_register(self, address: int) -> int:
        return int(self._get(ModbusFunctionCode.READ_INPUT_REGISTERS, address))

    def _check_address(self, address: int) -> None:
        if not 0 <= address < self.size:
            raise IndexError(f"Address {address} outside outstation table of {self.size}")

    def _get(self, function_code: int, address: int) -> int | bool:
        self._check_address(address)
        return self.device.getValues(function_code, address, count=1)[0]

    def _set(self, function_code: int, address: int, value: int | bool) -> None:
        self._check_address(address)
        self.device.setValues(function_code, address, [value])


# ----------------------------------------------------------------
# TCP server
# ----------------------------------------------------------------


def free_tcp_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently unused TCP port on host."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


class OutstationServer:
    """
    Serves a SimulatedOutstation over Modbus TCP.

    Port 0 picks a free port at start(); bound_port reports it.

    Example:
        >>> server = OutstationServer(SimulatedOutstation(), port=1502)
        >>> await server.start()
        >>> await server.stop()
    """

    def __init__(self, outstation: SimulatedOutstation, host: str = "127.0.0.1", port: int = 502):
        self.outstation = outstation
        self.host = host
        self.port = port
        self._server: ModbusTcpServer | None = None
        self._server_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def bound_port(self) -> int:
        return self.port

    async def start(self) -> None:
        """Start serving and wait until the port accepts connections.

        Raises:
            RuntimeError: If the server never starts listening
        """
        if self._server is not None:
            return
        if self.port == 0:
            self.port = free_tcp_port(self.host)

        self._server = ModbusTcpServer(self.outstation.context, address=(self.host, self.port))
        self._server_task = asyncio.create_task(
            self._server.serve_forever(), name=f"outstation-{self.port}"
        )

        for _ in range(START_ATTEMPTS):
            await asyncio.sleep(START_RETRY_DELAY)
            if await self._accepts_connections():
                logger.info(f"Outstation listening on {self.host}:{self.port}")
                return

        await self.stop()
        raise RuntimeError(f"Outstation failed to listen on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._server is None:
            return

        await self._server.shutdown()
        if self._server_task is not None:
            try:
                await asyncio.wait_for(self._server_task, timeout=STOP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"Outstation on port {self.port} did not shut down in time")
            self._server_task = None

        self._server = None
        logger.info("Outstation stopped")

    async def _accepts_connections(self) -> bool:
        client = AsyncModbusTcpClient(self.host, port=self.port)
        try:
            return await client.connect()
        finally:
            client.close()
