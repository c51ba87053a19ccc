# mixmaster/protocols/modbus/tcp_executor.py
"""
Modbus TCP executor over an asyncio stream.

Transport only: frames go out exactly as the Modbus functions packed
them. One request is in flight at a time. Failed transactions drop the
connection so the next command reconnects; nothing is retried.

LoopbackExecutor runs the same transport against its own outstation
served on 127.0.0.1.
"""

import asyncio
import logging
import struct

from mixmaster.errors import ProtocolError
from mixmaster.protocols.modbus.executor import FunctionExecutor
from mixmaster.protocols.modbus.functions import MBAP_HEADER
from mixmaster.protocols.modbus.outstation import OutstationServer, SimulatedOutstation

logger = logging.getLogger(__name__)


class TcpExecutor(FunctionExecutor):
    def __init__(
        self,
        host: str,
        port: int = 502,
        timeout: float = 2.0,
        name: str = "tcp_executor",
    ):
        super().__init__(name=name)
        self.host = host
        self.port = port
        self.timeout = timeout

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def _open(self) -> None:
        try:
            await self._connect()
        except (OSError, asyncio.TimeoutError) as e:
            # Commands will attempt to reconnect
            logger.warning(f"{self.name}: initial connect to {self.host}:{self.port} failed: {e}")

    async def _close(self) -> None:
        await self._disconnect()

    async def _connect(self) -> None:
        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_connection(self.host, self.port), timeout=self.timeout
        )
        logger.info(f"{self.name}: connected to {self.host}:{self.port}")

    async def _disconnect(self) -> None:
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass

    async def _transact(self, request: bytes) -> bytes:
        if not self.connected:
            await self._connect()

        try:
            self._writer.write(request)
            await self._writer.drain()
            return await asyncio.wait_for(self._read_frame(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError, ProtocolError):
            await self._disconnect()
            raise

    async def _read_frame(self) -> bytes:
        header = await self._reader.readexactly(MBAP_HEADER.size)
        length = struct.unpack_from(">H", header, 4)[0]
        if length < 2:
            raise ProtocolError(f"Response length field too small: {length}")
        body = await self._reader.readexactly(length - 1)
        return header + body


class LoopbackExecutor(TcpExecutor):
    """TCP executor talking to a private outstation served on localhost.

    The server starts on the first connect and stops with the executor.
    """

    def __init__(
        self,
        outstation: SimulatedOutstation,
        timeout: float = 2.0,
        name: str = "loopback_executor",
    ):
        super().__init__("127.0.0.1", port=0, timeout=timeout, name=name)
        self.outstation = outstation
        self.server = OutstationServer(outstation, host=self.host, port=0)

    async def _connect(self) -> None:
        if not self.server.running:
            await self.server.start()
            self.port = self.server.bound_port
        await super()._connect()

    async def _close(self) -> None:
        await super()._close()
        await self.server.stop()
