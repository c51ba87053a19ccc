# mixmaster/protocols/modbus/executor.py
"""
Command executors.

An executor owns the command queue and the transport. It processes
submitted Modbus functions strictly in submission order through a single
consumer task and hands decoded point updates to exactly one registered
handler. That single consumer path is what serialises point mutation.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from mixmaster.errors import InvalidArgumentError, ProtocolError
from mixmaster.protocols.modbus.functions import (
    ModbusFunction,
    ParsedResponse,
    raise_for_exception,
    unpack_header,
)
from mixmaster.state.points import PointType

logger = logging.getLogger(__name__)

UpdateHandler = Callable[[PointType, int, int], None]


class FunctionExecutor(ABC):
    """
    Single-consumer command queue.

    Subclasses implement _transact() to move one request frame to the
    remote unit and return its response frame.

    Example:
        >>> executor = TcpExecutor("192.168.0.10", 502)
        >>> executor.set_update_handler(dispatcher.handle_point_update)
        >>> await executor.start()
        >>> executor.enqueue_command(function)
        >>> await executor.join()
    """

    def __init__(self, name: str = "executor"):
        self.name = name
        self._queue: asyncio.Queue[ModbusFunction | None] = asyncio.Queue()
        self._handler: UpdateHandler | None = None
        self._task: asyncio.Task | None = None
        self._running = False

        self.commands_executed = 0
        self.commands_failed = 0
        self.updates_delivered = 0

    # ----------------------------------------------------------------
    # Wiring
    # ----------------------------------------------------------------

    def set_update_handler(self, handler: UpdateHandler) -> None:
        """Register the one consumer of decoded updates.

        Raises:
            RuntimeError: If a handler is already registered
        """
        if self._handler is not None:
            raise RuntimeError(f"{self.name} already has an update handler")
        self._handler = handler

    def enqueue_command(self, function: ModbusFunction) -> None:
        """Submit a function for execution. Never blocks."""
        if not isinstance(function, ModbusFunction):
            raise InvalidArgumentError(f"Not a Modbus function: {function!r}")
        self._queue.put_nowait(function)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def is_running(self) -> bool:
        return self._running

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            logger.warning(f"{self.name} already running")
            return

        await self._open()
        self._running = True
        self._task = asyncio.create_task(self._consume(), name=f"{self.name}-consumer")
        logger.info(f"{self.name} started")

    async def stop(self) -> None:
        """Drain queued commands, then stop the consumer and close the transport."""
        if not self._running:
            return

        self._queue.put_nowait(None)
        if self._task:
            await self._task
            self._task = None

        self._running = False
        await self._close()
        logger.info(
            f"{self.name} stopped "
            f"(executed={self.commands_executed}, failed={self.commands_failed})"
        )

    async def join(self) -> None:
        """Wait until every queued command has been processed."""
        await self._queue.join()

    # ----------------------------------------------------------------
    # Execution
    # ----------------------------------------------------------------

    async def execute(self, function: ModbusFunction) -> ParsedResponse:
        """
        Perform one request/response transaction.

        Returns:
            Decoded point updates

        Raises:
            ProtocolError: Malformed response or transaction id mismatch
            ModbusExceptionError: Remote unit returned an exception response
            NotImplementedError: Function has no encoder
        """
        request = function.pack_request()
        response = await self._transact(request)

        header = unpack_header(response)
        expected = function.command_parameters.transaction_id
        if header.transaction_id != expected:
            raise ProtocolError(
                f"Transaction id mismatch: sent {expected}, got {header.transaction_id}"
            )
        raise_for_exception(response)

        return function.parse_response(response)

    async def _consume(self) -> None:
        logger.debug(f"{self.name} consumer started")

        while True:
            function = await self._queue.get()
            try:
                if function is None:
                    break

                try:
                    updates = await self.execute(function)
                except Exception as e:
                    self.commands_failed += 1
                    logger.error(f"{self.name}: command {function!r} failed: {e}")
                    continue

                self.commands_executed += 1
                self._deliver(updates)
            finally:
                self._queue.task_done()

        logger.debug(f"{self.name} consumer finished")

    def _deliver(self, updates: ParsedResponse) -> None:
        if self._handler is None:
            logger.debug(f"{self.name}: no update handler, {len(updates)} updates dropped")
            return

        for identifier, value in updates.items():
            try:
                self._handler(identifier.point_type, identifier.address, value)
                self.updates_delivered += 1
            except Exception:
                logger.exception(f"{self.name}: update handler failed for {identifier}")

    # ----------------------------------------------------------------
    # Transport hooks
    # ----------------------------------------------------------------

    async def _open(self) -> None:
        """Open the transport. Default: nothing to open."""

    async def _close(self) -> None:
        """Close the transport. Default: nothing to close."""

    @abstractmethod
    async def _transact(self, request: bytes) -> bytes:
        """Send one request frame and return the matching response frame."""

    def get_statistics(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "running": self._running,
            "pending": self.pending,
            "commands_executed": self.commands_executed,
            "commands_failed": self.commands_failed,
            "updates_delivered": self.updates_delivered,
        }

