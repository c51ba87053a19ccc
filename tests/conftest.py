# tests/conftest.py
"""Shared pytest fixtures for master station tests.

Follows a bottom-up testing strategy: foundation components are tested
with real dependencies wherever possible. The loopback executor and the
simulated outstation stand in for a remote unit, so most tests exercise
real frames end to end over a localhost socket.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import yaml

from mixmaster import logging_system
from mixmaster.config.config_item import ConfigItem
from mixmaster.config.configuration import Configuration
from mixmaster.processing.command_dispatcher import CommandDispatcher
from mixmaster.protocols.modbus.outstation import SimulatedOutstation
from mixmaster.protocols.modbus.tcp_executor import LoopbackExecutor
from mixmaster.state.point_store import PointStore
from mixmaster.state.points import PointType

MIXER_POINTS = """\
STA 1
TCP 502
DO_REG 1 3000 0 0 1 0 DO @StartSignal 1 1
DO_REG 1 3001 0 0 1 0 DO @MixerMotor 1 1
DO_REG 4 4000 0 0 1 0 DO @Valves 1 1
HR_INT 1 1000 0 0 400 0 AO @MixerContents 1 1 0 0 400 380 0
"""


# ----------------------------------------------------------------
# Logging isolation
# ----------------------------------------------------------------
@pytest.fixture(autouse=True)
def clean_logging():
    """Start each test with fresh ICS loggers and no tick source."""
    logging_system._loggers.clear()
    yield
    logging_system.set_tick_source(None)


# ----------------------------------------------------------------
# Configuration fixtures
# ----------------------------------------------------------------
@pytest.fixture
def temp_config_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test configuration files.

    Yields:
        Path to temporary configuration directory
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_config_file(temp_config_dir):
    """Factory fixture for writing YAML or points files.

    Returns:
        Function that writes a dict as YAML, or a string verbatim
    """

    def _write_config(content, filename: str = "master.yml") -> Path:
        config_file = temp_config_dir / filename
        with open(config_file, "w") as f:
            if isinstance(content, str):
                f.write(content)
            else:
                yaml.dump(content, f)
        return config_file

    return _write_config


@pytest.fixture
def make_item():
    """Factory fixture for configuration items."""

    def _make_item(
        registry_type: PointType = PointType.ANALOG_OUTPUT,
        start_address: int = 0,
        number_of_registers: int = 1,
        **kwargs,
    ) -> ConfigItem:
        return ConfigItem(
            registry_type=registry_type,
            number_of_registers=number_of_registers,
            start_address=start_address,
            **kwargs,
        )

    return _make_item


@pytest.fixture
def mixer_configuration() -> Configuration:
    """Configuration covering the mixer's coils and contents register."""
    return Configuration.from_lines(MIXER_POINTS.splitlines())


@pytest.fixture
def point_store(mixer_configuration) -> PointStore:
    store = PointStore()
    store.create_points(mixer_configuration)
    return store


# ----------------------------------------------------------------
# Protocol fixtures
# ----------------------------------------------------------------
@pytest.fixture
def outstation() -> SimulatedOutstation:
    return SimulatedOutstation(unit_id=1)


@pytest.fixture
async def executor(outstation):
    """Running loopback executor, stopped after the test."""
    executor = LoopbackExecutor(outstation)
    await executor.start()
    yield executor
    await executor.stop()


@pytest.fixture
async def dispatcher(point_store, executor) -> CommandDispatcher:
    return CommandDispatcher(point_store, executor, station_name="test")


# ----------------------------------------------------------------
# Async utilities
# ----------------------------------------------------------------
@pytest.fixture
async def wait_for_condition():
    """Provide utility for waiting on async conditions.

    Returns:
        Async function that polls a condition until true or timeout
    """

    async def _wait(
        condition_fn,
        timeout: float = 1.0,
        poll_interval: float = 0.01,
        error_msg: str = "Condition not met within timeout",
    ):
        loop = asyncio.get_running_loop()
        start = loop.time()
        while loop.time() - start < timeout:
            if condition_fn():
                return
            await asyncio.sleep(poll_interval)

        raise AssertionError(error_msg)

    return _wait
