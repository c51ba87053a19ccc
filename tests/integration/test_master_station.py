# tests/integration/test_master_station.py
"""
Master station lifecycle integration test.

Builds a complete station from a YAML settings file and a points file,
then drives it in stepped mode through a full mixer batch, a safety trip
raised from the outstation side and a clean shutdown. The last tests run
the same station against a real TCP outstation and on the tick clock.
"""

import pytest

from mixmaster.config.configuration import Configuration
from mixmaster.processing.automation_controller import MixerState
from mixmaster.protocols.modbus.outstation import OutstationServer, SimulatedOutstation
from mixmaster.runtime import MasterStation, seed_outstation
from mixmaster.state.points import AlarmType, PointIdentifier, PointType

pytestmark = pytest.mark.integration

POINTS = """\
STA 1
DO_REG 1 3000 0 0 1 1 DO @StartSignal 1 1
DO_REG 1 3001 0 0 1 0 DO @MixerMotor 1 1
DO_REG 4 4000 0 0 1 0 DO @Valves 1 1
DI_REG 2 2000 0 0 1 0 DI @LevelSwitches 3 1
HR_INT 1 1000 0 0 400 0 AO @MixerContents 1 1 0 0 400 380 0
"""

BATCH_TICKS = 24


# ================================================================
# FIXTURES
# ================================================================
@pytest.fixture
def station_settings():
    return {
        "master": {"name": "it_master", "time_mode": "stepped"},
        "executor": {"kind": "loopback"},
    }


@pytest.fixture
def station_factory(write_config_file, temp_config_dir):
    """Write settings and points, return an uninitialised station."""

    def _create(settings, points=POINTS):
        write_config_file(settings, "master.yml")
        write_config_file(points, "points.txt")
        return MasterStation(config_dir=temp_config_dir)

    return _create


@pytest.fixture
async def station(station_factory, station_settings):
    station = station_factory(station_settings)
    await station.initialise()
    yield station
    if station._running or station.executor.is_running():
        await station.stop()


async def step(station, count):
    for _ in range(count):
        await station.step()


# ================================================================
# INITIALISATION TESTS
# ================================================================
class TestInitialisation:
    """Test building the station from configuration."""

    @pytest.mark.asyncio
    async def test_components_wired(self, station):
        """Test every component exists and points are seeded."""
        status = station.get_status()

        assert status["name"] == "it_master"
        assert status["initialised"] is True
        assert status["running"] is False
        assert status["points"] == 9
        assert status["executor"]["name"] == "loopback_executor"
        assert status["clock"]["mode"] == "stepped"
        assert station.automation is not None

    @pytest.mark.asyncio
    async def test_defaults_seeded(self, station):
        """Test defaults reach both the outstation and the point store."""
        start = station.point_store.get_point(
            PointIdentifier(PointType.DIGITAL_OUTPUT, 3000)
        )

        assert station.outstation.get_coil(3000) == 1
        assert start.raw_value == 1
        assert start.alarm == AlarmType.ABNORMAL_VALUE

    @pytest.mark.asyncio
    async def test_automation_disabled(self, station_factory, station_settings):
        """Test the automation worker is optional."""
        station_settings["automation"] = {"enabled": False}
        station = station_factory(station_settings)

        await station.initialise()

        assert station.automation is None
        assert station.get_status()["automation"] is None

    @pytest.mark.asyncio
    async def test_missing_points_file(self, temp_config_dir, write_config_file):
        """Test initialisation failures surface as RuntimeError."""
        write_config_file({"points_file": "absent.txt"}, "master.yml")
        station = MasterStation(config_dir=temp_config_dir)

        with pytest.raises(RuntimeError, match="Failed to initialise"):
            await station.initialise()

    @pytest.mark.asyncio
    async def test_step_before_initialise(self, station_factory, station_settings):
        """Test stepping an uninitialised station fails."""
        station = station_factory(station_settings)

        with pytest.raises(RuntimeError, match="not initialised"):
            await station.step()


# ================================================================
# STEPPED OPERATION TESTS
# ================================================================
class TestSteppedOperation:
    """Test the station tick by tick."""

    @pytest.mark.asyncio
    async def test_full_batch(self, station):
        """Test one complete batch from the seeded start signal."""
        await step(station, 1)
        assert station.automation.state == MixerState.FILLING_CHOCOLATE

        await step(station, BATCH_TICKS - 1)

        assert station.automation.state == MixerState.IDLE
        assert station.automation.batches_completed == 1
        assert station.outstation.get_coil(3000) == 0
        assert station.outstation.get_holding_register(1000) == 0
        assert station.clock.current_tick == BATCH_TICKS

        executor = station.get_status()["executor"]
        assert executor["commands_failed"] == 0
        assert executor["pending"] == 0

    @pytest.mark.asyncio
    async def test_polled_input_reaches_store(self, station):
        """Test outstation changes are picked up on the item's interval."""
        station.outstation.set_discrete_input(2001, True)
        switch = station.point_store.get_point(
            PointIdentifier(PointType.DIGITAL_INPUT, 2001)
        )

        await step(station, 3)
        assert switch.raw_value == 0

        await step(station, 1)
        assert switch.raw_value == 1
        assert switch.alarm == AlarmType.ABNORMAL_VALUE

    @pytest.mark.asyncio
    async def test_inlet_opened_at_outstation_trips(self, station):
        """Test a valve forced open remotely trips the interlock once polled."""
        await step(station, 10)
        assert station.automation.state == MixerState.MIXING

        station.outstation.set_coil(4001, True)
        for _ in range(4):
            await station.step()
            if station.automation.emergency_stop_count:
                break

        assert station.automation.emergency_stop_count == 1
        assert station.automation.state == MixerState.EMPTYING
        assert station.outstation.get_coil(4001) == 0
        assert station.outstation.get_coil(4003) == 1
        assert station.outstation.get_coil(3001) == 0

    @pytest.mark.asyncio
    async def test_stop_after_stepping(self, station):
        """Test stop() forces the mixer outputs off and shuts down the executor."""
        await step(station, 2)
        assert station.executor.is_running()
        assert station.outstation.get_coil(4000) == 1

        await station.stop()

        assert not station.executor.is_running()
        assert station.get_status()["running"] is False
        for address in (3001, 4000, 4001, 4002, 4003):
            assert station.outstation.get_coil(address) == 0
        inlet = station.point_store.get_point(PointIdentifier(PointType.DIGITAL_OUTPUT, 4000))
        assert inlet.raw_value == 0

    @pytest.mark.asyncio
    async def test_step_refused_while_running(self, station):
        """Test inline stepping is refused once the workers run."""
        await station.start()

        with pytest.raises(RuntimeError, match="workers are running"):
            await station.step()

        await station.stop()


# ================================================================
# CLOCKED OPERATION TESTS
# ================================================================
class TestClockedOperation:
    """Test the station driven by the tick clock."""

    @pytest.mark.asyncio
    async def test_accelerated_batch_starts(
        self, station_factory, station_settings, wait_for_condition
    ):
        """Test the workers run on clock ticks and stop cleanly."""
        station_settings["master"].update(
            {"time_mode": "accelerated", "tick_period": 1.0, "time_acceleration": 100.0}
        )
        station = station_factory(station_settings)
        await station.initialise()

        await station.start()
        await wait_for_condition(
            lambda: station.automation.state != MixerState.IDLE, timeout=2.0
        )
        await station.stop()

        assert station.clock.current_tick >= 1
        assert not station.scheduler.is_running()
        assert not station.automation.is_running()
        # Stopping forces every mixer output off
        for address in (3001, 4000, 4001, 4002, 4003):
            assert station.outstation.get_coil(address) == 0


# ================================================================
# TCP TESTS
# ================================================================
class TestTcpOperation:
    """Test the station against an outstation served over TCP."""

    @pytest.mark.asyncio
    async def test_batch_over_tcp(self, station_factory, station_settings):
        """Test commands travel over a socket to a served outstation."""
        outstation = SimulatedOutstation(unit_id=1)
        seed_outstation(outstation, Configuration.from_lines(POINTS.splitlines()))
        server = OutstationServer(outstation, port=0)
        await server.start()

        try:
            station_settings["executor"] = {
                "kind": "tcp",
                "host": "127.0.0.1",
                "port": server.bound_port,
                "timeout": 1.0,
            }
            station = station_factory(station_settings)
            await station.initialise()
            assert station.outstation is None

            await step(station, 3)

            assert station.automation.state == MixerState.FILLING_MILK
            assert outstation.get_coil(4000) == 0
            assert outstation.get_coil(4001) == 1
            assert outstation.get_holding_register(1000) == 100

            await station.stop()
        finally:
            await server.stop()
