# tests/unit/state/test_point_store.py
"""Tests for PointStore and the point data model."""

import pytest

from mixmaster.config.configuration import Configuration
from mixmaster.state.point_store import PointStore
from mixmaster.state.points import (
    AlarmType,
    AnalogPoint,
    DigitalPoint,
    DState,
    PointIdentifier,
    PointType,
)


# ================================================================
# POINT MODEL TESTS
# ================================================================
class TestPointModel:
    """Test identifiers and point classes."""

    def test_identifier_equality(self):
        """Test identifiers compare and hash by value."""
        first = PointIdentifier(PointType.DIGITAL_OUTPUT, 4000)
        second = PointIdentifier(PointType.DIGITAL_OUTPUT, 4000)

        assert first == second
        assert hash(first) == hash(second)
        assert first != PointIdentifier(PointType.DIGITAL_INPUT, 4000)
        assert str(first) == "DIGITAL_OUTPUT[4000]"

    def test_type_classification(self):
        """Test analog and digital groupings."""
        assert PointType.HR_LONG.is_analog
        assert PointType.ANALOG_INPUT.is_analog
        assert PointType.DIGITAL_INPUT.is_digital
        assert not PointType.DIGITAL_OUTPUT.is_analog

    def test_new_point_defaults(self, make_item):
        """Test points start at raw 0, OFF, without alarm."""
        point = DigitalPoint(config_item=make_item(PointType.DIGITAL_OUTPUT, 3000), address=3000)

        assert point.raw_value == 0
        assert point.state == DState.OFF
        assert point.alarm == AlarmType.NO_ALARM
        assert point.timestamp is None
        assert point.identifier == PointIdentifier(PointType.DIGITAL_OUTPUT, 3000)


# ================================================================
# STORE TESTS
# ================================================================
class TestPointStore:
    """Test point creation and lookup."""

    def test_one_point_per_address(self, point_store):
        """Test every configured address gets a point."""
        # start, motor, four valves, contents
        assert len(point_store) == 7

    def test_point_classes(self, point_store):
        """Test digital items yield DigitalPoint and analog items AnalogPoint."""
        valve = point_store.get_point(PointIdentifier(PointType.DIGITAL_OUTPUT, 4002))
        contents = point_store.get_point(PointIdentifier(PointType.ANALOG_OUTPUT, 1000))

        assert isinstance(valve, DigitalPoint)
        assert isinstance(contents, AnalogPoint)
        assert valve.config_item.description == "Valves"

    def test_get_points_skips_unknown(self, point_store):
        """Test unknown identifiers are silently dropped."""
        known = PointIdentifier(PointType.DIGITAL_OUTPUT, 3000)
        unknown = PointIdentifier(PointType.DIGITAL_INPUT, 3000)

        points = point_store.get_points([known, unknown])

        assert [p.identifier for p in points] == [known]
        assert unknown not in point_store
        assert point_store.get_point(unknown) is None

    def test_points_are_shared(self, point_store):
        """Test lookups return the stored instance, not a copy."""
        identifier = PointIdentifier(PointType.DIGITAL_OUTPUT, 3001)
        point_store.get_point(identifier).raw_value = 1

        assert point_store.get_points([identifier])[0].raw_value == 1

    def test_duplicate_rejected(self, make_item):
        """Test adding a second point with the same identifier fails."""
        store = PointStore()
        item = make_item(PointType.DIGITAL_OUTPUT, 3000)
        store.add_point(DigitalPoint(config_item=item, address=3000))

        with pytest.raises(ValueError, match="Duplicate"):
            store.add_point(DigitalPoint(config_item=item, address=3000))

    def test_overlapping_items_skipped(self, make_item):
        """Test overlapping ranges create each identifier once."""
        configuration = Configuration(
            items=[
                make_item(PointType.DIGITAL_OUTPUT, 4000, 4),
                make_item(PointType.DIGITAL_OUTPUT, 4002, 4),
            ]
        )
        store = PointStore()

        created = store.create_points(configuration)

        assert created == 6
        assert len(store) == 6
